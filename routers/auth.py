import os
import secrets
from typing import Annotated, Callable, Optional

from db import SessionDep
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from fastapi.responses import JSONResponse
from itsdangerous import BadSignature, URLSafeTimedSerializer
from loguru import logger
from models import User
from passlib.context import CryptContext
from schemas import LoginData, UserCreate, UserRead
from sqlmodel import select

router = APIRouter(tags=["auth"])

SECRET_KEY = os.getenv("SESSION_SECRET") or secrets.token_hex(32)
serializer = URLSafeTimedSerializer(SECRET_KEY)

SESSION_MAX_AGE = 60 * 60 * 8


pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(user_id: int, role: str) -> str:
    """
    Store user_id + role in the signed token.
    Example data:
        {"user_id": 3, "role": "rider"}
    """
    return serializer.dumps({"user_id": user_id, "role": role})


def verify_session_token(token: str, max_age_seconds: int = SESSION_MAX_AGE):
    """
    Returns dict {'user_id': ..., 'role': ...} if valid,
    or None if token is invalid/expired.
    """
    try:
        return serializer.loads(token, max_age=max_age_seconds)
    except BadSignature:
        return None


def get_current_user_and_role(
    session: SessionDep,
    session_token: Optional[str] = Cookie(default=None, alias="session"),
) -> dict:
    """
    Reads the 'session' cookie, verifies the token,
    looks up the user, and returns {"user": User, "role": str}.
    Raises 401 if not logged in / invalid.
    """
    if session_token is None:
        raise HTTPException(status_code=401, detail="Not logged in")

    data = verify_session_token(session_token)
    if not data:
        raise HTTPException(
            status_code=401, detail="Invalid or expired session")

    user = session.get(User, data["user_id"])
    if user is None:
        raise HTTPException(
            status_code=401, detail="User not found for this session")

    return {"user": user, "role": data["role"]}


CurrentUserRoleDep = Annotated[dict, Depends(get_current_user_and_role)]


def require_role(role: str) -> Callable[..., dict]:
    def dependency(current: CurrentUserRoleDep) -> dict:
        if current["role"] != role:
            raise HTTPException(
                status_code=403, detail=f"Only {role}s can do this")
        return current

    return dependency


DonorDep = Annotated[dict, Depends(require_role("donor"))]
RiderDep = Annotated[dict, Depends(require_role("rider"))]


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=SESSION_MAX_AGE,
    )


@router.post("/register", status_code=201)
def register(user_in: UserCreate, session: SessionDep):
    """
    Register a new donor or rider with a hashed password
    and log them straight in.
    """
    if user_in.is_donor:
        role = "donor"
    elif user_in.is_rider:
        role = "rider"
    else:
        raise HTTPException(
            status_code=400,
            detail="User must be registered as donor or rider",
        )

    existing = session.exec(
        select(User).where(User.email == user_in.email)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=user_in.email,
        name=user_in.name,
        phone=user_in.phone,
        password_hash=hash_password(user_in.password),
        is_donor=user_in.is_donor,
        is_rider=user_in.is_rider,
    )

    session.add(user)
    session.commit()
    session.refresh(user)

    if user.id is None:
        raise HTTPException(
            status_code=500, detail="User was not created successfully"
        )
    logger.info("Registered user {} as {}", user.id, role)

    resp = JSONResponse(
        {"message": "Registration successful", "role": role, "id": user.id},
        status_code=201,
    )
    _set_session_cookie(resp, create_session_token(user.id, role))
    return resp


@router.post("/login")
def login(payload: LoginData, session: SessionDep, response: Response):
    """
    Log in with email + password + chosen role ("donor" / "rider"),
    set a signed cookie.
    """
    user = session.exec(
        select(User).where(User.email == payload.email)
    ).first()

    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=400, detail="Invalid email or password"
        )

    if payload.role == "donor" and not user.is_donor:
        raise HTTPException(
            status_code=400, detail="User is not registered as donor"
        )

    if payload.role == "rider" and not user.is_rider:
        raise HTTPException(
            status_code=400, detail="User is not registered as rider"
        )

    _set_session_cookie(response, create_session_token(user.id, payload.role))
    return {"message": "Login successful", "role": payload.role}


@router.post("/logout")
def logout(response: Response):
    """
    Clear the session cookie.
    """
    response.delete_cookie("session")
    return {"message": "Logged out"}


@router.get("/me")
def read_me(current: CurrentUserRoleDep):
    """
    Get info about the currently logged-in user + active role.
    """
    user = current["user"]
    return {
        **UserRead.model_validate(user).model_dump(),
        "role": current["role"],
    }
