# routers/users.py
from typing import List

from fastapi import APIRouter, HTTPException
from sqlmodel import select

from db import SessionDep
from models import User
from schemas import UserRead
from .auth import CurrentUserRoleDep

router = APIRouter(tags=["users"])


@router.get("/", response_model=List[UserRead])
def list_users(session: SessionDep, current: CurrentUserRoleDep):
    """
    List all users. Logged-in users only.
    """
    return session.exec(select(User).order_by(User.id)).all()


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, session: SessionDep, current: CurrentUserRoleDep):
    """
    Get a single user by ID, e.g. the rider who claimed a donation.
    """
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
