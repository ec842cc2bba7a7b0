from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from db import create_db_and_tables
from errors import DonationError, DonationValidationError, TooSoon
from logs import log_storage_error
from routers import auth, donations, users

app = FastAPI(title="HandOff")


@app.on_event("startup")
def on_startup() -> None:
    create_db_and_tables()
    logger.info("Database tables ready")


@app.exception_handler(DonationError)
async def donation_error_handler(request: Request, exc: DonationError) -> JSONResponse:
    body = {"detail": exc.detail, "code": exc.code}
    headers = None
    if isinstance(exc, DonationValidationError) and exc.errors:
        body["errors"] = exc.errors
    if isinstance(exc, TooSoon):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(body, status_code=exc.status_code, headers=headers)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log_storage_error(f"{request.method} {request.url.path}", exc)
    return JSONResponse({"detail": "Internal server error"}, status_code=500)


@app.get("/health")
def healthcheck() -> dict:
    return {"status": "ok"}


app.include_router(auth.router)
app.include_router(users.router, prefix="/users")
app.include_router(donations.router, prefix="/donations")
