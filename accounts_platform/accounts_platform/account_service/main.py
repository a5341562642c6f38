"""
Account Service - registration, login, profile management and federated login
"""
from contextlib import asynccontextmanager
from typing import NamedTuple, Optional
import logging

from fastapi import FastAPI, Depends, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import accounts, federation
from .config import settings
from .db import get_db, init_db
from .errors import AccountError, AuthenticationFailure
from .routes import dev_monitor
from .schemas import (
    Acknowledgement,
    Availability,
    DeleteRequest,
    FederatedLoginRequest,
    LoginRequest,
    PrivateProfile,
    ProfilePatch,
    PublicProfile,
    RegisterRequest,
)
from .utils.event_logger import log_auth_event

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Initialize database on startup"""
    init_db()
    yield


app = FastAPI(
    title="Account Service",
    description="User accounts, bearer tokens and federated login",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(dev_monitor.router)


@app.exception_handler(AccountError)
async def account_error_handler(request: Request, exc: AccountError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.body())


class CurrentUser(NamedTuple):
    id: int
    access_token: str


def get_current_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> CurrentUser:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationFailure("Not authenticated")
    access_token = authorization.split(" ", 1)[1].strip()
    user_id = accounts.user_from_token(db, access_token)
    if user_id is None:
        raise AuthenticationFailure("Invalid token")
    return CurrentUser(user_id, access_token)


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.post("/users", response_model=PrivateProfile, response_model_exclude_none=True)
def register(payload: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    profile = accounts.register(db, payload)
    log_auth_event("register", request, db, email=profile.email)
    return profile


@app.post("/login", response_model=PrivateProfile, response_model_exclude_none=True)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    try:
        profile = accounts.login(db, payload)
    except AuthenticationFailure:
        log_auth_event("login_failure", request, db, email=payload.email)
        raise
    log_auth_event("login_success", request, db, email=profile.email)
    return profile


@app.post("/logout", response_model=Acknowledgement)
def logout(request: Request, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    ack = accounts.logout(db, user.id)
    log_auth_event("logout", request, db, user_id=user.id)
    return ack


@app.get("/users/me", response_model=PrivateProfile, response_model_exclude_none=True)
def get_my_profile(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return accounts.get_my_profile(db, user.id, user.access_token)


@app.patch("/users/me", response_model=PrivateProfile, response_model_exclude_none=True)
def update_my_profile(
    patch: ProfilePatch,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = accounts.update(db, user.id, patch, user.access_token)
    log_auth_event(
        "profile_update", request, db,
        email=profile.email,
        user_id=user.id,
        metadata={"fields": sorted(patch.model_fields_set), "password_update": profile.password_update},
    )
    return profile


@app.delete("/users/me", response_model=Acknowledgement)
def delete_my_profile(
    payload: DeleteRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        ack = accounts.delete_profile(db, user.id, payload.password)
    except AuthenticationFailure:
        log_auth_event("delete_failure", request, db, user_id=user.id)
        raise
    log_auth_event("profile_delete", request, db, user_id=user.id)
    return ack


@app.get("/users/{username}", response_model=PublicProfile)
def get_public_profile(username: str, db: Session = Depends(get_db)):
    return accounts.get_public_profile(db, username)


@app.get("/availability/email", response_model=Availability, response_model_exclude_none=True)
def email_availability(email: Optional[str] = None, db: Session = Depends(get_db)):
    return accounts.check_email_availability(db, email)


@app.get("/availability/username", response_model=Availability, response_model_exclude_none=True)
def username_availability(username: Optional[str] = None, db: Session = Depends(get_db)):
    return accounts.check_username_availability(db, username)


@app.post("/auth/{provider}", response_model=PrivateProfile, response_model_exclude_none=True)
def federated_login(
    provider: str,
    payload: FederatedLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    profile = federation.authenticate(db, provider, payload.access_token)
    log_auth_event("federated_login", request, db, email=profile.email, metadata={"provider": provider})
    return profile
