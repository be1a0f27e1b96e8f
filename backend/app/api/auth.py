import logging

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE, SESSION_TTL_MINUTES
from ..database import get_db
from ..models.user import User
from ..services import account_service, session_service
from ..utils.dependencies import get_current_user, session_token_from_request
from ..utils.serializers import user_to_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    role: str  # job_seeker / employer
    profileData: dict | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=SESSION_TTL_MINUTES * 60,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def _session_payload(user: User, token: str) -> dict:
    return {
        "success": True,
        "user": user_to_public(user),
        "access_token": token,
        "token_type": "bearer",
    }


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    user = account_service.register(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        profile_data=payload.profileData,
    )
    _, token = session_service.open_session(db, user)
    _set_session_cookie(response, token)
    return {"message": "Account created successfully", **_session_payload(user, token)}


@router.post("/login")
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = account_service.authenticate(db, email=payload.email, password=payload.password)
    _, token = session_service.open_session(db, user)
    _set_session_cookie(response, token)
    logger.info("User %s logged in", user.id)
    return _session_payload(user, token)


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    session_service.revoke_session(db, session_token_from_request(request))
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "user": user_to_public(user)}
