from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..config import SESSION_COOKIE_NAME
from ..database import get_db
from ..models.user import User
from ..services.session_service import resolve_session


def session_token_from_request(request: Request) -> str | None:
    """Session token from an `Authorization: Bearer` header, else from the cookie."""
    authorization = request.headers.get("Authorization") or ""
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return request.cookies.get(SESSION_COOKIE_NAME)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    return resolve_session(db, session_token_from_request(request))
