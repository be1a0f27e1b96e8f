import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import SESSION_TTL_MINUTES
from ..models.session import AuthSession
from ..models.user import User
from ..utils.error_handlers import UnauthenticatedError, get_error_message, handle_database_error
from ..utils.session_token import create_session_token, read_session_id

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def open_session(db: Session, user: User) -> tuple[AuthSession, str]:
    expires_at = _now() + timedelta(minutes=SESSION_TTL_MINUTES)
    auth_session = AuthSession(
        id=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=expires_at,
    )
    try:
        db.add(auth_session)
        db.commit()
        db.refresh(auth_session)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "opening session") from e

    logger.info("Opened session for user %s", user.id)
    return auth_session, create_session_token(auth_session.id, expires_at=expires_at)


def _live_session(db: Session, token: str | None) -> AuthSession | None:
    sid = read_session_id(token or "")
    if not sid:
        return None
    auth_session = db.query(AuthSession).filter(AuthSession.id == sid).first()
    if not auth_session or auth_session.revoked_at is not None:
        return None
    if _as_utc(auth_session.expires_at) <= _now():
        return None
    return auth_session


def resolve_session(db: Session, token: str | None) -> User:
    """
    Return the account behind a session token, freshly loaded from the store.

    The role used for authorization is whatever `users.role` holds right now,
    so a role change applies to the very next request.
    """
    auth_session = _live_session(db, token)
    if not auth_session:
        raise UnauthenticatedError(get_error_message("session_expired") if token else get_error_message("unauthorized"))

    user = db.query(User).filter(User.id == auth_session.user_id).first()
    if not user:
        raise UnauthenticatedError(get_error_message("session_expired"))
    return user


def revoke_session(db: Session, token: str | None) -> bool:
    auth_session = _live_session(db, token)
    if not auth_session:
        return False
    auth_session.revoked_at = _now()
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "revoking session") from e
    logger.info("Revoked session for user %s", auth_session.user_id)
    return True
