from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from ..config import SECRET_KEY, SESSION_TTL_MINUTES

ALGORITHM = "HS256"


def create_session_token(session_id: str, *, expires_at: datetime | None = None) -> str:
    """Sign the opaque session id. Identity and role live in the store, not the token."""
    expire = expires_at or (datetime.now(timezone.utc) + timedelta(minutes=SESSION_TTL_MINUTES))
    return jwt.encode({"sid": session_id, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def read_session_id(token: str) -> str | None:
    """Return the session id of a well-signed, unexpired token, else None."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None
