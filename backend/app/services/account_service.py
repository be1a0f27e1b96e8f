import logging
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.user import Role, User
from ..utils.error_handlers import (
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
    get_error_message,
    handle_database_error,
)
from ..utils.security import hash_password, verify_password
from ..utils.validation import (
    validate_choice,
    validate_email,
    validate_password,
    validate_username,
)
from .scoring_engine import canonical_skills, profile_skills

logger = logging.getLogger(__name__)

ROLES = {r.value for r in Role}


def _ensure_unique(db: Session, *, email: str | None = None, username: str | None = None, exclude_id: int | None = None) -> None:
    if email:
        q = db.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            msg = get_error_message("email_exists")
            raise ValidationError(msg, errors=[{"field": "email", "message": msg}])
    if username:
        q = db.query(User.id).filter(func.lower(User.username) == username.lower())
        if exclude_id is not None:
            q = q.filter(User.id != exclude_id)
        if q.first():
            msg = get_error_message("username_exists")
            raise ValidationError(msg, errors=[{"field": "username", "message": msg}])


def _validate_profile_data(profile_data: Any) -> dict | None:
    if profile_data is None:
        return None
    if not isinstance(profile_data, dict):
        raise ValidationError(
            "Profile data must be an object",
            errors=[{"field": "profileData", "message": "Profile data must be an object"}],
        )
    return profile_data


def _commit_user(db: Session, user: User, operation: str) -> User:
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError as e:
        db.rollback()
        # Report whichever unique index actually tripped.
        key = "username_exists" if "username" in str(getattr(e, "orig", e)).lower() else "email_exists"
        raise handle_database_error(e, operation, conflict_message=get_error_message(key)) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, operation) from e
    return user


def register(
    db: Session,
    *,
    username: str,
    email: str,
    password: str,
    role: str,
    profile_data: dict | None = None,
) -> User:
    username = validate_username(username)
    email = validate_email(email)
    validate_password(password)
    role = validate_choice(role, "role", ROLES)
    profile_data = _validate_profile_data(profile_data)

    # Fast path for a friendly message; the unique indexes are the guarantee.
    _ensure_unique(db, email=email, username=username)

    user = User(
        username=username,
        email=email,
        password=hash_password(password),
        role=role,
        profile_data=profile_data,
    )
    _commit_user(db, user, "creating user")
    logger.info("Registered %s account %s", user.role, user.id)
    return user


def authenticate(db: Session, *, email: str, password: str) -> User:
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password):
        raise UnauthenticatedError(get_error_message("invalid_credentials"))
    return user


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def update_account(db: Session, *, user_id: int, caller: User, fields: dict[str, Any]) -> User:
    """
    Self-only partial update of username/email/role/profile_data.

    Only keys present in `fields` are touched. A role change is visible to
    authorization on the caller's next request since roles are read from here.
    """
    if int(user_id) != int(caller.id):
        raise ForbiddenError("You can only update your own account")

    user = get_user(db, user_id)

    username = validate_username(fields["username"]) if fields.get("username") is not None else None
    email = validate_email(fields["email"]) if fields.get("email") is not None else None
    _ensure_unique(db, email=email, username=username, exclude_id=user.id)

    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    if fields.get("role") is not None:
        new_role = validate_choice(fields["role"], "role", ROLES)
        if new_role != user.role:
            logger.info("User %s changed role %s -> %s", user.id, user.role, new_role)
        user.role = new_role
    if "profile_data" in fields:
        user.profile_data = _validate_profile_data(fields["profile_data"])

    return _commit_user(db, user, "updating user")


def update_profile(db: Session, *, caller: User, fields: dict[str, Any]) -> User:
    return update_account(db, user_id=caller.id, caller=caller, fields=fields)


def _profile_text(profile: Any, key: str) -> str:
    if not isinstance(profile, dict):
        return ""
    value = profile.get(key)
    return str(value).lower() if value is not None else ""


def search_candidates(
    db: Session,
    *,
    search: str | None = None,
    skills: list[str] | None = None,
    location: str | None = None,
    experience: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[User], int]:
    """Job seeker accounts matching the filters, newest first, plus the total match count."""
    q = db.query(User).filter(User.role == Role.JOB_SEEKER.value)

    term = (search or "").strip()
    if term:
        term = term.lower()
        q = q.filter(
            or_(
                func.lower(User.username).contains(term, autoescape=True),
                func.lower(User.email).contains(term, autoescape=True),
            )
        )

    candidates = q.order_by(User.created_at.desc(), User.id.desc()).all()

    # profile_data is an opaque JSON blob, so the remaining filters run here.
    wanted_skills = set(canonical_skills(skills or []))
    if wanted_skills:
        candidates = [c for c in candidates if wanted_skills.issubset(profile_skills(c.profile_data))]
    loc = (location or "").strip().lower()
    if loc:
        candidates = [c for c in candidates if loc in _profile_text(c.profile_data, "location")]
    exp = (experience or "").strip().lower()
    if exp:
        candidates = [c for c in candidates if exp in _profile_text(c.profile_data, "experience")]

    total = len(candidates)
    return candidates[offset:offset + limit], total
