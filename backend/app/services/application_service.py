"""
Application lifecycle: apply, withdraw, status transitions and listings.

Status moves only along ALLOWED_TRANSITIONS, and only the employer who owns
the posting may move it. `hired` is reachable from `offer` through the same
transition call; `rejected` and `hired` are terminal.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.application import Application, ApplicationStatus
from ..models.job import Job, JobStatus
from ..models.user import Role, User
from ..utils.error_handlers import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    get_error_message,
    handle_database_error,
)
from ..utils.validation import validate_choice, validate_string_field
from .scoring_engine import compute_match_score

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset({ApplicationStatus.REVIEWING, ApplicationStatus.REJECTED}),
    ApplicationStatus.REVIEWING: frozenset({ApplicationStatus.INTERVIEW, ApplicationStatus.REJECTED}),
    ApplicationStatus.INTERVIEW: frozenset({ApplicationStatus.OFFER, ApplicationStatus.REJECTED}),
    ApplicationStatus.OFFER: frozenset({ApplicationStatus.HIRED, ApplicationStatus.REJECTED}),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.HIRED: frozenset(),
}

APPLICATION_STATUSES = {s.value for s in ApplicationStatus}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def check_transition(current: str, target: str) -> ApplicationStatus:
    """Validate `current -> target` and return the target status."""
    target_status = ApplicationStatus(validate_choice(target, "status", APPLICATION_STATUSES))
    try:
        current_status = ApplicationStatus(current)
    except ValueError:
        # Legacy row with a value outside the enum; nothing is reachable from it.
        current_status = None

    if current_status is None or not can_transition(current_status, target_status):
        allowed = sorted(s.value for s in ALLOWED_TRANSITIONS.get(current_status, frozenset()))
        detail = (
            f"Cannot move an application from '{current}' to '{target_status.value}'. "
            + (f"Allowed: {', '.join(allowed)}." if allowed else f"'{current}' is final.")
        )
        raise ValidationError(
            get_error_message("invalid_transition"),
            errors=[{"field": "status", "message": detail}],
        )
    return target_status


def _require_role(user: User, role: Role) -> None:
    if user.role != role.value:
        raise UnauthorizedError(get_error_message(f"{role.value}_only"))


def _with_details(rows) -> list[tuple[Application, Job, User]]:
    # Rows with a dangling posting or candidate are left out, not errors.
    out: list[tuple[Application, Job, User]] = []
    for application, job, candidate in rows:
        if job is None or candidate is None:
            logger.warning("Application %s has a missing job or candidate; omitted from listing", application.id)
            continue
        out.append((application, job, candidate))
    return out


def _details_query(db: Session):
    return (
        db.query(Application, Job, User)
        .outerjoin(Job, Application.job_id == Job.id)
        .outerjoin(User, Application.candidate_id == User.id)
    )


def apply(db: Session, *, candidate: User, job_id: int, cover_letter: str | None = None) -> Application:
    _require_role(candidate, Role.JOB_SEEKER)

    job = db.query(Job).filter(Job.id == int(job_id)).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"))
    if job.status != JobStatus.PUBLISHED.value:
        raise ValidationError(get_error_message("job_closed"))
    deadline = _as_utc(job.deadline)
    if deadline is not None and deadline < _now():
        raise ValidationError(get_error_message("job_closed"))

    cover_letter = validate_string_field(cover_letter, "coverLetter", min_length=1, max_length=10000, required=False)

    # Fast path only; uq_applications_job_candidate is what guarantees uniqueness.
    exists = (
        db.query(Application.id)
        .filter(Application.job_id == job.id, Application.candidate_id == candidate.id)
        .first()
    )
    if exists:
        raise ConflictError(get_error_message("already_applied"))

    application = Application(
        job_id=job.id,
        candidate_id=candidate.id,
        status=ApplicationStatus.PENDING.value,
        cover_letter=cover_letter,
        match_score=compute_match_score(profile_data=candidate.profile_data, job_skills=job.skills),
    )
    try:
        db.add(application)
        db.commit()
        db.refresh(application)
    except IntegrityError as e:
        db.rollback()
        # Lost a race with a concurrent apply for the same pair.
        raise handle_database_error(e, "creating application", conflict_message=get_error_message("already_applied")) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "creating application") from e

    logger.info("Candidate %s applied to job %s (application %s)", candidate.id, job.id, application.id)
    return application


def withdraw(db: Session, *, caller: User, job_id: int, candidate_id: int) -> None:
    """Delete the candidate's application to a posting, whatever its status."""
    _require_role(caller, Role.JOB_SEEKER)
    if int(caller.id) != int(candidate_id):
        raise ForbiddenError(get_error_message("withdraw_forbidden"))

    application = (
        db.query(Application)
        .filter(Application.job_id == int(job_id), Application.candidate_id == int(candidate_id))
        .first()
    )
    if not application:
        raise NotFoundError(get_error_message("application_not_found"))

    previous_status = application.status
    try:
        db.delete(application)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "withdrawing application") from e
    logger.info("Candidate %s withdrew from job %s (was %s)", candidate_id, job_id, previous_status)


def transition_status(db: Session, *, application_id: int, caller: User, new_status: str) -> Application:
    _require_role(caller, Role.EMPLOYER)

    row = (
        db.query(Application, Job)
        .outerjoin(Job, Application.job_id == Job.id)
        .filter(Application.id == int(application_id))
        .first()
    )
    if not row:
        raise NotFoundError(get_error_message("application_not_found"))
    application, job = row
    if job is None or int(job.employer_id) != int(caller.id):
        raise ForbiddenError(get_error_message("application_forbidden"))

    previous_status = application.status
    target = check_transition(previous_status, new_status)

    application.status = target.value
    application.updated_at = _now()
    try:
        db.commit()
        db.refresh(application)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "updating application status") from e

    logger.info(
        "Employer %s moved application %s from %s to %s",
        caller.id, application.id, previous_status, application.status,
    )
    return application


def list_by_posting(db: Session, *, job_id: int, caller: User) -> list[tuple[Application, Job, User]]:
    _require_role(caller, Role.EMPLOYER)

    job = db.query(Job).filter(Job.id == int(job_id)).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"))
    if int(job.employer_id) != int(caller.id):
        raise ForbiddenError(get_error_message("application_forbidden"))

    rows = (
        _details_query(db)
        .filter(Application.job_id == job.id)
        .order_by(Application.applied_at.desc(), Application.id.desc())
        .all()
    )
    return _with_details(rows)


def list_by_candidate(db: Session, *, candidate_id: int, caller: User) -> list[tuple[Application, Job, User]]:
    """
    A job seeker sees only their own applications. An employer sees the
    candidate's applications to postings that employer owns, nothing else.
    """
    q = _details_query(db).filter(Application.candidate_id == int(candidate_id))

    if caller.role == Role.JOB_SEEKER.value:
        if int(caller.id) != int(candidate_id):
            raise ForbiddenError("You can only view your own applications")
    elif caller.role == Role.EMPLOYER.value:
        q = q.filter(Job.employer_id == caller.id)
    else:
        raise UnauthorizedError()

    rows = q.order_by(Application.applied_at.desc(), Application.id.desc()).all()
    return _with_details(rows)


def list_by_employer(db: Session, *, employer_id: int, caller: User) -> list[tuple[Application, Job, User]]:
    """Every application across the employer's postings, as one join."""
    _require_role(caller, Role.EMPLOYER)
    if int(caller.id) != int(employer_id):
        raise ForbiddenError(get_error_message("application_forbidden"))

    rows = (
        _details_query(db)
        .filter(Job.employer_id == int(employer_id))
        .order_by(Application.applied_at.desc(), Application.id.desc())
        .all()
    )
    return _with_details(rows)
