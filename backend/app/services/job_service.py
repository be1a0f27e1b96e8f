import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import case, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.job import Job, JobStatus
from ..models.user import Role, User
from ..utils.error_handlers import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    get_error_message,
    handle_database_error,
)
from ..utils.validation import (
    clean_string_list,
    parse_iso_datetime,
    validate_choice,
    validate_email,
    validate_integer_field,
    validate_salary_bounds,
    validate_string_field,
)

logger = logging.getLogger(__name__)

JOB_STATUSES = {s.value for s in JobStatus}
SORT_KEYS = {"relevance", "date", "salary-high", "salary-low"}
MAX_SALARY = 10**9


@dataclass
class JobFilters:
    search: str | None = None
    location: str | None = None
    job_type: str | None = None
    experience_level: str | None = None
    salary_min: int | None = None
    salary_max: int | None = None
    skills: list[str] = field(default_factory=list)
    limit: int = 20
    offset: int = 0
    sort_by: str = "date"


# camelCase payload key -> (column, validator)
_TEXT_FIELDS = {
    "title": ("title", dict(min_length=2, max_length=150)),
    "company": ("company", dict(min_length=1, max_length=150)),
    "location": ("location", dict(min_length=1, max_length=100)),
    "jobType": ("job_type", dict(min_length=1, max_length=30)),
    "description": ("description", dict(min_length=10, max_length=20000)),
}
_OPTIONAL_TEXT_FIELDS = {
    "experienceLevel": ("experience_level", dict(min_length=1, max_length=30)),
    "requirements": ("requirements", dict(min_length=1, max_length=20000)),
}


def _clean_fields(fields: dict[str, Any], *, partial: bool) -> dict[str, Any]:
    """Validate a camelCase posting payload and return column -> value."""
    values: dict[str, Any] = {}

    for key, (column, rules) in _TEXT_FIELDS.items():
        if key in fields or not partial:
            values[column] = validate_string_field(fields.get(key), key, required=True, **rules)

    for key, (column, rules) in _OPTIONAL_TEXT_FIELDS.items():
        if key in fields:
            values[column] = validate_string_field(fields.get(key), key, required=False, **rules)

    for key, column in (("salaryMin", "salary_min"), ("salaryMax", "salary_max")):
        if key in fields:
            values[column] = validate_integer_field(
                fields.get(key), key, min_value=0, max_value=MAX_SALARY, required=False
            )

    if "skills" in fields:
        values["skills"] = clean_string_list(fields.get("skills"), "skills")

    if "contactEmail" in fields:
        raw = fields.get("contactEmail")
        values["contact_email"] = validate_email(raw, "contactEmail") if raw else None

    if "deadline" in fields:
        values["deadline"] = parse_iso_datetime(fields.get("deadline"), "deadline")

    if "status" in fields and fields.get("status") is not None:
        values["status"] = validate_choice(fields.get("status"), "status", JOB_STATUSES)

    return values


def _owned_job(db: Session, job_id: int, caller: User) -> Job:
    job = db.query(Job).filter(Job.id == int(job_id)).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"))
    if int(job.employer_id) != int(caller.id):
        raise ForbiddenError(get_error_message("job_forbidden"))
    return job


def create_posting(db: Session, *, employer: User, fields: dict[str, Any]) -> Job:
    if employer.role != Role.EMPLOYER.value:
        raise UnauthorizedError(get_error_message("employer_only"))

    values = _clean_fields(fields, partial=False)
    validate_salary_bounds(values.get("salary_min"), values.get("salary_max"))
    values.setdefault("status", JobStatus.PUBLISHED.value)

    job = Job(employer_id=employer.id, **values)
    try:
        db.add(job)
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "creating job") from e

    logger.info("Employer %s created job %s (%s)", employer.id, job.id, job.status)
    return job


def get_posting(db: Session, job_id: int) -> tuple[Job, User]:
    """A posting and its owner. A posting whose owner row is gone counts as missing."""
    row = (
        db.query(Job, User)
        .outerjoin(User, Job.employer_id == User.id)
        .filter(Job.id == int(job_id))
        .first()
    )
    if not row or row[1] is None:
        raise NotFoundError(get_error_message("job_not_found"))
    return row[0], row[1]


def _sort_clauses(sort_by: str, search: str | None) -> list:
    newest = [Job.created_at.desc(), Job.id.desc()]
    if sort_by == "salary-high":
        top = func.coalesce(Job.salary_max, Job.salary_min)
        return [case((top.is_(None), 1), else_=0), top.desc(), *newest]
    if sort_by == "salary-low":
        bottom = func.coalesce(Job.salary_min, Job.salary_max)
        return [case((bottom.is_(None), 1), else_=0), bottom.asc(), *newest]
    if sort_by == "relevance" and search:
        term = search.lower()
        rank = case(
            (func.lower(Job.title).contains(term, autoescape=True), 0),
            (func.lower(Job.company).contains(term, autoescape=True), 1),
            else_=2,
        )
        return [rank, *newest]
    return newest


def _has_skills(job: Job, wanted: set[str]) -> bool:
    have = {str(s).strip().lower() for s in (job.skills or [])}
    return wanted.issubset(have)


def list_postings(db: Session, filters: JobFilters) -> tuple[list[tuple[Job, User]], int]:
    """
    Published postings matching the filters, with their owners, plus the total.

    Only `published` postings are ever eligible, whatever the filters say.
    """
    sort_by = validate_choice(filters.sort_by, "sortBy", SORT_KEYS, required=False) or "date"

    q = (
        db.query(Job, User)
        .outerjoin(User, Job.employer_id == User.id)
        .filter(Job.status == JobStatus.PUBLISHED.value)
    )

    search = (filters.search or "").strip()
    if search:
        # User text is matched literally; % and _ are escaped.
        term = search.lower()
        q = q.filter(
            or_(
                func.lower(Job.title).contains(term, autoescape=True),
                func.lower(Job.company).contains(term, autoescape=True),
                func.lower(Job.description).contains(term, autoescape=True),
            )
        )
    if filters.location and filters.location.strip():
        q = q.filter(func.lower(Job.location).contains(filters.location.strip().lower(), autoescape=True))
    if filters.job_type and filters.job_type.strip():
        q = q.filter(func.lower(Job.job_type) == filters.job_type.strip().lower())
    if filters.experience_level and filters.experience_level.strip():
        q = q.filter(func.lower(Job.experience_level) == filters.experience_level.strip().lower())

    # Range overlap; postings without salary data drop out once a bound is given.
    if filters.salary_min is not None:
        q = q.filter(func.coalesce(Job.salary_max, Job.salary_min) >= filters.salary_min)
    if filters.salary_max is not None:
        q = q.filter(func.coalesce(Job.salary_min, Job.salary_max) <= filters.salary_max)

    q = q.order_by(*_sort_clauses(sort_by, search))

    wanted = {s.strip().lower() for s in filters.skills if s and s.strip()}
    if wanted:
        # Skills live in a JSON column; match them after the SQL filters.
        rows = [r for r in q.all() if _has_skills(r[0], wanted)]
        total = len(rows)
        rows = rows[filters.offset:filters.offset + filters.limit]
    else:
        total = q.order_by(None).count()
        rows = q.offset(filters.offset).limit(filters.limit).all()

    page: list[tuple[Job, User]] = []
    for job, employer in rows:
        if employer is None:
            logger.warning("Job %s references missing employer %s; omitted from listing", job.id, job.employer_id)
            continue
        page.append((job, employer))
    return page, total


def list_postings_by_employer(db: Session, *, employer: User) -> list[Job]:
    if employer.role != Role.EMPLOYER.value:
        raise UnauthorizedError(get_error_message("employer_only"))
    return (
        db.query(Job)
        .filter(Job.employer_id == employer.id)
        .order_by(Job.created_at.desc(), Job.id.desc())
        .all()
    )


def update_posting(db: Session, *, job_id: int, caller: User, fields: dict[str, Any]) -> Job:
    job = _owned_job(db, job_id, caller)

    values = _clean_fields(fields, partial=True)
    validate_salary_bounds(
        values.get("salary_min", job.salary_min),
        values.get("salary_max", job.salary_max),
    )
    for column, value in values.items():
        setattr(job, column, value)
    job.updated_at = datetime.now(timezone.utc)

    try:
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "updating job") from e

    logger.info("Employer %s updated job %s (%s)", caller.id, job.id, ", ".join(sorted(values)) or "no changes")
    return job


def delete_posting(db: Session, *, job_id: int, caller: User) -> None:
    """Hard delete; the posting's applications go with it."""
    job = _owned_job(db, job_id, caller)
    application_count = len(job.applications)
    try:
        db.delete(job)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "deleting job") from e
    logger.info("Employer %s deleted job %s with %s application(s)", caller.id, job_id, application_count)
