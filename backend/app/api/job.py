from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..services import job_service
from ..services.job_service import JobFilters
from ..utils.roles import employer_only
from ..utils.serializers import job_to_public
from ..utils.validation import clean_string_list

router = APIRouter(prefix="/jobs", tags=["Jobs"])


class JobCreate(BaseModel):
    # Required fields are enforced by job_service so errors carry field names.
    title: str | None = None
    company: str | None = None
    location: str | None = None
    jobType: str | None = None
    experienceLevel: str | None = None
    salaryMin: int | None = None
    salaryMax: int | None = None
    description: str | None = None
    requirements: str | None = None
    skills: list[str] | str | None = None
    contactEmail: str | None = None
    deadline: str | None = None
    status: str | None = None


class JobUpdate(JobCreate):
    pass


@router.get("")
def list_jobs(
    search: str | None = Query(default=None),
    location: str | None = Query(default=None),
    job_type: str | None = Query(default=None, alias="jobType"),
    experience_level: str | None = Query(default=None, alias="experienceLevel"),
    salary_min: int | None = Query(default=None, ge=0, alias="salaryMin"),
    salary_max: int | None = Query(default=None, ge=0, alias="salaryMax"),
    skills: str | None = Query(default=None, description="Comma separated; all must match"),
    limit: int = Query(default=20, ge=1, le=100),
    page: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    sort_by: str = Query(default="date", alias="sortBy"),
    db: Session = Depends(get_db),
):
    # An explicit offset wins over page.
    if offset is None:
        offset = ((page or 1) - 1) * limit

    filters = JobFilters(
        search=search,
        location=location,
        job_type=job_type,
        experience_level=experience_level,
        salary_min=salary_min,
        salary_max=salary_max,
        skills=clean_string_list(skills, "skills"),
        limit=limit,
        offset=offset,
        sort_by=sort_by,
    )
    rows, total = job_service.list_postings(db, filters)
    return {
        "success": True,
        "jobs": [job_to_public(job, employer=employer) for job, employer in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/mine")
def list_my_jobs(db: Session = Depends(get_db), user: User = Depends(employer_only)):
    jobs = job_service.list_postings_by_employer(db, employer=user)
    return {"success": True, "jobs": [job_to_public(j) for j in jobs]}


@router.get("/{job_id:int}")
def get_job(job_id: int, db: Session = Depends(get_db)):
    job, employer = job_service.get_posting(db, job_id)
    return {"success": True, "job": job_to_public(job, employer=employer)}


@router.post("", status_code=201)
def create_job(payload: JobCreate, db: Session = Depends(get_db), user: User = Depends(employer_only)):
    job = job_service.create_posting(db, employer=user, fields=payload.model_dump(exclude_unset=True))
    return {"success": True, "job": job_to_public(job)}


@router.put("/{job_id:int}")
def update_job(
    job_id: int,
    payload: JobUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(employer_only),
):
    job = job_service.update_posting(db, job_id=job_id, caller=user, fields=payload.model_dump(exclude_unset=True))
    return {"success": True, "job": job_to_public(job)}


@router.delete("/{job_id:int}")
def delete_job(job_id: int, db: Session = Depends(get_db), user: User = Depends(employer_only)):
    job_service.delete_posting(db, job_id=job_id, caller=user)
    return {"success": True, "deleted_job_id": job_id}
