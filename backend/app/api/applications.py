from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..services import application_service
from ..utils.dependencies import get_current_user
from ..utils.roles import employer_only, job_seeker_only
from ..utils.serializers import application_to_public

router = APIRouter(prefix="/applications", tags=["Applications"])


class ApplyRequest(BaseModel):
    jobId: int
    coverLetter: str | None = None


class StatusUpdate(BaseModel):
    status: str


def _listing(rows) -> list[dict]:
    return [application_to_public(a, job=job, candidate=candidate) for a, job, candidate in rows]


@router.post("", status_code=201)
def apply(payload: ApplyRequest, db: Session = Depends(get_db), user: User = Depends(job_seeker_only)):
    application = application_service.apply(
        db, candidate=user, job_id=payload.jobId, cover_letter=payload.coverLetter
    )
    return {"success": True, "application": application_to_public(application)}


@router.delete("/{job_id:int}")
def withdraw(job_id: int, db: Session = Depends(get_db), user: User = Depends(job_seeker_only)):
    application_service.withdraw(db, caller=user, job_id=job_id, candidate_id=user.id)
    return {"success": True, "message": "Application withdrawn", "job_id": job_id}


@router.put("/{application_id:int}/status")
def update_status(
    application_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(employer_only),
):
    application = application_service.transition_status(
        db, application_id=application_id, caller=user, new_status=payload.status
    )
    return {"success": True, "application": application_to_public(application)}


@router.get("/job/{job_id:int}")
def list_for_job(job_id: int, db: Session = Depends(get_db), user: User = Depends(employer_only)):
    rows = application_service.list_by_posting(db, job_id=job_id, caller=user)
    return {"success": True, "applications": _listing(rows)}


@router.get("/candidate/{candidate_id:int}")
def list_for_candidate(candidate_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    rows = application_service.list_by_candidate(db, candidate_id=candidate_id, caller=user)
    return {"success": True, "applications": _listing(rows)}


@router.get("/employer/{employer_id:int}")
def list_for_employer(employer_id: int, db: Session = Depends(get_db), user: User = Depends(employer_only)):
    rows = application_service.list_by_employer(db, employer_id=employer_id, caller=user)
    return {"success": True, "applications": _listing(rows)}
