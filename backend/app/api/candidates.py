from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..services import account_service
from ..utils.roles import employer_only
from ..utils.serializers import user_to_public
from ..utils.validation import clean_string_list

router = APIRouter(prefix="/candidates", tags=["Candidates"])


@router.get("")
def search_candidates(
    search: str | None = Query(default=None),
    skills: str | None = Query(default=None, description="Comma separated; all must match"),
    location: str | None = Query(default=None),
    experience: str | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    page: int = Query(default=1, ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(employer_only),
):
    offset = (page - 1) * limit
    candidates, total = account_service.search_candidates(
        db,
        search=search,
        skills=clean_string_list(skills, "skills"),
        location=location,
        experience=experience,
        limit=limit,
        offset=offset,
    )
    return {
        "success": True,
        "candidates": [user_to_public(c) for c in candidates],
        "total": total,
        "page": page,
        "limit": limit,
    }
