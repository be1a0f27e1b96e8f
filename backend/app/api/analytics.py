from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.analytics_service import compute_summary

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("")
def analytics_summary(db: Session = Depends(get_db)):
    return {"success": True, "analytics": compute_summary(db)}
