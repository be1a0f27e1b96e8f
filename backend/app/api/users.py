from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..services import account_service
from ..utils.dependencies import get_current_user
from ..utils.serializers import user_to_public

router = APIRouter(tags=["Users"])


class AccountUpdate(BaseModel):
    username: str | None = None
    email: str | None = None
    role: str | None = None
    profileData: dict | None = None


class ProfileUpdate(BaseModel):
    username: str | None = None
    profileData: dict | None = None


def _fields(payload: BaseModel) -> dict:
    # Only what the client actually sent; profileData maps onto the column name.
    sent = payload.model_dump(exclude_unset=True)
    if "profileData" in sent:
        sent["profile_data"] = sent.pop("profileData")
    return sent


@router.patch("/users/{user_id:int}")
def update_account(
    user_id: int,
    payload: AccountUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    updated = account_service.update_account(db, user_id=user_id, caller=user, fields=_fields(payload))
    return {"success": True, "user": user_to_public(updated)}


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    updated = account_service.update_profile(db, caller=user, fields=_fields(payload))
    return {"success": True, "user": user_to_public(updated)}
