from fastapi import Depends

from ..models.user import Role, User
from .dependencies import get_current_user
from .error_handlers import UnauthorizedError, get_error_message


def _role_required(required_role: Role):
    def check_role(user: User = Depends(get_current_user)) -> User:
        if user.role != required_role.value:
            raise UnauthorizedError(get_error_message(f"{required_role.value}_only"))
        return user
    return check_role


employer_only = _role_required(Role.EMPLOYER)
job_seeker_only = _role_required(Role.JOB_SEEKER)
