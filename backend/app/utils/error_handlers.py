"""
Centralized error taxonomy, user-friendly messages and the JSON error envelope.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""
    def __init__(self, message: str, status_code: int = 500, errors: list[dict] | None = None):
        self.message = message
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input."""
    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message, status_code=400, errors=errors)


class UnauthenticatedError(AppError):
    """No session, or the session is invalid or expired."""
    def __init__(self, message: str = "Please login to access this feature.", errors: list[dict] | None = None):
        super().__init__(message, status_code=401, errors=errors)


class UnauthorizedError(AppError):
    """Authenticated, but the account has the wrong role."""
    def __init__(self, message: str = "Your account type cannot perform this action.", errors: list[dict] | None = None):
        super().__init__(message, status_code=403, errors=errors)


class ForbiddenError(AppError):
    """Correct role, but not the owner of the resource."""
    def __init__(self, message: str = "You don't have permission to access this resource.", errors: list[dict] | None = None):
        super().__init__(message, status_code=403, errors=errors)


class NotFoundError(AppError):
    """Resource not found error."""
    def __init__(self, message: str = "The requested resource was not found.", errors: list[dict] | None = None):
        super().__init__(message, status_code=404, errors=errors)


class ConflictError(AppError):
    """Duplicate record (application or account)."""
    def __init__(self, message: str = "This record already exists.", errors: list[dict] | None = None):
        super().__init__(message, status_code=400, errors=errors)


class StoreUnavailableError(AppError):
    """Database I/O failure."""
    def __init__(self, message: str = "Database connection issue. Please try again later.", errors: list[dict] | None = None):
        super().__init__(message, status_code=500, errors=errors)


# User-friendly error messages
ERROR_MESSAGES = {
    # Authentication
    "invalid_credentials": "Invalid email or password. Please try again.",
    "email_exists": "An account with this email already exists. Please login instead.",
    "username_exists": "This username is already taken.",
    "session_expired": "Your session has expired. Please login again.",

    # Roles
    "employer_only": "Employer access only.",
    "job_seeker_only": "Job seeker access only.",

    # Jobs
    "job_not_found": "Job posting not found or has been removed.",
    "job_closed": "This job posting is no longer accepting applications.",
    "job_forbidden": "You can only manage your own job postings.",
    "invalid_job_data": "Job information is incomplete. Please fill in all required fields.",

    # Applications
    "already_applied": "You have already applied to this job.",
    "application_not_found": "Application not found. It may have been withdrawn.",
    "application_forbidden": "You can only manage applications for your own job postings.",
    "withdraw_forbidden": "You can only withdraw your own applications.",
    "invalid_transition": "This status change is not allowed.",

    # General
    "unauthorized": "Please login to access this feature.",
    "forbidden": "You don't have permission to access this resource.",
    "not_found": "The requested resource was not found.",
    "server_error": "Something went wrong on our end. Please try again later.",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def handle_database_error(error: Exception, operation: str = "", conflict_message: str | None = None) -> AppError:
    """Map a failed store write to the application error taxonomy."""
    logger.error(f"Database error during {operation}: {error}")

    if isinstance(error, IntegrityError):
        error_str = str(getattr(error, "orig", error)).lower()
        # Detect specific DB errors
        if "duplicate" in error_str or "unique" in error_str:
            return ConflictError(conflict_message or "This record already exists. Please check your input.")
        if "foreign key" in error_str:
            return ValidationError("Invalid reference. The related record may have been deleted.")

    return StoreUnavailableError(get_error_message("database_error"))


def create_error_response(
    status_code: int,
    message: str,
    errors: list | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    content = {
        "success": False,
        "message": message,
    }

    if errors:
        content["errors"] = errors

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


def _request_context(request: Request) -> str:
    return f"{request.method} {request.url.path}"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s failed: %s", _request_context(request), exc.message)
        else:
            logger.warning("%s rejected (%s): %s", _request_context(request), exc.status_code, exc.message)
        return create_error_response(exc.status_code, exc.message, exc.errors)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning("%s rejected (%s): %s", _request_context(request), exc.status_code, exc.detail)
        return create_error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        logger.warning("%s rejected (400): %s", _request_context(request), errors)
        return create_error_response(400, get_error_message("validation_error"), errors)

    @app.exception_handler(OperationalError)
    async def sqlalchemy_operational_error_handler(request: Request, exc: OperationalError):
        logger.exception("%s database OperationalError: %s", _request_context(request), exc)
        return create_error_response(500, get_error_message("database_error"))

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("%s database SQLAlchemyError: %s", _request_context(request), exc)
        return create_error_response(500, get_error_message("database_error"))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("%s unhandled exception: %s", _request_context(request), exc)
        return create_error_response(500, get_error_message("server_error"))
