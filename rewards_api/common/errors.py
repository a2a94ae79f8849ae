# rewards_api/common/errors.py
from flask import Blueprint, current_app
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError
from rewards_api.common.http import fail

bp_errors = Blueprint("errors", __name__)


class APIError(Exception):
    """Custom API Error class."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


class ValidationError(APIError):
    """Malformed input; raised before anything touches the store."""
    def __init__(self, message, errors=None):
        super().__init__("VALIDATION_ERROR", message, status_code=422, payload=errors)
        self.errors = errors or []


class NotFoundError(APIError):
    def __init__(self, message="Not found"):
        super().__init__("NOT_FOUND", message, status_code=404)


class BusinessLogicError(APIError):
    """
    A reward rule was violated: inactive type, ineligible employee,
    unsupported calculation method, invalid state transition.
    `details` is returned to the client as-is.
    """
    def __init__(self, message, details=None):
        super().__init__("BUSINESS_RULE", message, status_code=400, payload=details)
        self.details = details


class ConflictError(APIError):
    """Payroll-locked void/delete attempts and referenced-type deletes."""
    def __init__(self, message, details=None):
        super().__init__("CONFLICT", message, status_code=409, payload=details)
        self.details = details


@bp_errors.app_errorhandler(APIError)
def _api_error(e: APIError):
    if isinstance(e, ValidationError):
        return fail(message=e.message, status=e.status_code, code=e.code, errors=e.errors)
    return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

@bp_errors.app_errorhandler(HTTPException)
def _http(e: HTTPException):
    return fail(message=e.description or "HTTP error", status=e.code or 400)

@bp_errors.app_errorhandler(IntegrityError)
def _integrity(e: IntegrityError):
    # 409 for unique/FK violations
    return fail(message="Conflict / integrity error", status=409, code="CONSTRAINT_ERROR",
                detail=str(e.orig) if getattr(e, "orig", None) else str(e))

@bp_errors.app_errorhandler(Exception)
def _unhandled(e: Exception):
    current_app.logger.exception(e)
    return fail(message="Internal Server Error", status=500, detail=str(e))
