# cores/exceptions.py
"""
Error taxonomy shared by the catalog, the exam engine and the HTTP layer.

Every business-rule failure is an APIException so DRF maps it to a status
code; `api_exception_handler` renders them as `{"message", "code"}` and turns
anything unexpected into an opaque 500.
"""
import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

# DRF already ships the 400 validation error; re-export it under our name.
ValidationError = exceptions.ValidationError


class NotFoundError(exceptions.NotFound):
    default_detail = "Not found."
    default_code = "NOT_FOUND"


class AuthError(exceptions.AuthenticationFailed):
    default_detail = "Unauthorized"
    default_code = "UNAUTHORIZED"


class ConflictError(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists."
    default_code = "CONFLICT"


# --- Business-rule violations (400) ---

class BusinessRuleError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request violates an exam rule."
    default_code = "INVALID"


class ExpiredError(BusinessRuleError):
    default_detail = "Exam link has expired"
    default_code = "EXPIRED"


class AlreadyCompletedError(BusinessRuleError):
    default_detail = "Exam has already been completed"
    default_code = "COMPLETED"


class InsufficientQuestionsError(BusinessRuleError):
    default_detail = "Not enough questions available."
    default_code = "INSUFFICIENT_QUESTIONS"


class InvalidStateError(BusinessRuleError):
    default_detail = "Exam is not in a state that allows this operation."
    default_code = "INVALID_STATE"


class NoOtpError(BusinessRuleError):
    default_detail = "No OTP generated"
    default_code = "NO_OTP"


class InvalidOtpError(BusinessRuleError):
    default_detail = "Invalid OTP"
    default_code = "INVALID_OTP"


def _first_message(detail):
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
        return ""
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ""
    return str(detail)


def api_exception_handler(exc, context):
    """Render API errors as {"message": ..., "code": ...}; hide everything else behind a 500."""
    response = exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}")
        return Response(
            {"message": "Internal server error", "code": "INTERNAL"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = {
            "message": "Validation failed",
            "code": "VALIDATION",
            "errors": exc.detail,
        }
        return response

    if isinstance(exc, exceptions.APIException):
        codes = exc.get_codes()
        # DRF built-ins use lower-case codes (not_authenticated, ...)
        code = (codes if isinstance(codes, str) else exc.default_code).upper()
    else:
        # Http404 / PermissionDenied raised by Django helpers
        code = "NOT_FOUND" if response.status_code == status.HTTP_404_NOT_FOUND else "ERROR"

    response.data = {"message": _first_message(response.data), "code": code}
    return response
