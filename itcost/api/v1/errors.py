"""
Domain error -> HTTP status mapping shared by the v1 routers and the
application-level exception handler.
"""
from fastapi import HTTPException, status

from itcost.domain.exceptions import DomainError

STATUS_BY_CODE = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CALCULATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "AUTHENTICATION_FAILED": status.HTTP_401_UNAUTHORIZED,
    "PERMISSION_DENIED": status.HTTP_403_FORBIDDEN,
    "APPROVAL_SCOPE": status.HTTP_403_FORBIDDEN,
    "INVALID_STATUS_TRANSITION": status.HTTP_409_CONFLICT,
    "DUPLICATE_USER": status.HTTP_409_CONFLICT,
    "INVARIANT_VIOLATION": status.HTTP_409_CONFLICT,
    "REFERENCE_IN_USE": status.HTTP_409_CONFLICT,
    "PRICING_NOT_FOUND": status.HTTP_400_BAD_REQUEST,
    "INVALID_EFFECTIVE_RANGE": status.HTTP_400_BAD_REQUEST,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "CSV_IMPORT_ERROR": status.HTTP_400_BAD_REQUEST,
}


def status_for(error: DomainError) -> int:
    return STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST)


def to_http(error: DomainError) -> HTTPException:
    """Translate a domain error into an HTTPException."""
    headers = {"WWW-Authenticate": "Bearer"} if error.code == "AUTHENTICATION_FAILED" else None
    return HTTPException(
        status_code=status_for(error),
        detail={"code": error.code, "message": error.message},
        headers=headers,
    )
