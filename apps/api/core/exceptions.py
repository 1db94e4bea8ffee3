"""
HTTP errors raised by routers.

Every error body carries `detail`, a machine-readable `error_code` and a
`details` dict, so clients branch on codes rather than messages.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any

from services.readiness.errors import ReadinessError


class APIException(HTTPException):
    """HTTPException that serialises to the shared error body."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        return {
            "detail": self.detail,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(APIException):
    """Unknown resource name, e.g. a methodology that is not registered."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class UnprocessableEntityError(APIException):
    """Well-formed request that the readiness computation cannot process."""

    def __init__(self, detail: str, error_code: str = "UNPROCESSABLE", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code,
            details=details,
        )

    @classmethod
    def from_readiness_error(cls, error: ReadinessError) -> "UnprocessableEntityError":
        return cls(detail=error.message, error_code=error.error_code, details=error.details)
