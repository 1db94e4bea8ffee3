"""
Readiness pipeline errors and data-quality warnings.

Fatal errors abort one computation and carry enough detail for the UI to
prompt corrective action. DataQualityWarning is never raised: it is attached
to results so low-confidence scores can be flagged.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


class ReadinessError(Exception):
    """Base class for fatal readiness computation errors."""

    error_code = "READINESS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InsufficientDataError(ReadinessError):
    """Too few measurement days to compute a baseline or trend."""

    error_code = "INSUFFICIENT_DATA"

    def __init__(self, days_available: int, days_required: int, metric: Optional[str] = None):
        self.days_available = days_available
        self.days_required = days_required
        self.days_remaining = max(0, days_required - days_available)
        subject = f"{metric} " if metric else ""
        super().__init__(
            f"{self.days_remaining} more days of {subject}measurement needed "
            f"({days_available}/{days_required} days available)",
            details={
                "metric": metric,
                "days_available": days_available,
                "days_required": days_required,
                "days_remaining": self.days_remaining,
            },
        )


class InsufficientQualityError(ReadinessError):
    """Enough days were recorded, but too many failed quality checks."""

    error_code = "INSUFFICIENT_QUALITY"

    def __init__(
        self,
        valid_days: int,
        rejected_days: int,
        days_required: int,
        metric: Optional[str] = None,
    ):
        self.valid_days = valid_days
        self.rejected_days = rejected_days
        self.days_required = days_required
        subject = f"{metric} " if metric else ""
        super().__init__(
            f"Only {valid_days} of {valid_days + rejected_days} {subject}measurements "
            f"passed quality checks ({days_required} required). Measure on waking, "
            f"lying still, for at least 2 minutes.",
            details={
                "metric": metric,
                "valid_days": valid_days,
                "rejected_days": rejected_days,
                "days_required": days_required,
            },
        )


class ValidationError(ReadinessError):
    """Malformed or out-of-range input."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, details={"field": field} if field else {})


@dataclass(frozen=True)
class DataQualityWarning:
    """Non-fatal concern about an input; lowers confidence, never aborts."""
    code: str
    message: str
    field: Optional[str] = None
    value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
