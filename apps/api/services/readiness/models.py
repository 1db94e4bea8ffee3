"""
Shared types for the readiness pipeline.

Raw inputs (DailySample), the baseline snapshot, and the enums used across
the assessment, composite and modification steps. All results serialise to
plain JSON-ready dicts via to_plain().
"""

from dataclasses import dataclass, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from services.readiness.errors import DataQualityWarning


class Metric(str, Enum):
    HRV = "hrv"     # RMSSD, ms
    RHR = "rhr"     # Resting heart rate, bpm


class SampleQuality(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_ORDER = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class ReadinessTier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    SUBOPTIMAL = "suboptimal"
    POOR = "poor"
    CRITICAL = "critical"


class ModificationDecision(str, Enum):
    PROCEED = "proceed"
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CANCEL = "cancel"


# Higher = stricter
DECISION_ORDER = {
    ModificationDecision.PROCEED: 0,
    ModificationDecision.MINOR: 1,
    ModificationDecision.MODERATE: 2,
    ModificationDecision.MAJOR: 3,
    ModificationDecision.CANCEL: 4,
}

TIER_DECISIONS = {
    ReadinessTier.EXCELLENT: ModificationDecision.PROCEED,
    ReadinessTier.GOOD: ModificationDecision.PROCEED,
    ReadinessTier.MODERATE: ModificationDecision.MINOR,
    ReadinessTier.SUBOPTIMAL: ModificationDecision.MODERATE,
    ReadinessTier.POOR: ModificationDecision.MAJOR,
    ReadinessTier.CRITICAL: ModificationDecision.CANCEL,
}


def stricter(a: ModificationDecision, b: ModificationDecision) -> ModificationDecision:
    return a if DECISION_ORDER[a] >= DECISION_ORDER[b] else b


@dataclass(frozen=True)
class DailySample:
    """One calendar day of raw inputs. Immutable once recorded."""
    date: date
    hrv_rmssd: Optional[float] = None
    resting_hr: Optional[float] = None
    sleep_hours: Optional[float] = None
    wellness: Optional[Dict[str, float]] = None
    quality: SampleQuality = SampleQuality.GOOD
    artifact_percent: Optional[float] = None
    measurement_seconds: Optional[int] = None

    def value_for(self, metric: Metric) -> Optional[float]:
        return self.hrv_rmssd if metric == Metric.HRV else self.resting_hr


@dataclass(frozen=True)
class Baseline:
    """
    Versioned baseline snapshot for one athlete and one metric.

    Never updated in place: a recomputation produces a new snapshot that
    supersedes this one (see BaselineHistory).
    """
    athlete_id: str
    metric: Metric
    computed_at: datetime
    mean: float
    std_dev: float
    coefficient_of_variation: float
    normal_threshold: float
    yellow_threshold: float
    red_threshold: float
    sample_days: int
    rejected_days: int = 0
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    is_stable: bool = True
    version: int = 1
    warnings: Tuple[DataQualityWarning, ...] = ()

    @property
    def key(self) -> Tuple[str, Metric, datetime]:
        return (self.athlete_id, self.metric, self.computed_at)

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


def to_plain(value: Any) -> Any:
    """Convert dataclasses / enums / dates into JSON-serialisable data."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {
            (k.value if isinstance(k, Enum) else k): to_plain(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value
