"""
Readiness Monitoring Rules

Every threshold, weight and breakpoint used by the readiness pipeline.
These are DEFAULTS: the weights and breakpoints have not been validated
empirically and are expected to be tuned per deployment.

Overrides can be loaded from YAML without code changes:

    # monitoring_rules.yaml
    composite:
      weights:
        hrv: 3.5
    wellness:
      excellent_threshold: 8.0

    config = load_monitoring_config("monitoring_rules.yaml")

Components take a MonitoringConfig in their constructor and fall back to
DEFAULT_CONFIG, so tests can substitute rules freely.
"""

from dataclasses import dataclass, field, fields, is_dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
import logging

import yaml

from services.readiness.errors import ValidationError

logger = logging.getLogger(__name__)


# (lower bound, score) pairs, evaluated top-down: first bound met wins.
Breakpoints = Tuple[Tuple[float, float], ...]


@dataclass(frozen=True)
class BaselineConfig:
    min_days: int = 14
    window_days: int = 21
    recalculation_days: int = 42        # Supersede after ~6 weeks

    hrv_plausible_range: Tuple[float, float] = (10.0, 200.0)
    rhr_plausible_range: Tuple[float, float] = (35.0, 100.0)
    max_artifact_percent: float = 10.0  # Above this a sample is discarded

    # Bands are mean -/+ k * SD (below for HRV, above for RHR)
    normal_sd_multiple: float = 0.5
    yellow_sd_multiple: float = 1.0
    red_sd_multiple: float = 1.5
    min_std_dev: float = 1.0            # Keeps bands strictly ordered

    hrv_max_stable_cv: float = 0.20
    rhr_max_stable_cv: float = 0.15
    max_rejection_ratio: float = 0.30


@dataclass(frozen=True)
class DailyAssessmentConfig:
    history_days: int = 7
    elevated_sd_multiple: float = 2.0   # HRV above mean + 2 SD is suspicious
    chronic_days: int = 3
    rhr_chronic_deviation_bpm: float = 3.0

    # Trend slope as % of baseline mean per day
    trend_min_points: int = 3
    improving_slope_pct: float = 1.0
    stable_slope_pct: float = -1.0
    mild_decline_slope_pct: float = -3.0

    warn_artifact_percent: float = 5.0
    min_measurement_seconds: int = 120


@dataclass(frozen=True)
class WellnessConfig:
    excellent_threshold: float = 8.5
    good_threshold: float = 7.0
    moderate_threshold: float = 5.5
    poor_threshold: float = 4.5

    injury_flag_below: float = 7.0
    injury_red_flag_below: float = 5.0
    sleep_quality_flag_below: float = 4.0

    # Hours slept -> 1-10 score
    sleep_hours_steps: Breakpoints = (
        (9.0, 10.0),
        (8.0, 9.0),
        (7.0, 7.0),
        (6.0, 5.0),
        (5.0, 3.0),
        (0.0, 1.0),
    )
    max_sleep_hours: float = 14.0


@dataclass(frozen=True)
class CompositeConfig:
    weights: Dict[str, float] = field(default_factory=lambda: {
        "hrv": 3.0,
        "rhr": 2.0,
        "wellness": 2.5,
        "acwr": 2.0,
        "sleep": 1.5,
    })

    # HRV % of baseline -> score
    hrv_breakpoints: Breakpoints = (
        (95.0, 10.0),
        (90.0, 8.0),
        (85.0, 6.0),
        (80.0, 4.0),
        (75.0, 2.0),
    )
    hrv_elevated_cap: float = 5.0
    chronic_cap: float = 4.0

    # RHR deviation (bpm) -> score, upper bounds evaluated top-down
    rhr_breakpoints: Breakpoints = (
        (2.0, 10.0),
        (3.0, 8.0),
        (5.0, 6.0),
        (7.0, 4.0),
        (10.0, 2.0),
    )

    acwr_optimal: Tuple[float, float] = (0.8, 1.0)
    acwr_elevated_max: float = 1.3
    acwr_high_max: float = 1.5
    acwr_detraining_min: float = 0.5

    sleep_breakpoints: Breakpoints = (
        (8.0, 10.0),
        (7.0, 8.0),
        (6.0, 6.0),
        (5.0, 4.0),
        (4.0, 2.0),
    )

    red_flag_max: float = 2.0
    yellow_flag_max: float = 5.0
    red_flags_for_critical: int = 2
    yellow_flags_for_suboptimal: int = 3

    excellent_threshold: float = 8.5
    good_threshold: float = 7.5
    moderate_threshold: float = 6.5
    suboptimal_threshold: float = 5.5


@dataclass(frozen=True)
class ModificationConfig:
    reassess_min_hours: int = 24
    reassess_max_hours: int = 48
    resume_score_after_cancel: float = 6.5
    resume_score_after_major: float = 7.5

    easy_conversion_minutes: int = 40
    easy_conversion_pace_offset: int = 60      # sec/km slower
    easy_shorten_factor: float = 0.6

    threshold_duration_factor: float = 0.75
    threshold_rep_factor: float = 0.75
    intervals_duration_factor: float = 0.8
    intervals_rep_factor: float = 0.67
    long_run_duration_factor: float = 0.8
    long_run_pace_offset: int = 15
    easy_duration_factor: float = 0.8
    moderate_pace_offset: int = 10
    recovery_extension_factor: float = 1.3

    minor_pace_offset: int = 5
    minor_volume_factor: float = 0.9

    # Double-threshold protocol
    norwegian_min_composite: float = 7.5
    norwegian_cancel_below: float = 6.0
    norwegian_max_rhr_deviation: float = 3.0
    norwegian_min_hrv_percent: float = 90.0
    norwegian_single_session_factor: float = 0.6

    # Single-threshold protocol
    singles_min_composite: float = 7.0
    singles_easy_above: float = 6.0
    singles_easy_minutes: int = 60
    singles_recovery_minutes: int = 30


@dataclass(frozen=True)
class TrendConfig:
    min_days: int = 14
    max_days: int = 30

    suppression_percent: float = 85.0
    suppression_days: int = 7
    suppression_critical_days: int = 10

    paradox_percent: float = 130.0
    paradox_sessions: int = 3

    rhr_elevation_bpm: float = 5.0
    rhr_elevation_days: int = 5
    rhr_elevation_window: int = 7

    benchmark_sessions: int = 3
    benchmark_decline_percent: float = 3.0
    good_readiness_score: float = 7.5

    modification_window_days: int = 28
    modification_min_sessions: int = 6
    modification_rate_warning: float = 0.40
    modification_rate_high: float = 0.50

    injury_reports: int = 3
    injury_report_below: float = 7.0
    injury_stop_below: float = 6.0

    wellness_window: int = 7
    wellness_slope_warning: float = -0.3
    wellness_slope_high: float = -0.6


@dataclass(frozen=True)
class MonitoringConfig:
    baseline: BaselineConfig = field(default_factory=BaselineConfig)
    daily: DailyAssessmentConfig = field(default_factory=DailyAssessmentConfig)
    wellness: WellnessConfig = field(default_factory=WellnessConfig)
    composite: CompositeConfig = field(default_factory=CompositeConfig)
    modification: ModificationConfig = field(default_factory=ModificationConfig)
    trends: TrendConfig = field(default_factory=TrendConfig)


DEFAULT_CONFIG = MonitoringConfig()


def _coerce(current: Any, value: Any, path: str) -> Any:
    """Shape a YAML value like the default it replaces."""
    if isinstance(current, dict):
        if not isinstance(value, dict):
            raise ValidationError(f"{path} must be a mapping", field=path)
        unknown = set(value) - set(current)
        if unknown:
            raise ValidationError(f"Unknown keys in {path}: {sorted(unknown)}", field=path)
        merged = dict(current)
        merged.update({k: float(v) for k, v in value.items()})
        return merged
    if isinstance(current, tuple):
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"{path} must be a list", field=path)
        return tuple(tuple(v) if isinstance(v, list) else v for v in value)
    if isinstance(current, bool) or not isinstance(current, (int, float)):
        return value
    try:
        return type(current)(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{path} must be numeric, got {value!r}", field=path)


def _merge_section(section: Any, overrides: Dict[str, Any], name: str) -> Any:
    known = {f.name for f in fields(section)}
    unknown = set(overrides) - known
    if unknown:
        raise ValidationError(f"Unknown keys in {name}: {sorted(unknown)}", field=name)
    changes = {
        key: _coerce(getattr(section, key), value, f"{name}.{key}")
        for key, value in overrides.items()
    }
    return replace(section, **changes)


def config_from_dict(data: Optional[Dict[str, Any]]) -> MonitoringConfig:
    """Deep-merge a nested mapping of overrides onto DEFAULT_CONFIG."""
    if not data:
        return DEFAULT_CONFIG
    if not isinstance(data, dict):
        raise ValidationError("Monitoring rules must be a mapping of sections")

    sections = {f.name for f in fields(MonitoringConfig)}
    unknown = set(data) - sections
    if unknown:
        raise ValidationError(f"Unknown rule sections: {sorted(unknown)}")

    changes = {}
    for name, overrides in data.items():
        current = getattr(DEFAULT_CONFIG, name)
        if not is_dataclass(current) or not isinstance(overrides, dict):
            raise ValidationError(f"Section {name} must be a mapping", field=name)
        changes[name] = _merge_section(current, overrides, name)
    return replace(DEFAULT_CONFIG, **changes)


def load_monitoring_config(path: Union[str, Path]) -> MonitoringConfig:
    """Load rule overrides from a YAML file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    config = config_from_dict(data)
    logger.info(f"Loaded monitoring rules from {path} ({len(data)} sections overridden)")
    return config


@lru_cache(maxsize=1)
def get_monitoring_config() -> MonitoringConfig:
    """
    Process-wide rules: defaults, or the YAML file named by
    MONITORING_RULES_PATH. Call get_monitoring_config.cache_clear() to reload.
    """
    from core.config import settings

    if settings.MONITORING_RULES_PATH:
        return load_monitoring_config(settings.MONITORING_RULES_PATH)
    return DEFAULT_CONFIG
