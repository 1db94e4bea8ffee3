"""
Readiness Module

Daily athlete readiness scoring and workout modification:
- Personal HRV / resting-HR baselines with alert bands
- Daily metric assessment against baseline and rolling history
- Wellness questionnaire scoring
- Composite readiness with red/yellow flag precedence
- Workout modification with methodology-specific constraints
- Multi-week trend warnings

Every component is a pure computation over already-fetched data and takes
its thresholds from a MonitoringConfig.
"""

from .baseline import BaselineEstimator, BaselineHistory
from .composite import CompositeReadiness, CompositeReadinessAggregator, ReadinessFactor
from .config import DEFAULT_CONFIG, MonitoringConfig, get_monitoring_config, load_monitoring_config
from .daily_assessment import DailyAssessment, DailyMetricAssessor, MetricStatus, TrendDirection
from .errors import (
    DataQualityWarning,
    InsufficientDataError,
    InsufficientQualityError,
    ReadinessError,
    ValidationError,
)
from .methodologies import METHODOLOGIES, MethodologyRegistry, MethodologyRules, MethodologyVerdict
from .models import (
    Baseline,
    DailySample,
    Metric,
    ModificationDecision,
    ReadinessTier,
    SampleQuality,
    Severity,
)
from .modification import WorkoutModification, WorkoutModificationEngine
from .monitor import DailyReadinessReport, ReadinessMonitor
from .trends import AssessmentRecord, TrendWarning, TrendWarningAnalyzer, TrendWarningReport
from .wellness import QUESTION_CATALOG, WellnessScore, WellnessScorer
from .workouts import Importance, IntervalStructure, PlannedWorkout, WorkoutType

__all__ = [
    'BaselineEstimator',
    'BaselineHistory',
    'CompositeReadiness',
    'CompositeReadinessAggregator',
    'ReadinessFactor',
    'DEFAULT_CONFIG',
    'MonitoringConfig',
    'get_monitoring_config',
    'load_monitoring_config',
    'DailyAssessment',
    'DailyMetricAssessor',
    'MetricStatus',
    'TrendDirection',
    'DataQualityWarning',
    'InsufficientDataError',
    'InsufficientQualityError',
    'ReadinessError',
    'ValidationError',
    'METHODOLOGIES',
    'MethodologyRegistry',
    'MethodologyRules',
    'MethodologyVerdict',
    'Baseline',
    'DailySample',
    'Metric',
    'ModificationDecision',
    'ReadinessTier',
    'SampleQuality',
    'Severity',
    'WorkoutModification',
    'WorkoutModificationEngine',
    'DailyReadinessReport',
    'ReadinessMonitor',
    'AssessmentRecord',
    'TrendWarning',
    'TrendWarningAnalyzer',
    'TrendWarningReport',
    'QUESTION_CATALOG',
    'WellnessScore',
    'WellnessScorer',
    'Importance',
    'IntervalStructure',
    'PlannedWorkout',
    'WorkoutType',
]
