"""Typed records shared by the storage layer and the analytics services.

Entities mirror the rows kept in ``db.py``; the metric and analysis records
are the outputs of the services and the inputs of the reporting layer.
"""

from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional, Union


# =============================================================================
# Enums
# =============================================================================


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FINISHED = "finished"
    SKIPPED = "skipped"


class WeightFeeling(str, Enum):
    TOO_LIGHT = "too_light"
    PERFECT = "perfect"
    TOO_HEAVY = "too_heavy"


class ProgressionTrend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class TrainingPhase(str, Enum):
    """Mesocycle phases in rotation order (recovery sits outside it)."""

    STRENGTH = "strength"
    HYPERTROPHY = "hypertrophy"
    DEFINITION = "definition"
    RECOVERY = "recovery"


class UserDecision(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class StagnationType(str, Enum):
    STRENGTH = "strength"
    SATISFACTION = "satisfaction"
    FATIGUE = "fatigue"
    VOLUME = "volume"
    NONE = "none"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SuggestedAction(str, Enum):
    CONTINUE = "continue"
    DELOAD = "deload"
    CHANGE_PHASE = "change_phase"
    REST = "rest"
    CHANGE_EXERCISES = "change_exercises"


class ProgressTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class Intensity(str, Enum):
    """Coarse intensity preference, ordered from lightest to hardest."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"

    @classmethod
    def ordered(cls) -> list["Intensity"]:
        return [cls.LOW, cls.MODERATE, cls.HIGH]


class DecisionType(str, Enum):
    PREFERENCE_UPDATE = "preference_update"
    WEIGHT_LEARNING = "weight_learning"


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(ts: str | datetime.datetime | None) -> datetime.datetime | None:
    """Return ``ts`` as timezone-aware datetime in UTC."""
    if ts is None:
        return None
    dt = ts if isinstance(ts, datetime.datetime) else datetime.datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def require_user_id(user_id: Any) -> int:
    """Return ``user_id`` if it is a positive integer, else raise ``ValueError``."""
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise ValueError(f"invalid user id: {user_id!r}")
    return user_id


def require_window(days: Any) -> int:
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise ValueError(f"window days must be a positive integer, got {days!r}")
    return days


def to_plain(obj: Any) -> Any:
    """Convert dataclasses, enums and datetimes into JSON friendly values."""
    if hasattr(obj, "__dataclass_fields__"):
        return {k: to_plain(v) for k, v in asdict(obj).items()}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: to_plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_plain(v) for v in obj]
    return obj


# =============================================================================
# Entities
# =============================================================================


@dataclass
class WorkoutSession:
    id: int
    user_id: int
    started_at: datetime.datetime
    status: SessionStatus = SessionStatus.IN_PROGRESS
    completed_at: Optional[datetime.datetime] = None
    workout_plan_id: Optional[int] = None
    plan_name: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return (
            self.status in (SessionStatus.COMPLETED, SessionStatus.FINISHED)
            or self.completed_at is not None
        )

    @property
    def duration_minutes(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds() / 60


@dataclass
class SetFeedback:
    exercise_log_id: int
    set_rpe: int
    weight_feeling: WeightFeeling
    completed_as_planned: bool = True
    notes: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

    def __post_init__(self) -> None:
        if not 1 <= int(self.set_rpe) <= 10:
            raise ValueError("set_rpe must be between 1 and 10")
        self.weight_feeling = WeightFeeling(self.weight_feeling)


@dataclass
class ExerciseLog:
    """A logged set joined with its session start and optional feedback."""

    id: int
    session_id: int
    exercise_name: str
    set_number: int
    reps_completed: int
    weight_used: float
    rest_time_seconds: Optional[int] = None
    started_at: Optional[datetime.datetime] = None
    plan_name: Optional[str] = None
    feedback: Optional[SetFeedback] = None

    @property
    def volume(self) -> float:
        return self.weight_used * self.reps_completed


@dataclass
class WorkoutFeedback:
    """Post-session feedback, also the input of preference consolidation."""

    rpe: Optional[int] = None
    satisfaction: Optional[int] = None
    fatigue: Optional[int] = None
    progress_feeling: Optional[int] = None
    preferred_exercises: list[str] = field(default_factory=list)
    disliked_exercises: list[str] = field(default_factory=list)
    session_id: Optional[int] = None
    started_at: Optional[datetime.datetime] = None
    plan_name: Optional[str] = None
    session_completed: bool = True

    def __post_init__(self) -> None:
        if self.rpe is not None and not 1 <= self.rpe <= 10:
            raise ValueError("rpe must be between 1 and 10")
        for name in ("satisfaction", "fatigue", "progress_feeling"):
            value = getattr(self, name)
            if value is not None and not 1 <= value <= 5:
                raise ValueError(f"{name} must be between 1 and 5")


@dataclass
class WeightUsage:
    """Weight actually used for an exercise, as reported after a workout."""

    exercise_name: str
    suggested_weight: float
    actual_weight: float
    weight_feedback: Optional[WeightFeeling] = None
    rpe_achieved: Optional[int] = None
    reps_completed: Optional[int] = None
    sets_completed: Optional[int] = None
    session_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.actual_weight < 0 or self.suggested_weight < 0:
            raise ValueError("weights must be non-negative")
        if self.weight_feedback is not None:
            self.weight_feedback = WeightFeeling(self.weight_feedback)
        if self.rpe_achieved is not None and not 1 <= self.rpe_achieved <= 10:
            raise ValueError("rpe_achieved must be between 1 and 10")


@dataclass
class WeightHistoryEntry:
    user_id: int
    exercise_name: str
    workout_date: datetime.date
    suggested_weight: float
    actual_weight: float
    weight_feedback: Optional[WeightFeeling] = None
    rpe_achieved: Optional[int] = None
    reps_completed: Optional[int] = None
    sets_completed: Optional[int] = None
    session_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def progression_percentage(self) -> float:
        if self.suggested_weight <= 0:
            return 0.0
        return (self.actual_weight - self.suggested_weight) / self.suggested_weight * 100

    @property
    def user_override(self) -> bool:
        return abs(self.actual_weight - self.suggested_weight) > 2.5


@dataclass
class WeightSuggestion:
    user_id: int
    exercise_name: str
    suggested_weight: float
    confidence_score: float
    based_on_sessions: int
    progression_trend: ProgressionTrend
    valid_until: datetime.datetime
    last_used_weight: Optional[float] = None
    target_rpe_range: str = "6-8"
    muscle_group: str = "General"
    exercise_type: str = "isolation"
    id: Optional[int] = None

    def is_valid(self, now: datetime.datetime) -> bool:
        return self.valid_until > now


@dataclass
class RestTimePattern:
    user_id: int
    exercise_name: str
    recommended_rest_seconds: int
    actual_rest_seconds: int
    next_set_performance: Optional[int] = None
    fatigue_level: Optional[int] = None
    muscle_group: Optional[str] = None
    session_id: Optional[int] = None
    set_number: Optional[int] = None
    workout_date: Optional[datetime.date] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.actual_rest_seconds < 0 or self.recommended_rest_seconds < 0:
            raise ValueError("rest seconds must be non-negative")


@dataclass
class UserPreferences:
    user_id: int
    preferred_intensity: Intensity = Intensity.MODERATE
    preferred_workout_duration: int = 45
    weekly_frequency: int = 3
    available_training_days: list[str] = field(default_factory=list)
    preferred_exercises: list[str] = field(default_factory=list)
    avoided_exercises: list[str] = field(default_factory=list)


@dataclass
class AIInsights:
    """Long-run training patterns consolidated from a user's recent sessions."""

    user_id: int
    sessions_analyzed: int
    preferred_splits: list[str]
    split_usage: dict[str, int]
    split_completion: dict[str, float]
    average_duration: int
    optimal_duration: int
    best_days: list[str]
    muscle_group_preferences: list[str]
    intensity_pattern: Intensity
    recommendations: list[str]


# Tagged AI decision payloads, one shape per DecisionType.


@dataclass
class PreferenceUpdatePayload:
    feedback: dict[str, Any]
    adjustments: dict[str, str]
    previous: dict[str, Any]
    updated: dict[str, Any]

    decision_type = DecisionType.PREFERENCE_UPDATE


@dataclass
class WeightLearningPayload:
    exercise_name: str
    previous_weight: Optional[float]
    suggested_weight: float
    average_rpe: float
    feeling_counts: dict[str, int]
    progression_trend: ProgressionTrend
    data_points: int

    decision_type = DecisionType.WEIGHT_LEARNING


DecisionPayload = Union[PreferenceUpdatePayload, WeightLearningPayload]

_PAYLOAD_TYPES: dict[DecisionType, type] = {
    DecisionType.PREFERENCE_UPDATE: PreferenceUpdatePayload,
    DecisionType.WEIGHT_LEARNING: WeightLearningPayload,
}


def payload_from_dict(decision_type: DecisionType, data: dict[str, Any]) -> DecisionPayload:
    cls = _PAYLOAD_TYPES[DecisionType(decision_type)]
    if cls is WeightLearningPayload:
        data = dict(data)
        data["progression_trend"] = ProgressionTrend(data["progression_trend"])
    return cls(**data)


@dataclass
class AIDecision:
    user_id: int
    payload: DecisionPayload
    reasoning: str
    confidence: float
    created_at: Optional[datetime.datetime] = None
    id: Optional[int] = None

    @property
    def decision_type(self) -> DecisionType:
        return self.payload.decision_type


# =============================================================================
# Metrics Engine output
# =============================================================================


@dataclass
class StrengthProgress:
    total_volume_kg: float = 0.0
    volume_change: float = 0.0
    average_weight: float = 0.0
    weight_change: float = 0.0
    exercise_count: int = 0


@dataclass
class RpeMetrics:
    average_rpe: float = 0.0
    rpe_change: float = 0.0
    consistency_score: float = 100.0


@dataclass
class FrequencyMetrics:
    muscle_group_frequency: dict[str, int] = field(default_factory=dict)
    exercise_frequency: dict[str, int] = field(default_factory=dict)
    weekly_frequency: int = 0


@dataclass
class ProgressMetrics:
    strength_progress: StrengthProgress = field(default_factory=StrengthProgress)
    rpe_metrics: RpeMetrics = field(default_factory=RpeMetrics)
    frequency_metrics: FrequencyMetrics = field(default_factory=FrequencyMetrics)


@dataclass
class AdherenceMetrics:
    completion_rate: float = 0.0
    streak_days: int = 0
    average_workout_duration: float = 0.0
    preferred_workout_times: list[str] = field(default_factory=list)
    missed_workouts: int = 0
    total_planned_workouts: int = 0
    weekly_pattern: list[int] = field(default_factory=list)
    available_training_days: list[str] = field(default_factory=list)


@dataclass
class SplitEffectiveness:
    split_name: str
    average_satisfaction: float
    average_rpe: float
    completion_rate: float
    progress_score: float
    sessions: int


@dataclass
class ExercisePreference:
    exercise_name: str
    preference_score: int
    average_rpe: float


@dataclass
class EffectivenessMetrics:
    top_splits: list[SplitEffectiveness] = field(default_factory=list)
    top_exercises: list[ExercisePreference] = field(default_factory=list)
    satisfaction_trend: float = 0.0
    average_satisfaction: float = 0.0
    average_fatigue: float = 0.0
    feedback_count: int = 0


# =============================================================================
# Periodization output
# =============================================================================


@dataclass
class PeriodizationData:
    """Snapshot the stagnation rules are evaluated against."""

    current_phase: TrainingPhase = TrainingPhase.HYPERTROPHY
    weeks_in_phase: int = 0
    progress_trend: ProgressTrend = ProgressTrend.STABLE
    avg_rpe: float = 0.0
    avg_satisfaction: float = 3.0
    avg_fatigue: float = 3.0
    volume_change: float = 0.0


@dataclass
class StagnationAnalysis:
    is_stagnant: bool
    stagnation_type: StagnationType
    severity: Severity
    confidence: float
    suggested_action: SuggestedAction
    suggested_phase: TrainingPhase
    indicators: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    analysis_id: Optional[int] = None


@dataclass
class PeriodizationAnalysis:
    """Stored analysis run; ``user_decision`` is the only mutable field."""

    user_id: int
    analysis_date: datetime.date
    current_phase: TrainingPhase
    weeks_in_phase: int
    progress_trend: ProgressTrend
    avg_rpe: float
    avg_satisfaction: float
    avg_fatigue: float
    stagnation_detected: bool
    stagnation_type: StagnationType
    severity: Severity
    recommended_action: SuggestedAction
    recommended_phase: TrainingPhase
    confidence_score: float
    indicators: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    user_decision: UserDecision = UserDecision.PENDING
    user_feedback: Optional[str] = None
    id: Optional[int] = None


@dataclass
class IntelligentSuggestion:
    type: str
    priority: str
    title: str
    message: str
    action: str


@dataclass
class TransitionPlan:
    from_phase: TrainingPhase
    to_phase: TrainingPhase
    duration: str
    changes: list[str]
    focus: str
    warning: str
    personalized_tips: list[str] = field(default_factory=list)
    adaptation_days: int = 7


# =============================================================================
# Reports
# =============================================================================


@dataclass
class WeeklySummary:
    workouts_completed: int = 0
    total_duration: float = 0.0
    average_rpe: float = 0.0
    average_satisfaction: float = 0.0
    top_plans: list[str] = field(default_factory=list)
    achievements: list[str] = field(default_factory=list)


@dataclass
class WeeklyReport:
    user_id: int
    week_start: datetime.date
    week_end: datetime.date
    summary: WeeklySummary
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class MonthlyReport:
    user_id: int
    month_start: datetime.date
    month_end: datetime.date
    total_workouts: int
    adherence_rate: float
    strength_progress: float
    favourite_exercises: list[str]
    improvements: list[str]
    rpe_trend: float
    satisfaction_trend: float
    volume_trend: float
    achieved_goals: list[str] = field(default_factory=list)
    suggested_goals: list[str] = field(default_factory=list)


@dataclass
class WeeklyProgress:
    completed: int
    goal: int
    percentage: int
