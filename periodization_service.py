from __future__ import annotations

import datetime
import logging
from typing import Callable, Optional

from algorithms import MathTools
from analytics_service import AnalyticsService
from db import PeriodizationAnalysisRepository
from localization import Translator
from models import (
    IntelligentSuggestion,
    PeriodizationAnalysis,
    PeriodizationData,
    ProgressMetrics,
    ProgressTrend,
    Severity,
    StagnationAnalysis,
    StagnationType,
    SuggestedAction,
    TrainingPhase,
    TransitionPlan,
    UserDecision,
    require_user_id,
    utcnow,
)

logger = logging.getLogger(__name__)

PHASE_ROTATION = {
    TrainingPhase.STRENGTH: TrainingPhase.HYPERTROPHY,
    TrainingPhase.HYPERTROPHY: TrainingPhase.DEFINITION,
    TrainingPhase.DEFINITION: TrainingPhase.STRENGTH,
    TrainingPhase.RECOVERY: TrainingPhase.HYPERTROPHY,
}

_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}
_PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}

STAGNATION_THRESHOLD = 0.3

# (from, to) -> (duration, changes, focus, warning, adaptation days)
TRANSITION_PLANS = {
    (TrainingPhase.STRENGTH, TrainingPhase.HYPERTROPHY): (
        "1 week of transition",
        [
            "Reduce weight by 10-15%",
            "Increase reps to 8-12",
            "Cut rest to 60-90 seconds",
            "Add isolation exercises",
        ],
        "Adapting to higher volume",
        "Expect more muscle fatigue during the first days",
        5,
    ),
    (TrainingPhase.HYPERTROPHY, TrainingPhase.DEFINITION): (
        "1-2 weeks of transition",
        [
            "Reduce weight by 15-20%",
            "Increase reps to 15-20",
            "Cut rest to 30-60 seconds",
            "Add cardio between sets",
        ],
        "Cardiovascular adaptation",
        "Higher cardiovascular demand",
        10,
    ),
    (TrainingPhase.DEFINITION, TrainingPhase.STRENGTH): (
        "2 weeks of transition",
        [
            "Increase weight gradually",
            "Reduce reps to 5-8",
            "Increase rest to 2-3 minutes",
            "Focus on compound exercises",
        ],
        "Neuromuscular readaptation",
        "The nervous system takes time to readapt",
        14,
    ),
}
GENERIC_PLAN = (
    "1-2 weeks",
    ["Adjust parameters gradually"],
    "Smooth transition",
    "Listen to your body during the change",
    7,
)


def progress_trend(progress: ProgressMetrics) -> ProgressTrend:
    volume_change = progress.strength_progress.volume_change
    rpe_change = progress.rpe_metrics.rpe_change
    if volume_change > 10 and rpe_change <= 0.5:
        return ProgressTrend.IMPROVING
    if volume_change < -5 or rpe_change > 1:
        return ProgressTrend.DECLINING
    return ProgressTrend.STABLE


def next_phase(current: TrainingPhase, stagnation_type: StagnationType) -> TrainingPhase:
    if stagnation_type is StagnationType.FATIGUE:
        return TrainingPhase.RECOVERY
    return PHASE_ROTATION[TrainingPhase(current)]


class PeriodizationService:
    """Detect training stagnation and recommend phase changes.

    Every analysis is appended with a pending decision. The user's
    accept/reject answer is stored by :meth:`update_user_decision` and is not
    acted on by the analyzer.
    """

    def __init__(
        self,
        analytics: AnalyticsService,
        analysis_repo: PeriodizationAnalysisRepository,
        window_days: int = 21,
        translator: Translator | None = None,
        now: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.analytics = analytics
        self.analyses = analysis_repo
        self.window_days = window_days
        self.translator = translator or Translator()
        self._now = now

    def _(self, text: str, **kwargs) -> str:
        return self.translator.gettext(text, **kwargs)

    def build_snapshot(self, user_id: int) -> PeriodizationData:
        """Collect the metrics the stagnation rules are evaluated against."""
        progress = self.analytics.compute_progress(user_id, self.window_days)
        effectiveness = self.analytics.compute_effectiveness(user_id, self.window_days)
        previous = self.analyses.fetch_latest(user_id)
        return PeriodizationData(
            current_phase=previous.current_phase if previous else TrainingPhase.HYPERTROPHY,
            weeks_in_phase=previous.weeks_in_phase if previous else 0,
            progress_trend=progress_trend(progress),
            avg_rpe=progress.rpe_metrics.average_rpe,
            avg_satisfaction=effectiveness.satisfaction_trend + 3,
            avg_fatigue=effectiveness.average_fatigue or 3.0,
            volume_change=progress.strength_progress.volume_change,
        )

    def detect_stagnation(self, data: PeriodizationData) -> StagnationAnalysis:
        """Evaluate the indicator rules against ``data``.

        Each rule that fires adds to a heuristic confidence score; the first
        rule to fire sets the stagnation type and severity only ever rises.
        """
        indicators: list[str] = []
        recommendations: list[str] = []
        stagnation_type = StagnationType.NONE
        severity = Severity.LOW
        confidence = 0.0

        def fire(kind: Optional[StagnationType], level: Severity, weight: float,
                 indicator: str, recommendation: str) -> None:
            nonlocal stagnation_type, severity, confidence
            indicators.append(indicator)
            recommendations.append(recommendation)
            if kind is not None and stagnation_type is StagnationType.NONE:
                stagnation_type = kind
            if _SEVERITY_RANK[level] > _SEVERITY_RANK[severity]:
                severity = level
            confidence += weight

        if abs(data.volume_change) < 5 and data.weeks_in_phase >= 3:
            fire(
                StagnationType.STRENGTH,
                Severity.HIGH if data.weeks_in_phase >= 6 else Severity.MEDIUM,
                0.30,
                self._("Strength progress stalled (<5% over 3+ weeks)"),
                self._("Change the rep range or increase intensity"),
            )
        if data.avg_rpe >= 8.5:
            fire(
                StagnationType.FATIGUE,
                Severity.HIGH,
                0.25,
                self._("Very high average RPE (>=8.5), possible overreaching"),
                self._("Reduce intensity or take a deload week"),
            )
        elif data.avg_rpe <= 5:
            fire(
                StagnationType.STRENGTH,
                Severity.MEDIUM,
                0.20,
                self._("Very low average RPE (<=5), not enough stimulus"),
                self._("Increase training intensity or volume"),
            )
        if data.avg_satisfaction <= 2.5:
            fire(
                StagnationType.SATISFACTION,
                Severity.HIGH if data.avg_satisfaction <= 2 else Severity.MEDIUM,
                0.20,
                self._("Low satisfaction (<=2.5), possible boredom or low motivation"),
                self._("Introduce new exercises or change the training style"),
            )
        if data.volume_change < -10:
            fire(
                StagnationType.VOLUME,
                Severity.MEDIUM,
                0.15,
                self._("Training volume declining (>10% drop)"),
                self._("Review recovery capacity and adherence to the plan"),
            )
        if data.weeks_in_phase >= 8:
            fire(
                None,
                Severity.HIGH,
                0.10,
                self._(
                    "Long time in {phase} phase ({weeks} weeks)",
                    phase=self._(TrainingPhase(data.current_phase).value),
                    weeks=data.weeks_in_phase,
                ),
                self._("Time to change training phase"),
            )

        confidence = round(MathTools.clamp(confidence, 0.0, 1.0), 2)
        return StagnationAnalysis(
            is_stagnant=bool(indicators) and confidence >= STAGNATION_THRESHOLD,
            stagnation_type=stagnation_type,
            severity=severity,
            confidence=confidence,
            suggested_action=self._suggested_action(data, stagnation_type, severity),
            suggested_phase=next_phase(data.current_phase, stagnation_type),
            indicators=indicators,
            recommendations=recommendations,
        )

    @staticmethod
    def _suggested_action(
        data: PeriodizationData, stagnation_type: StagnationType, severity: Severity
    ) -> SuggestedAction:
        if data.avg_rpe >= 8.5 or severity is Severity.HIGH:
            return SuggestedAction.REST if data.avg_fatigue >= 4 else SuggestedAction.DELOAD
        if stagnation_type is StagnationType.SATISFACTION:
            return SuggestedAction.CHANGE_EXERCISES
        if stagnation_type is StagnationType.STRENGTH and data.weeks_in_phase >= 6:
            return SuggestedAction.CHANGE_PHASE
        if data.weeks_in_phase >= 8:
            return SuggestedAction.CHANGE_PHASE
        return SuggestedAction.CONTINUE

    def analyze_stagnation(self, user_id: int) -> StagnationAnalysis:
        """Analyze the last window of training and append the result."""
        require_user_id(user_id)
        logger.info("analyzing stagnation for user %s", user_id)
        data = self.build_snapshot(user_id)
        analysis = self.detect_stagnation(data)
        analysis.analysis_id = self.analyses.append(
            PeriodizationAnalysis(
                user_id=user_id,
                analysis_date=self._now().date(),
                current_phase=data.current_phase,
                weeks_in_phase=data.weeks_in_phase + 1,
                progress_trend=data.progress_trend,
                avg_rpe=data.avg_rpe,
                avg_satisfaction=data.avg_satisfaction,
                avg_fatigue=data.avg_fatigue,
                stagnation_detected=analysis.is_stagnant,
                stagnation_type=analysis.stagnation_type,
                severity=analysis.severity,
                recommended_action=analysis.suggested_action,
                recommended_phase=analysis.suggested_phase,
                confidence_score=analysis.confidence,
                indicators=analysis.indicators,
                recommendations=analysis.recommendations,
            )
        )
        logger.info(
            "stored analysis %s for user %s: stagnant=%s confidence=%.2f",
            analysis.analysis_id,
            user_id,
            analysis.is_stagnant,
            analysis.confidence,
        )
        return analysis

    def get_analysis_history(self, user_id: int, limit: int = 10) -> list[PeriodizationAnalysis]:
        require_user_id(user_id)
        return self.analyses.fetch_history(user_id, limit)

    def get_active_recommendation(self, user_id: int) -> Optional[PeriodizationAnalysis]:
        """Return the latest pending analysis that detected stagnation."""
        require_user_id(user_id)
        return self.analyses.fetch_active(user_id)

    def update_user_decision(
        self, analysis_id: int, decision: UserDecision | str, feedback: str | None = None
    ) -> None:
        if isinstance(analysis_id, bool) or not isinstance(analysis_id, int) or analysis_id <= 0:
            raise ValueError(f"invalid analysis id: {analysis_id!r}")
        decision = UserDecision(decision)
        if decision is UserDecision.PENDING:
            raise ValueError("decision must be accepted or rejected")
        self.analyses.update_decision(analysis_id, decision, feedback)
        logger.info("analysis %s marked %s", analysis_id, decision.value)

    def generate_intelligent_suggestions(self, user_id: int) -> list[IntelligentSuggestion]:
        """Return up to five contextual suggestions, highest priority first."""
        require_user_id(user_id)
        history = self.analyses.fetch_history(user_id, 10)
        progress = self.analytics.compute_progress(user_id, self.window_days)
        adherence = self.analytics.compute_adherence(user_id, self.window_days)
        effectiveness = self.analytics.compute_effectiveness(user_id, self.window_days)
        suggestions: list[IntelligentSuggestion] = []

        def add(kind: str, priority: str, title: str, message: str, action: str) -> None:
            suggestions.append(IntelligentSuggestion(kind, priority, title, message, action))

        if len(history) >= 3:
            rejected = sum(1 for h in history[:3] if h.user_decision is UserDecision.REJECTED)
            if rejected >= 2:
                add(
                    "pattern_analysis",
                    "high",
                    self._("Rejection pattern detected"),
                    self._("You rejected several recent recommendations. Do your goals need adjusting?"),
                    "review_goals",
                )
        if adherence.completion_rate < 70:
            add(
                "adherence_concern",
                "high",
                self._("Low adherence detected"),
                self._(
                    "Your adherence is {rate:.1f}%. Consider shorter or more flexible routines.",
                    rate=adherence.completion_rate,
                ),
                "adjust_schedule",
            )
        if effectiveness.satisfaction_trend < -0.5:
            add(
                "satisfaction_decline",
                "medium",
                self._("Satisfaction declining"),
                self._("Your workout satisfaction is dropping. Let's try new exercises."),
                "change_exercises",
            )
        if abs(progress.strength_progress.volume_change) < 3:
            add(
                "progress_stagnation",
                "medium",
                self._("Progress stalled"),
                self._("Your training volume has not changed significantly. Consider increasing intensity."),
                "increase_intensity",
            )
        average_rpe = progress.rpe_metrics.average_rpe
        if average_rpe < 6:
            add(
                "optimization",
                "low",
                self._("Room to grow"),
                self._("Your average RPE is low. You could handle more intensity."),
                "increase_intensity",
            )
        if average_rpe > 8.5:
            add(
                "recovery_needed",
                "high",
                self._("Overtraining signs"),
                self._("Your average RPE is very high. Time for a deload week."),
                "deload_week",
            )
        exercise_count = progress.strength_progress.exercise_count
        if exercise_count < 8:
            add(
                "variety_suggestion",
                "low",
                self._("Add variety"),
                self._(
                    "You only did {count} different exercises. More variety can improve progress.",
                    count=exercise_count,
                ),
                "add_exercises",
            )

        suggestions.sort(key=lambda s: _PRIORITY_RANK[s.priority], reverse=True)
        return suggestions[:5]

    def generate_transition_plan(
        self,
        user_id: int,
        from_phase: TrainingPhase | str,
        to_phase: TrainingPhase | str,
    ) -> TransitionPlan:
        """Return a phase transition plan personalised with current metrics."""
        require_user_id(user_id)
        from_phase = TrainingPhase(from_phase)
        to_phase = TrainingPhase(to_phase)
        progress = self.analytics.compute_progress(user_id, self.window_days)
        duration, changes, focus, warning, days = TRANSITION_PLANS.get(
            (from_phase, to_phase), GENERIC_PLAN
        )
        rpe = progress.rpe_metrics
        if rpe.average_rpe > 8:
            warning = "Your current RPE is high. Take the transition more slowly."
            days += 3
        if rpe.consistency_score < 70:
            days += 2

        tips = []
        if rpe.consistency_score < 70:
            tips.append(self._("Your RPE varies a lot. Try to keep a more consistent effort."))
        if progress.strength_progress.volume_change > 20:
            tips.append(self._("You progressed quickly. Make sure your technique stays sharp."))
        if len(progress.frequency_metrics.muscle_group_frequency) < 4:
            tips.append(self._("Consider training more muscle groups for balanced development."))

        return TransitionPlan(
            from_phase=from_phase,
            to_phase=to_phase,
            duration=self._(duration),
            changes=[self._(c) for c in changes],
            focus=self._(focus),
            warning=self._(warning),
            personalized_tips=tips,
            adaptation_days=days,
        )
