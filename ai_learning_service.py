"""Feedback consolidation: per-exercise weight learning, coarse preferences
and long-run training insights.

The weight sweep rewrites the suggestions served by
:class:`weight_suggestion_service.WeightSuggestionService`; every automated
change is also appended to the ``ai_decisions`` audit trail.
"""

from __future__ import annotations

import datetime
import logging
import threading
import weakref
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Callable, Iterable, Optional

from algorithms import ExerciseClassifier, MathTools, WeightProgression
from analytics_service import CUSTOM_ROUTINE, DAY_NAMES
from db import (
    AIDecisionRepository,
    ExerciseLogRepository,
    RestTimePatternRepository,
    SetFeedbackRepository,
    UserPreferencesRepository,
    WeightHistoryRepository,
    WeightSuggestionRepository,
    WorkoutFeedbackRepository,
    WorkoutSessionRepository,
)
from localization import Translator
from models import (
    AIDecision,
    AIInsights,
    DecisionType,
    Intensity,
    PreferenceUpdatePayload,
    ProgressionTrend,
    RestTimePattern,
    SetFeedback,
    UserPreferences,
    WeightLearningPayload,
    WeightSuggestion,
    WorkoutFeedback,
    require_user_id,
    to_plain,
    utcnow,
)

logger = logging.getLogger(__name__)

PREFERENCE_CONFIDENCE = 0.8
DEFAULT_REST_SECONDS = 90
GOOD_NEXT_SET = 4
DEFAULT_DURATION = 45
INSIGHT_SESSION_LIMIT = 50


@dataclass
class SweepResult:
    user_id: int
    processed: int = 0
    skipped: int = 0
    failed: int = 0


class AILearningService:
    """Learn weight suggestions and training preferences from user feedback."""

    MIN_DURATION = 30
    MAX_DURATION = 90
    MIN_FREQUENCY = 2
    MAX_FREQUENCY = 6

    def __init__(
        self,
        history_repo: WeightHistoryRepository,
        set_feedback_repo: SetFeedbackRepository,
        suggestion_repo: WeightSuggestionRepository,
        decision_repo: AIDecisionRepository,
        preferences_repo: UserPreferencesRepository,
        rest_repo: RestTimePatternRepository | None = None,
        session_repo: WorkoutSessionRepository | None = None,
        log_repo: ExerciseLogRepository | None = None,
        workout_feedback_repo: WorkoutFeedbackRepository | None = None,
        lookback_days: int = 28,
        history_limit: int = 20,
        feedback_limit: int = 50,
        valid_days: int = 7,
        insight_window_days: int = 90,
        translator: Translator | None = None,
        now: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.history = history_repo
        self.set_feedback = set_feedback_repo
        self.suggestions = suggestion_repo
        self.decisions = decision_repo
        self.preferences = preferences_repo
        self.rest_patterns = rest_repo
        self.sessions = session_repo
        self.logs = log_repo
        self.workout_feedback = workout_feedback_repo
        self.lookback_days = lookback_days
        self.history_limit = history_limit
        self.feedback_limit = feedback_limit
        self.valid_days = valid_days
        self.insight_window_days = insight_window_days
        self.translator = translator or Translator()
        self._now = now
        self._locks: weakref.WeakValueDictionary[int, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def _user_lock(self, user_id: int) -> threading.Lock:
        # Entries vanish once no caller holds the lock.
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            return lock

    # ------------------------------------------------------------------
    # Weight learning
    # ------------------------------------------------------------------

    def process_weight_learning_data(self, user_id: int) -> SweepResult:
        """Recompute the suggestion of every recently logged exercise of ``user_id``.

        A failing exercise is logged and counted; the remaining exercises are
        still processed. Failure to list the exercises propagates.
        """
        require_user_id(user_id)
        with self._user_lock(user_id):
            now = self._now()
            since = now - datetime.timedelta(days=self.lookback_days)
            exercises = self.history.exercise_names(user_id, since.date())
            logger.info(
                "learning sweep for user %s over %d exercises", user_id, len(exercises)
            )
            result = SweepResult(user_id=user_id)
            for exercise_name in exercises:
                try:
                    if self._learn_exercise(user_id, exercise_name, now, since):
                        result.processed += 1
                    else:
                        result.skipped += 1
                except Exception:
                    result.failed += 1
                    logger.exception(
                        "learning failed for user %s / %s", user_id, exercise_name
                    )
            return result

    def _learn_exercise(
        self,
        user_id: int,
        exercise_name: str,
        now: datetime.datetime,
        since: datetime.datetime,
    ) -> bool:
        history = self.history.fetch_recent(
            user_id, exercise_name, since.date(), self.history_limit
        )
        if not history:
            return False
        feedback = self.set_feedback.fetch_recent_for_exercise(
            user_id, exercise_name, since, self.feedback_limit
        )
        rec = WeightProgression.learning_recommendation(
            [h.actual_weight for h in history],
            [f.set_rpe for f in feedback],
            [f.weight_feeling.value for f in feedback],
            history_count=len(history),
            feedback_count=len(feedback),
        )
        previous = self.suggestions.fetch(user_id, exercise_name)
        self.suggestions.upsert(
            WeightSuggestion(
                user_id=user_id,
                exercise_name=exercise_name,
                suggested_weight=rec.suggested_weight,
                confidence_score=rec.confidence_score,
                based_on_sessions=rec.based_on_sessions,
                progression_trend=ProgressionTrend(rec.progression_trend),
                valid_until=now + datetime.timedelta(days=self.valid_days),
                last_used_weight=history[0].actual_weight,
                muscle_group=ExerciseClassifier.muscle_group(exercise_name),
                exercise_type=ExerciseClassifier.exercise_type(exercise_name),
            )
        )
        self.decisions.append(
            AIDecision(
                user_id=user_id,
                payload=WeightLearningPayload(
                    exercise_name=exercise_name,
                    previous_weight=previous.suggested_weight if previous else None,
                    suggested_weight=rec.suggested_weight,
                    average_rpe=rec.average_rpe,
                    feeling_counts=rec.feeling_counts or {},
                    progression_trend=ProgressionTrend(rec.progression_trend),
                    data_points=len(history) + len(feedback),
                ),
                reasoning=rec.reasoning,
                confidence=rec.confidence_score,
                created_at=now,
            )
        )
        logger.info(
            "updated %s for user %s: %.1f kg (confidence %.2f)",
            exercise_name,
            user_id,
            rec.suggested_weight,
            rec.confidence_score,
        )
        return True

    def run_learning_sweep(
        self, user_ids: Iterable[int] | None = None, max_workers: int = 4
    ) -> dict[int, SweepResult]:
        """Run the weight sweep for many users in parallel, one at a time per user."""
        ids = sorted(set(user_ids)) if user_ids is not None else self.history.user_ids()
        for user_id in ids:
            require_user_id(user_id)
        if not ids:
            return {}
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="learning_") as pool:
            results = list(pool.map(self.process_weight_learning_data, ids))
        return {r.user_id: r for r in results}

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    @staticmethod
    def _shift_intensity(current: Intensity, step: int) -> Intensity:
        levels = Intensity.ordered()
        index = int(MathTools.clamp(levels.index(current) + step, 0, len(levels) - 1))
        return levels[index]

    @staticmethod
    def _merge(existing: list[str], extra: list[str]) -> list[str]:
        merged = list(existing)
        for name in extra:
            if name not in merged:
                merged.append(name)
        return merged

    def update_user_preferences(
        self, user_id: int, feedback: WorkoutFeedback
    ) -> Optional[UserPreferences]:
        """Nudge coarse preferences from post-workout feedback.

        Returns the updated preferences, or ``None`` when nothing changed. Each
        applied update is recorded as a ``preference_update`` decision.
        """
        require_user_id(user_id)
        current = self.preferences.fetch(user_id) or UserPreferences(user_id=user_id)
        updated = UserPreferences(**asdict(current))
        adjustments: dict[str, str] = {}

        if feedback.rpe is not None:
            if feedback.rpe <= 4:
                updated.preferred_intensity = self._shift_intensity(current.preferred_intensity, 1)
            elif feedback.rpe >= 9:
                updated.preferred_intensity = self._shift_intensity(current.preferred_intensity, -1)

        if feedback.fatigue is not None:
            if feedback.fatigue >= 4:
                updated.preferred_workout_duration = max(
                    self.MIN_DURATION, current.preferred_workout_duration - 5
                )
            elif feedback.fatigue <= 2:
                updated.preferred_workout_duration = min(
                    self.MAX_DURATION, current.preferred_workout_duration + 5
                )

        if feedback.satisfaction is not None:
            if feedback.satisfaction <= 2:
                updated.weekly_frequency = max(self.MIN_FREQUENCY, current.weekly_frequency - 1)
            elif feedback.satisfaction == 5:
                updated.weekly_frequency = min(self.MAX_FREQUENCY, current.weekly_frequency + 1)

        levels = Intensity.ordered()
        for key, before, after in (
            (
                "intensity",
                levels.index(current.preferred_intensity),
                levels.index(updated.preferred_intensity),
            ),
            ("duration", current.preferred_workout_duration, updated.preferred_workout_duration),
            ("frequency", current.weekly_frequency, updated.weekly_frequency),
        ):
            if after != before:
                adjustments[key] = "increase" if after > before else "decrease"

        updated.preferred_exercises = self._merge(
            current.preferred_exercises, feedback.preferred_exercises
        )
        updated.avoided_exercises = self._merge(
            current.avoided_exercises, feedback.disliked_exercises
        )
        if updated.preferred_exercises != current.preferred_exercises:
            adjustments["preferred_exercises"] = "merged"
        if updated.avoided_exercises != current.avoided_exercises:
            adjustments["avoided_exercises"] = "merged"

        if updated == current:
            logger.info("no preference change for user %s", user_id)
            return None

        self.preferences.save(updated)
        self.decisions.append(
            AIDecision(
                user_id=user_id,
                payload=PreferenceUpdatePayload(
                    feedback={
                        "rpe": feedback.rpe,
                        "satisfaction": feedback.satisfaction,
                        "fatigue": feedback.fatigue,
                        "session_id": feedback.session_id,
                    },
                    adjustments=adjustments,
                    previous=to_plain(current),
                    updated=to_plain(updated),
                ),
                reasoning="post-workout feedback: "
                + ", ".join(f"{k} {v}" for k, v in adjustments.items()),
                confidence=PREFERENCE_CONFIDENCE,
                created_at=self._now(),
            )
        )
        logger.info("updated preferences for user %s: %s", user_id, adjustments)
        return updated

    def get_ai_decisions(
        self,
        user_id: int,
        decision_type: DecisionType | str | None = None,
        limit: int = 50,
    ) -> list[AIDecision]:
        require_user_id(user_id)
        if decision_type is not None:
            decision_type = DecisionType(decision_type)
        return self.decisions.fetch(user_id, decision_type, limit)

    # ------------------------------------------------------------------
    # Long-run insights
    # ------------------------------------------------------------------

    def _(self, text: str, **kwargs) -> str:
        return self.translator.gettext(text, **kwargs)

    def _insight_repos(
        self,
    ) -> tuple[WorkoutSessionRepository, ExerciseLogRepository, WorkoutFeedbackRepository]:
        if self.sessions is None or self.logs is None or self.workout_feedback is None:
            raise RuntimeError("session, log and workout feedback repositories not configured")
        return self.sessions, self.logs, self.workout_feedback

    @staticmethod
    def _intensity_from_rpe(average_rpe: float) -> Intensity:
        if average_rpe >= 8:
            return Intensity.HIGH
        if average_rpe >= 6:
            return Intensity.MODERATE
        return Intensity.LOW

    def generate_insights(self, user_id: int) -> AIInsights:
        """Consolidate the last sessions of ``user_id`` into training preferences.

        Splits are ranked by usage times completion rate, days by completed
        sessions, and muscle groups by the completed sessions that trained
        them. The optimal duration blends the actual average duration (70%)
        with the stored preference (30%).
        """
        require_user_id(user_id)
        sessions_repo, logs_repo, feedback_repo = self._insight_repos()
        now = self._now()
        start = now - datetime.timedelta(days=self.insight_window_days)
        sessions = sessions_repo.fetch_range(user_id, start, now)[-INSIGHT_SESSION_LIMIT:]
        prefs = self.preferences.fetch(user_id) or UserPreferences(user_id=user_id)
        logger.info("generating insights for user %s over %d sessions", user_id, len(sessions))

        usage = Counter(s.plan_name or CUSTOM_ROUTINE for s in sessions)
        completed = [s for s in sessions if s.is_completed]
        done = Counter(s.plan_name or CUSTOM_ROUTINE for s in completed)
        completion = {name: done[name] / count for name, count in usage.items()}
        scores = {name: usage[name] * completion[name] for name in usage}
        preferred_splits = [
            name
            for name in sorted(scores, key=lambda n: scores[n], reverse=True)
            if scores[name] > 0
        ][:3]

        durations = [s.duration_minutes for s in completed if s.duration_minutes is not None]
        average_duration = (
            int(MathTools.round_to_increment(MathTools.mean(durations), 1))
            if durations
            else DEFAULT_DURATION
        )
        optimal_duration = int(
            MathTools.round_to_increment(
                average_duration * 0.7 + prefs.preferred_workout_duration * 0.3, 1
            )
        )

        days = Counter(DAY_NAMES[(s.started_at.weekday() + 1) % 7] for s in completed)
        best_days = [day for day, count in days.most_common(3)]

        completed_ids = {s.id for s in completed}
        trained = dict.fromkeys(
            (log.session_id, ExerciseClassifier.muscle_group(log.exercise_name))
            for log in logs_repo.fetch_for_user(user_id, start, now)
            if log.session_id in completed_ids
        )
        groups = Counter(
            group for session_id, group in trained if group != ExerciseClassifier.GENERAL
        )
        muscle_groups = [group for group, count in groups.most_common(5)]

        rpes = [f.rpe for f in feedback_repo.fetch_range(user_id, start, now) if f.rpe is not None]
        intensity = (
            self._intensity_from_rpe(MathTools.mean(rpes)) if rpes else prefs.preferred_intensity
        )

        recommendations = []
        if preferred_splits:
            recommendations.append(
                self._(
                    "Keep focusing on {split}, it is your most successful split",
                    split=preferred_splits[0],
                )
            )
        if optimal_duration != DEFAULT_DURATION:
            recommendations.append(
                self._(
                    "Consider adjusting your workouts to {minutes} minutes for better results",
                    minutes=optimal_duration,
                )
            )
        if best_days:
            recommendations.append(
                self._(
                    "{day} looks like your best training day",
                    day=self._(best_days[0]).capitalize(),
                )
            )

        return AIInsights(
            user_id=user_id,
            sessions_analyzed=len(sessions),
            preferred_splits=preferred_splits,
            split_usage=dict(usage),
            split_completion={name: rate * 100 for name, rate in completion.items()},
            average_duration=average_duration,
            optimal_duration=optimal_duration,
            best_days=best_days,
            muscle_group_preferences=muscle_groups,
            intensity_pattern=intensity,
            recommendations=recommendations,
        )

    # ------------------------------------------------------------------
    # Set feedback and rest times
    # ------------------------------------------------------------------

    def record_set_feedback(self, user_id: int, feedback: SetFeedback) -> None:
        """Store feedback for one logged set, replacing earlier feedback for it."""
        require_user_id(user_id)
        if feedback.created_at is None:
            feedback.created_at = self._now()
        self.set_feedback.upsert(feedback)

    def _rest_repo(self) -> RestTimePatternRepository:
        if self.rest_patterns is None:
            raise RuntimeError("rest time repository not configured")
        return self.rest_patterns

    def record_rest_pattern(self, user_id: int, pattern: RestTimePattern) -> int:
        require_user_id(user_id)
        if pattern.user_id != user_id:
            raise ValueError("pattern belongs to another user")
        if pattern.muscle_group is None:
            pattern.muscle_group = ExerciseClassifier.muscle_group(pattern.exercise_name)
        if pattern.workout_date is None:
            pattern.workout_date = self._now().date()
        return self._rest_repo().append(pattern)

    def rest_time_recommendation(self, user_id: int, exercise_name: str) -> int:
        """Return the rest in seconds that preceded good next sets."""
        require_user_id(user_id)
        patterns = self._rest_repo().fetch_for_exercise(user_id, exercise_name)
        good = [
            p.actual_rest_seconds
            for p in patterns
            if p.next_set_performance is not None and p.next_set_performance >= GOOD_NEXT_SET
        ]
        if good:
            return int(round(MathTools.mean(good)))
        if patterns:
            return int(round(MathTools.mean(p.recommended_rest_seconds for p in patterns)))
        return DEFAULT_REST_SECONDS
