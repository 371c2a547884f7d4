from __future__ import annotations

import datetime
import logging
import sqlite3
from typing import Callable

from algorithms import ExerciseClassifier, MathTools, WeightProgression
from db import WeightHistoryRepository, WeightSuggestionRepository
from models import (
    ProgressionTrend,
    WeightHistoryEntry,
    WeightSuggestion,
    WeightUsage,
    require_user_id,
    utcnow,
)

logger = logging.getLogger(__name__)


class WeightSuggestionService:
    """Serve per-exercise weight suggestions with write-through caching.

    A stored suggestion is returned while it is still valid; otherwise a new
    one is computed from the weight history of the last ``lookback_days`` and
    upserted, so each (user, exercise) pair has at most one row.
    """

    def __init__(
        self,
        history_repo: WeightHistoryRepository,
        suggestion_repo: WeightSuggestionRepository,
        valid_days: int = 7,
        history_limit: int = 10,
        lookback_days: int = 28,
        now: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.history = history_repo
        self.suggestions = suggestion_repo
        self.valid_days = valid_days
        self.history_limit = history_limit
        self.lookback_days = lookback_days
        self._now = now

    @staticmethod
    def _exercise(exercise_name: str) -> str:
        if not isinstance(exercise_name, str) or not exercise_name.strip():
            raise ValueError("exercise name required")
        return exercise_name.strip()

    def get_suggestion(self, user_id: int, exercise_name: str) -> WeightSuggestion:
        """Return the valid stored suggestion or compute, persist and return a new one."""
        require_user_id(user_id)
        exercise_name = self._exercise(exercise_name)
        now = self._now()
        existing = self.suggestions.fetch_valid(user_id, exercise_name, now)
        if existing is not None:
            logger.info("reusing suggestion for user %s / %s", user_id, exercise_name)
            return existing
        suggestion = self.compute_suggestion(user_id, exercise_name)
        stored = self.suggestions.upsert(suggestion)
        logger.info(
            "stored suggestion %.1f kg for user %s / %s (confidence %.2f)",
            stored.suggested_weight,
            user_id,
            exercise_name,
            stored.confidence_score,
        )
        return stored

    def compute_suggestion(self, user_id: int, exercise_name: str) -> WeightSuggestion:
        """Compute a suggestion without persisting it."""
        now = self._now()
        since = (now - datetime.timedelta(days=self.lookback_days)).date()
        try:
            history = self.history.fetch_recent(
                user_id, exercise_name, since, limit=self.history_limit
            )
        except sqlite3.Error:
            logger.warning(
                "weight history unavailable for user %s / %s, using base weight",
                user_id,
                exercise_name,
                exc_info=True,
            )
            history = []

        if not history:
            weight = MathTools.round_to_increment(ExerciseClassifier.base_weight(exercise_name))
            confidence = WeightProgression.BASE_CONFIDENCE
            trend = ProgressionTrend.STABLE
            last_used = None
        else:
            latest = history[0]
            feeling = latest.weight_feedback.value if latest.weight_feedback else None
            weight = MathTools.round_to_increment(
                WeightProgression.quick_adjustment(latest.actual_weight, latest.rpe_achieved, feeling)
            )
            confidence = WeightProgression.session_confidence(len(history))
            trend = ProgressionTrend(
                WeightProgression.window_trend([h.actual_weight for h in history])
            )
            last_used = latest.actual_weight

        return WeightSuggestion(
            user_id=user_id,
            exercise_name=exercise_name,
            suggested_weight=weight,
            confidence_score=confidence,
            based_on_sessions=len(history),
            progression_trend=trend,
            valid_until=now + datetime.timedelta(days=self.valid_days),
            last_used_weight=last_used,
            muscle_group=ExerciseClassifier.muscle_group(exercise_name),
            exercise_type=ExerciseClassifier.exercise_type(exercise_name),
        )

    def record_weight_used(self, user_id: int, usage: WeightUsage) -> int:
        """Append the weight actually used and return the history row id."""
        require_user_id(user_id)
        entry = WeightHistoryEntry(
            user_id=user_id,
            exercise_name=self._exercise(usage.exercise_name),
            workout_date=self._now().date(),
            suggested_weight=usage.suggested_weight,
            actual_weight=usage.actual_weight,
            weight_feedback=usage.weight_feedback,
            rpe_achieved=usage.rpe_achieved,
            reps_completed=usage.reps_completed,
            sets_completed=usage.sets_completed,
            session_id=usage.session_id,
        )
        entry_id = self.history.append(entry)
        logger.info(
            "recorded %.1f kg for user %s / %s (suggested %.1f)",
            usage.actual_weight,
            user_id,
            entry.exercise_name,
            usage.suggested_weight,
        )
        return entry_id

    def invalidate(self, user_id: int, exercise_name: str) -> None:
        """Expire the stored suggestion so the next read recomputes it."""
        require_user_id(user_id)
        self.suggestions.expire(user_id, self._exercise(exercise_name), self._now())
