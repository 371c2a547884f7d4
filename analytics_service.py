from __future__ import annotations

import datetime
import logging
import math
from collections import Counter
from typing import Callable, Iterable, Optional

from algorithms import ExerciseClassifier, MathTools
from db import (
    ExerciseLogRepository,
    UserPreferencesRepository,
    WorkoutFeedbackRepository,
    WorkoutSessionRepository,
)
from models import (
    AdherenceMetrics,
    EffectivenessMetrics,
    ExercisePreference,
    FrequencyMetrics,
    ProgressMetrics,
    RpeMetrics,
    SplitEffectiveness,
    StrengthProgress,
    require_user_id,
    require_window,
    utcnow,
)

logger = logging.getLogger(__name__)

CUSTOM_ROUTINE = "Custom Routine"
DAY_NAMES = [
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
]


def _week_start_sunday(day: datetime.date) -> datetime.date:
    return day - datetime.timedelta(days=(day.weekday() + 1) % 7)


def _time_of_day(ts: datetime.datetime) -> str:
    if ts.hour < 12:
        return "morning"
    if ts.hour < 18:
        return "afternoon"
    return "evening"


def calculate_streak_days(days: Iterable[datetime.date]) -> int:
    """Return the longest run of consecutive calendar days.

    Duplicate days collapse into one; an empty input gives ``0``.
    """
    unique = sorted(set(days))
    if not unique:
        return 0
    streak = best = 1
    for prev, curr in zip(unique, unique[1:]):
        if (curr - prev).days == 1:
            streak += 1
            best = max(best, streak)
        else:
            streak = 1
    return best


class AnalyticsService:
    """Compute progress, adherence and effectiveness metrics over a time window."""

    def __init__(
        self,
        session_repo: WorkoutSessionRepository,
        log_repo: ExerciseLogRepository,
        feedback_repo: WorkoutFeedbackRepository,
        preferences_repo: UserPreferencesRepository | None = None,
        default_training_days: list[str] | None = None,
        now: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.sessions = session_repo
        self.logs = log_repo
        self.feedback = feedback_repo
        self.preferences = preferences_repo
        self.default_training_days = list(
            default_training_days or ["monday", "wednesday", "friday"]
        )
        self._now = now

    def _window(self, days: int) -> tuple[datetime.datetime, datetime.datetime, datetime.datetime]:
        end = self._now()
        start = end - datetime.timedelta(days=days)
        mid = end - datetime.timedelta(days=days / 2)
        return start, mid, end

    def compute_progress(self, user_id: int, window_days: int = 30) -> ProgressMetrics:
        require_user_id(user_id)
        require_window(window_days)
        logger.info("computing progress metrics for user %s over %s days", user_id, window_days)
        start, mid, end = self._window(window_days)
        logs = self.logs.fetch_for_user(user_id, start, end)
        if not logs:
            return ProgressMetrics()

        first = [log for log in logs if log.started_at <= mid]
        second = [log for log in logs if log.started_at > mid]
        first_volume = MathTools.volume((l.reps_completed, l.weight_used) for l in first)
        second_volume = MathTools.volume((l.reps_completed, l.weight_used) for l in second)
        weight_change = 0.0
        if first and second:
            weight_change = MathTools.mean(l.weight_used for l in second) - MathTools.mean(
                l.weight_used for l in first
            )

        rpes = [float(l.feedback.set_rpe) for l in logs if l.feedback is not None]

        exercise_frequency: dict[str, int] = {}
        muscle_frequency: dict[str, int] = {}
        for log in logs:
            name = log.exercise_name
            exercise_frequency[name] = exercise_frequency.get(name, 0) + 1
            group = ExerciseClassifier.muscle_group(name)
            muscle_frequency[group] = muscle_frequency.get(group, 0) + 1
        weeks = {_week_start_sunday(l.started_at.date()) for l in logs}

        return ProgressMetrics(
            strength_progress=StrengthProgress(
                total_volume_kg=first_volume + second_volume,
                volume_change=MathTools.percent_change(second_volume, first_volume),
                average_weight=MathTools.mean(l.weight_used for l in logs),
                weight_change=weight_change,
                exercise_count=len(exercise_frequency),
            ),
            rpe_metrics=RpeMetrics(
                average_rpe=MathTools.mean(rpes),
                rpe_change=MathTools.half_split_delta(rpes),
                consistency_score=MathTools.consistency_score(rpes),
            ),
            frequency_metrics=FrequencyMetrics(
                muscle_group_frequency=muscle_frequency,
                exercise_frequency=exercise_frequency,
                weekly_frequency=len(weeks),
            ),
        )

    def _training_days(self, user_id: int) -> list[str]:
        if self.preferences is not None:
            prefs = self.preferences.fetch(user_id)
            if prefs is not None and prefs.available_training_days:
                return [d.lower() for d in prefs.available_training_days]
        return list(self.default_training_days)

    @staticmethod
    def weekly_pattern(
        started: list[datetime.datetime], training_days: list[str]
    ) -> list[int]:
        """Return per-weekday adherence (Sunday first) for ``training_days``.

        ``started`` holds the start times of completed sessions in ascending
        order. Days outside ``training_days`` get ``0``.
        """
        if not started:
            return []
        counts = Counter(DAY_NAMES[(ts.weekday() + 1) % 7] for ts in started)
        span = (started[-1] - started[0]).total_seconds() / (7 * 24 * 3600)
        weeks = max(1, math.ceil(span))
        pattern = []
        for day in DAY_NAMES:
            if day in training_days:
                pattern.append(min(100, round(counts.get(day, 0) / weeks * 100)))
            else:
                pattern.append(0)
        return pattern

    def compute_adherence(self, user_id: int, window_days: int = 30) -> AdherenceMetrics:
        require_user_id(user_id)
        require_window(window_days)
        logger.info("computing adherence metrics for user %s over %s days", user_id, window_days)
        start, _, end = self._window(window_days)
        sessions = self.sessions.fetch_range(user_id, start, end)
        training_days = self._training_days(user_id)
        completed = [s for s in sessions if s.is_completed]
        total = len(sessions)

        durations = [s.duration_minutes for s in completed if s.duration_minutes is not None]
        average_duration = sum(durations) / len(completed) if completed else 0.0
        times = Counter(_time_of_day(s.started_at) for s in completed)

        return AdherenceMetrics(
            completion_rate=len(completed) / total * 100 if total else 0.0,
            streak_days=calculate_streak_days(s.started_at.date() for s in completed),
            average_workout_duration=average_duration,
            preferred_workout_times=[t for t, _ in times.most_common()],
            missed_workouts=total - len(completed),
            total_planned_workouts=total,
            weekly_pattern=self.weekly_pattern([s.started_at for s in completed], training_days),
            available_training_days=training_days,
        )

    @staticmethod
    def satisfaction_trend(values: list[float]) -> float:
        """Second-half minus first-half mean of chronologically sorted values."""
        return MathTools.half_split_delta(values)

    def compute_effectiveness(self, user_id: int, window_days: int = 30) -> EffectivenessMetrics:
        require_user_id(user_id)
        require_window(window_days)
        logger.info("computing effectiveness metrics for user %s over %s days", user_id, window_days)
        start, _, end = self._window(window_days)
        feedback = self.feedback.fetch_range(user_id, start, end)
        if not feedback:
            return EffectivenessMetrics()

        groups: dict[str, list] = {}
        for row in feedback:
            groups.setdefault(row.plan_name or CUSTOM_ROUTINE, []).append(row)

        splits = []
        for name, rows in groups.items():
            splits.append(
                SplitEffectiveness(
                    split_name=name,
                    average_satisfaction=MathTools.mean(r.satisfaction or 0 for r in rows),
                    average_rpe=MathTools.mean(r.rpe or 0 for r in rows),
                    completion_rate=sum(1 for r in rows if r.session_completed) / len(rows) * 100,
                    progress_score=MathTools.mean(r.progress_feeling or 0 for r in rows),
                    sessions=len(rows),
                )
            )
        splits.sort(key=lambda s: s.average_satisfaction, reverse=True)

        tallies: dict[str, int] = {}
        for row in feedback:
            for name in row.preferred_exercises:
                tallies[name] = tallies.get(name, 0) + 1
            for name in row.disliked_exercises:
                tallies[name] = tallies.get(name, 0) - 1
        exercise_rpe = self._exercise_rpe(user_id, start, end) if tallies else {}
        exercises = [
            ExercisePreference(name, score, exercise_rpe.get(name, 0.0))
            for name, score in tallies.items()
        ]
        exercises.sort(key=lambda e: e.preference_score, reverse=True)

        satisfaction = [float(r.satisfaction) for r in feedback if r.satisfaction is not None]
        fatigue = [float(r.fatigue) for r in feedback if r.fatigue is not None]
        return EffectivenessMetrics(
            top_splits=splits[:5],
            top_exercises=exercises[:10],
            satisfaction_trend=self.satisfaction_trend(satisfaction),
            average_satisfaction=MathTools.mean(satisfaction),
            average_fatigue=MathTools.mean(fatigue),
            feedback_count=len(feedback),
        )

    def _exercise_rpe(
        self, user_id: int, start: datetime.datetime, end: datetime.datetime
    ) -> dict[str, float]:
        values: dict[str, list[float]] = {}
        for log in self.logs.fetch_for_user(user_id, start, end):
            if log.feedback is not None:
                values.setdefault(log.exercise_name, []).append(float(log.feedback.set_rpe))
        return {name: MathTools.mean(v) for name, v in values.items()}

    def favourite_exercises(
        self, user_id: int, window_days: int = 30, limit: int = 5
    ) -> list[str]:
        """Return the most logged exercise names in the window."""
        progress = self.compute_progress(user_id, window_days)
        counts = Counter(progress.frequency_metrics.exercise_frequency)
        return [name for name, _ in counts.most_common(limit)]

    def previous_volume(self, user_id: int, window_days: int) -> Optional[float]:
        """Return total volume of the window immediately before the current one."""
        require_user_id(user_id)
        end = self._now() - datetime.timedelta(days=window_days)
        start = end - datetime.timedelta(days=window_days)
        logs = self.logs.fetch_for_user(user_id, start, end)
        if not logs:
            return None
        return MathTools.volume((l.reps_completed, l.weight_used) for l in logs)
