import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from analytics_service import AnalyticsService, CUSTOM_ROUTINE, calculate_streak_days
from coach import CoachingCore
from models import (
    EffectivenessMetrics,
    ProgressMetrics,
    SessionStatus,
    SetFeedback,
    UserPreferences,
    WorkoutFeedback,
)

UTC = datetime.timezone.utc
NOW = datetime.datetime(2026, 3, 18, 12, 0, tzinfo=UTC)


def _core(tmp_path) -> CoachingCore:
    return CoachingCore(db_path=str(tmp_path / "analytics.db"), now=lambda: NOW)


def _session(core, user_id, started, plan_id=None, completed=True, minutes=60):
    if completed:
        return core.sessions.create(
            user_id,
            started,
            SessionStatus.COMPLETED,
            started + datetime.timedelta(minutes=minutes),
            plan_id,
        )
    return core.sessions.create(user_id, started, SessionStatus.SKIPPED, None, plan_id)


def _two_block_history(core):
    """One session in each half of a 30 day window ending at NOW."""
    push = core.plans.create(1, "Push")
    old = _session(core, 1, datetime.datetime(2026, 2, 1, 10, tzinfo=UTC))
    core.logs.add(old, "Bench Press", 1, 10, 500.0)
    early = _session(core, 1, datetime.datetime(2026, 2, 24, 10, tzinfo=UTC), push)
    bench_early = core.logs.add(early, "Bench Press", 1, 10, 50.0)
    late = _session(core, 1, datetime.datetime(2026, 3, 10, 10, tzinfo=UTC))
    bench_late = core.logs.add(late, "Bench Press", 1, 10, 60.0)
    core.logs.add(late, "Squat", 2, 5, 100.0)
    core.set_feedback.upsert(SetFeedback(bench_early, 6, "perfect", created_at=NOW))
    core.set_feedback.upsert(SetFeedback(bench_late, 8, "perfect", created_at=NOW))
    return push, early, late


class TestStreak:
    def test_longest_run(self) -> None:
        days = [
            datetime.date(2026, 3, 9),
            datetime.date(2026, 3, 10),
            datetime.date(2026, 3, 11),
            datetime.date(2026, 3, 13),
        ]
        assert calculate_streak_days(days) == 3

    def test_duplicates_and_edges(self) -> None:
        assert calculate_streak_days([]) == 0
        assert calculate_streak_days([datetime.date(2026, 3, 9)] * 3) == 1
        assert calculate_streak_days(
            [datetime.date(2026, 3, 1), datetime.date(2026, 2, 28)]
        ) == 2


class TestEmptyWindows:
    def test_no_data_gives_neutral_metrics(self, tmp_path) -> None:
        analytics = _core(tmp_path).analytics
        assert analytics.compute_progress(1, 30) == ProgressMetrics()
        assert analytics.compute_effectiveness(1, 30) == EffectivenessMetrics()
        adherence = analytics.compute_adherence(1, 30)
        assert adherence.completion_rate == 0
        assert adherence.streak_days == 0
        assert adherence.average_workout_duration == 0
        assert adherence.weekly_pattern == []
        assert adherence.total_planned_workouts == 0
        assert analytics.previous_volume(1, 30) is None
        assert analytics.favourite_exercises(1) == []

    @pytest.mark.parametrize("user_id,days", [(0, 30), (-3, 30), (True, 30), (1, 0), (1, -7)])
    def test_invalid_arguments(self, tmp_path, user_id, days) -> None:
        analytics = _core(tmp_path).analytics
        with pytest.raises(ValueError):
            analytics.compute_progress(user_id, days)
        with pytest.raises(ValueError):
            analytics.compute_adherence(user_id, days)
        with pytest.raises(ValueError):
            analytics.compute_effectiveness(user_id, days)


class TestProgress:
    def test_half_window_comparison(self, tmp_path) -> None:
        core = _core(tmp_path)
        _two_block_history(core)
        progress = core.analytics.compute_progress(1, 30)
        strength = progress.strength_progress
        assert strength.total_volume_kg == 1600.0
        assert strength.volume_change == pytest.approx(120.0)
        assert strength.average_weight == pytest.approx(70.0)
        assert strength.weight_change == pytest.approx(30.0)
        assert strength.exercise_count == 2

        rpe = progress.rpe_metrics
        assert rpe.average_rpe == pytest.approx(7.0)
        assert rpe.rpe_change == pytest.approx(2.0)
        assert rpe.consistency_score == pytest.approx(90.0)

        freq = progress.frequency_metrics
        assert freq.exercise_frequency == {"Bench Press": 2, "Squat": 1}
        assert freq.muscle_group_frequency == {"Chest": 2, "Legs": 1}
        assert freq.weekly_frequency == 2

    def test_single_half_has_no_weight_change(self, tmp_path) -> None:
        core = _core(tmp_path)
        sid = _session(core, 1, NOW - datetime.timedelta(days=2))
        core.logs.add(sid, "Row", 1, 10, 40.0)
        strength = core.analytics.compute_progress(1, 30).strength_progress
        assert strength.weight_change == 0.0
        assert strength.volume_change == 0.0
        assert strength.total_volume_kg == 400.0

    def test_previous_window_and_favourites(self, tmp_path) -> None:
        core = _core(tmp_path)
        _two_block_history(core)
        assert core.analytics.previous_volume(1, 30) == 5000.0
        assert core.analytics.favourite_exercises(1, 30, limit=1) == ["Bench Press"]


class TestAdherence:
    def _week(self, core):
        for day, hour in [(9, 10), (10, 10), (11, 10), (13, 19)]:
            _session(core, 1, datetime.datetime(2026, 3, day, hour, tzinfo=UTC))
        _session(core, 1, datetime.datetime(2026, 3, 14, 10, tzinfo=UTC), completed=False)

    def test_completion_and_streak(self, tmp_path) -> None:
        core = _core(tmp_path)
        self._week(core)
        adherence = core.analytics.compute_adherence(1, 30)
        assert adherence.completion_rate == pytest.approx(80.0)
        assert adherence.streak_days == 3
        assert adherence.average_workout_duration == pytest.approx(60.0)
        assert adherence.preferred_workout_times == ["morning", "evening"]
        assert adherence.missed_workouts == 1
        assert adherence.total_planned_workouts == 5
        assert adherence.weekly_pattern == [0, 100, 0, 100, 0, 100, 0]
        assert adherence.available_training_days == ["monday", "wednesday", "friday"]

    def test_preferred_training_days_override(self, tmp_path) -> None:
        core = _core(tmp_path)
        self._week(core)
        core.preferences.save(UserPreferences(1, available_training_days=["Tuesday"]))
        adherence = core.analytics.compute_adherence(1, 30)
        assert adherence.weekly_pattern == [0, 0, 100, 0, 0, 0, 0]
        assert adherence.available_training_days == ["tuesday"]

    def test_weekly_pattern_caps_and_spans(self) -> None:
        started = [
            datetime.datetime(2026, 3, 2, 10, tzinfo=UTC),
            datetime.datetime(2026, 3, 2, 18, tzinfo=UTC),
            datetime.datetime(2026, 3, 16, 10, tzinfo=UTC),
        ]
        # two weeks of span, three Monday sessions
        pattern = AnalyticsService.weekly_pattern(started, ["monday"])
        assert pattern == [0, 100, 0, 0, 0, 0, 0]
        assert AnalyticsService.weekly_pattern(started[:1] + started[2:], ["monday"])[1] == 100
        assert AnalyticsService.weekly_pattern([], ["monday"]) == []


class TestEffectiveness:
    def test_split_and_exercise_rankings(self, tmp_path) -> None:
        core = _core(tmp_path)
        push, early, late = _two_block_history(core)
        skipped = _session(
            core, 1, datetime.datetime(2026, 2, 20, 10, tzinfo=UTC), push, completed=False
        )
        core.workout_feedback.save(skipped, WorkoutFeedback(rpe=5, satisfaction=1, fatigue=5))
        core.workout_feedback.save(
            early,
            WorkoutFeedback(
                rpe=7, satisfaction=3, fatigue=2, progress_feeling=3, preferred_exercises=["Bench Press"]
            ),
        )
        core.workout_feedback.save(
            late,
            WorkoutFeedback(
                rpe=8,
                satisfaction=5,
                fatigue=4,
                progress_feeling=5,
                preferred_exercises=["Squat", "Bench Press"],
                disliked_exercises=["Lunges"],
            ),
        )

        metrics = core.analytics.compute_effectiveness(1, 30)
        assert [s.split_name for s in metrics.top_splits] == [CUSTOM_ROUTINE, "Push"]
        push_split = metrics.top_splits[1]
        assert push_split.average_satisfaction == pytest.approx(2.0)
        assert push_split.average_rpe == pytest.approx(6.0)
        assert push_split.completion_rate == pytest.approx(50.0)
        assert push_split.progress_score == pytest.approx(1.5)
        assert push_split.sessions == 2

        assert [(e.exercise_name, e.preference_score) for e in metrics.top_exercises] == [
            ("Bench Press", 2),
            ("Squat", 1),
            ("Lunges", -1),
        ]
        assert metrics.top_exercises[0].average_rpe == pytest.approx(7.0)
        assert metrics.top_exercises[1].average_rpe == 0.0

        assert metrics.satisfaction_trend == pytest.approx(3.0)
        assert metrics.average_satisfaction == pytest.approx(3.0)
        assert metrics.average_fatigue == pytest.approx(11 / 3)
        assert metrics.feedback_count == 3

    def test_satisfaction_trend_helper(self) -> None:
        assert AnalyticsService.satisfaction_trend([2, 2, 4, 4]) == 2.0
        assert AnalyticsService.satisfaction_trend([4]) == 0.0
