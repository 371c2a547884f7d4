import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from coach import CoachingCore
from localization import Translator
from models import SessionStatus, UserPreferences, WeeklyProgress, WorkoutFeedback
from reporting_service import week_start
from settings_schema import SettingsSchema

UTC = datetime.timezone.utc
NOW = datetime.datetime(2026, 3, 18, 12, 0, tzinfo=UTC)


@pytest.fixture
def core(tmp_path):
    return CoachingCore(db_path=str(tmp_path / "reports.db"), now=lambda: NOW)


def _workout(core, started, minutes=60, plan_id=None, rpe=None, satisfaction=None):
    sid = core.sessions.create(
        1, started, SessionStatus.COMPLETED, started + datetime.timedelta(minutes=minutes), plan_id
    )
    if rpe is not None or satisfaction is not None:
        core.workout_feedback.save(sid, WorkoutFeedback(rpe=rpe, satisfaction=satisfaction))
    return sid


def test_week_start_is_monday():
    assert week_start(datetime.date(2026, 3, 18)) == datetime.date(2026, 3, 16)
    assert week_start(datetime.date(2026, 3, 16)) == datetime.date(2026, 3, 16)
    assert week_start(datetime.date(2026, 3, 22)) == datetime.date(2026, 3, 16)


def test_translator_fallbacks():
    translator = Translator("es")
    assert translator.gettext("strength") == "fuerza"
    assert translator.gettext("Unknown text") == "Unknown text"
    assert translator.gettext("Streak of {days} consecutive days", days=7) == "Racha de 7 días consecutivos"
    translator.set_language("fr")
    assert translator.gettext("strength") == "strength"


class TestWeeklyReport:
    def test_empty_week(self, core) -> None:
        report = core.reporting.generate_weekly_report(1)
        assert report.week_start == datetime.date(2026, 3, 16)
        assert report.week_end == datetime.date(2026, 3, 22)
        assert report.summary.workouts_completed == 0
        assert report.summary.achievements == []
        assert report.insights == ["Time to get started! No workouts logged this week."]
        assert len(report.recommendations) == 2

    def test_regular_week(self, core) -> None:
        push = core.plans.create(1, "Push")
        legs = core.plans.create(1, "Legs")
        _workout(core, datetime.datetime(2026, 3, 16, 10, tzinfo=UTC), plan_id=push, rpe=7, satisfaction=4)
        _workout(core, datetime.datetime(2026, 3, 17, 10, tzinfo=UTC), plan_id=push, rpe=7, satisfaction=4)
        _workout(core, datetime.datetime(2026, 3, 18, 8, tzinfo=UTC), plan_id=legs, rpe=7, satisfaction=4)
        _workout(core, datetime.datetime(2026, 3, 12, 10, tzinfo=UTC), rpe=10, satisfaction=1)
        unfinished = core.sessions.create(1, datetime.datetime(2026, 3, 18, 11, tzinfo=UTC))
        core.workout_feedback.save(unfinished, WorkoutFeedback(rpe=10, satisfaction=1))

        report = core.reporting.generate_weekly_report(1)
        summary = report.summary
        assert summary.workouts_completed == 3
        assert summary.total_duration == pytest.approx(180.0)
        assert summary.average_rpe == pytest.approx(7.0)
        assert summary.average_satisfaction == pytest.approx(4.0)
        assert summary.top_plans == ["Push", "Legs"]
        assert summary.achievements == ["Solid consistency: 3+ workouts"]
        assert report.insights == [
            "Good training frequency this week.",
            "Balanced intensity this week (RPE 7.0). Good job!",
            "You really enjoyed your workouts (4.0/5). Keep that motivation.",
        ]
        assert report.recommendations == [
            "Stay consistent and listen to your body to adjust intensity."
        ]

    def test_single_workout_without_feedback(self, core) -> None:
        _workout(core, datetime.datetime(2026, 3, 17, 18, tzinfo=UTC))
        report = core.reporting.generate_weekly_report(1)
        assert report.insights == [
            "At least you kept the habit with 1 workout.",
            "Keep building your training habit. Every session counts!",
        ]
        assert report.recommendations == [
            "Try to add at least one more session next week for better results."
        ]

    def test_heavy_week_for_explicit_start(self, core) -> None:
        for day in range(9, 14):
            _workout(core, datetime.datetime(2026, 3, day, 7, tzinfo=UTC), minutes=70, rpe=9, satisfaction=5)
        report = core.reporting.generate_weekly_report(1, datetime.date(2026, 3, 11))
        assert report.week_start == datetime.date(2026, 3, 9)
        assert report.summary.achievements == [
            "Warrior of the week: 5+ workouts",
            "Marathoner: 5+ hours of training",
        ]
        assert report.insights[0] == "Excellent consistency! You trained 4+ times this week."
        assert report.insights[1] == "You trained at high intensity (RPE 9.0). Make sure you recover well."
        assert report.recommendations == [
            "Excellent frequency! Make sure to include rest days for recovery.",
            "Your intensity is very high. Include lighter sessions to avoid overtraining.",
            "You love your workouts! Keep this routine that works so well.",
        ]

    def test_save_replaces_same_week(self, core) -> None:
        _workout(core, datetime.datetime(2026, 3, 16, 10, tzinfo=UTC), rpe=6, satisfaction=3)
        core.reporting.save_weekly_report(core.reporting.generate_weekly_report(1))
        _workout(core, datetime.datetime(2026, 3, 17, 10, tzinfo=UTC), rpe=8, satisfaction=5)
        core.reporting.save_weekly_report(core.reporting.generate_weekly_report(1))
        assert core.weekly_reports.count(1) == 1
        stored = core.weekly_reports.fetch(1, datetime.date(2026, 3, 16))
        assert stored["completed_workouts"] == 2
        assert stored["avg_workout_duration"] == pytest.approx(60.0)
        assert set(stored["insights"]) == {"insights", "recommendations", "achievements", "top_plans"}

    def test_spanish_report(self, tmp_path) -> None:
        core = CoachingCore(
            SettingsSchema(language="es"), db_path=str(tmp_path / "es.db"), now=lambda: NOW
        )
        report = core.reporting.generate_weekly_report(1)
        assert report.insights == [
            "¡Es hora de comenzar! No hay entrenamientos registrados esta semana."
        ]


class TestWeeklyProgress:
    def test_no_workouts(self, core) -> None:
        assert core.reporting.weekly_progress(1) == WeeklyProgress(completed=0, goal=3, percentage=0)

    def test_against_preferred_frequency(self, core) -> None:
        core.preferences.save(UserPreferences(1, weekly_frequency=4))
        _workout(core, datetime.datetime(2026, 3, 16, 10, tzinfo=UTC))
        _workout(core, datetime.datetime(2026, 3, 17, 10, tzinfo=UTC))
        core.sessions.create(1, datetime.datetime(2026, 3, 18, 9, tzinfo=UTC))
        assert core.reporting.weekly_progress(1) == WeeklyProgress(2, 4, 50)

    def test_percentage_is_capped(self, core) -> None:
        core.preferences.save(UserPreferences(1, weekly_frequency=1))
        _workout(core, datetime.datetime(2026, 3, 16, 10, tzinfo=UTC))
        _workout(core, datetime.datetime(2026, 3, 17, 10, tzinfo=UTC))
        assert core.reporting.weekly_progress(1).percentage == 100

    def test_zero_goal(self, core) -> None:
        core.preferences.save(UserPreferences(1, weekly_frequency=0))
        _workout(core, datetime.datetime(2026, 3, 16, 10, tzinfo=UTC))
        assert core.reporting.weekly_progress(1) == WeeklyProgress(1, 0, 0)


class TestMonthlyReport:
    def test_volume_against_previous_window(self, core) -> None:
        old = _workout(core, NOW - datetime.timedelta(days=40))
        core.logs.add(old, "Squat", 1, 10, 100.0)
        recent = _workout(core, NOW - datetime.timedelta(days=5))
        core.logs.add(recent, "Squat", 1, 10, 150.0)

        report = core.reporting.generate_monthly_report(1)
        assert report.month_start == datetime.date(2026, 3, 1)
        assert report.month_end == datetime.date(2026, 3, 31)
        assert report.total_workouts == 1
        assert report.adherence_rate == pytest.approx(100.0)
        assert report.volume_trend == pytest.approx(50.0)
        assert report.favourite_exercises == ["Squat"]
        assert report.improvements == ["Excellent adherence of 100.0%"]
        assert report.achieved_goals == ["Consistency goal (90%+) reached"]
        assert report.suggested_goals == [
            "Try 10+ different exercises",
            "Keep average RPE between 6 and 8",
            "Increase total volume by 10%",
        ]

    def test_empty_month(self, core) -> None:
        report = core.reporting.generate_monthly_report(1, datetime.date(2026, 2, 14))
        assert report.month_start == datetime.date(2026, 2, 1)
        assert report.month_end == datetime.date(2026, 2, 28)
        assert report.volume_trend == 0.0
        assert report.favourite_exercises == []
        assert report.improvements == []
        assert report.suggested_goals[0] == "Reach 80% adherence"

    def test_favourites_prefer_feedback(self, core) -> None:
        sid = _workout(core, NOW - datetime.timedelta(days=3))
        core.logs.add(sid, "Squat", 1, 5, 100.0)
        core.workout_feedback.save(sid, WorkoutFeedback(preferred_exercises=["Deadlift"]))
        assert core.reporting.generate_monthly_report(1).favourite_exercises == ["Deadlift"]

    def test_invalid_user(self, core) -> None:
        with pytest.raises(ValueError):
            core.reporting.generate_monthly_report(0)
