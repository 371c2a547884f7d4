import datetime
import os
import sqlite3
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    AIDecisionRepository,
    Database,
    ExerciseLogRepository,
    PeriodizationAnalysisRepository,
    SetFeedbackRepository,
    UserPreferencesRepository,
    WeeklyReportRepository,
    WeightHistoryRepository,
    WeightSuggestionRepository,
    WorkoutFeedbackRepository,
    WorkoutPlanRepository,
    WorkoutSessionRepository,
)
from models import (
    AIDecision,
    DecisionType,
    Intensity,
    PeriodizationAnalysis,
    PreferenceUpdatePayload,
    ProgressionTrend,
    ProgressTrend,
    SessionStatus,
    SetFeedback,
    Severity,
    StagnationType,
    SuggestedAction,
    TrainingPhase,
    UserDecision,
    WeightHistoryEntry,
    WeightLearningPayload,
    WeightSuggestion,
    WorkoutFeedback,
)

NOW = datetime.datetime(2026, 3, 18, 12, 0, tzinfo=datetime.timezone.utc)


class TestSchema:
    def test_tables_created(self, tmp_path) -> None:
        db_path = tmp_path / "schema.db"
        Database(str(db_path))
        conn = sqlite3.connect(db_path)
        names = {
            r[0]
            for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        conn.close()
        assert set(Database._TABLE_DEFINITIONS) <= names

    def test_migration_keeps_rows_and_adds_columns(self, tmp_path) -> None:
        db_path = tmp_path / "old.db"
        conn = sqlite3.connect(db_path)
        conn.execute(
            "CREATE TABLE exercise_weight_history ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER NOT NULL, "
            "exercise_name TEXT NOT NULL, workout_date TEXT NOT NULL, "
            "suggested_weight REAL NOT NULL, actual_weight REAL NOT NULL);"
        )
        conn.execute(
            "INSERT INTO exercise_weight_history (user_id, exercise_name, workout_date, suggested_weight, actual_weight) "
            "VALUES (1, 'Squat', '2026-03-01', 60, 62.5);"
        )
        conn.commit()
        conn.close()

        repo = WeightHistoryRepository(str(db_path))
        conn = sqlite3.connect(db_path)
        cols = [r[1] for r in conn.execute("PRAGMA table_info(exercise_weight_history);")]
        conn.close()
        assert cols == Database._TABLE_DEFINITIONS["exercise_weight_history"][1]
        entries = repo.fetch_recent(1, "Squat")
        assert len(entries) == 1
        assert entries[0].actual_weight == 62.5
        assert entries[0].workout_date == datetime.date(2026, 3, 1)

    def test_reopening_is_idempotent(self, tmp_path) -> None:
        db_path = str(tmp_path / "again.db")
        plans = WorkoutPlanRepository(db_path)
        plan_id = plans.create(1, "Push")
        assert WorkoutPlanRepository(db_path).fetch_name(plan_id) == "Push"


class TestSessionsAndLogs:
    def test_session_lifecycle(self, tmp_path) -> None:
        sessions = WorkoutSessionRepository(str(tmp_path / "s.db"))
        started = NOW - datetime.timedelta(hours=2)
        sid = sessions.create(1, started)
        session = sessions.fetch(sid)
        assert session.status == SessionStatus.IN_PROGRESS
        assert not session.is_completed
        sessions.complete(sid, started + datetime.timedelta(minutes=45))
        session = sessions.fetch(sid)
        assert session.is_completed
        assert session.duration_minutes == 45

    def test_completion_before_start_rejected(self, tmp_path) -> None:
        sessions = WorkoutSessionRepository(str(tmp_path / "s.db"))
        with pytest.raises(ValueError):
            sessions.create(1, NOW, SessionStatus.COMPLETED, NOW - datetime.timedelta(minutes=1))
        sid = sessions.create(1, NOW)
        with pytest.raises(ValueError):
            sessions.complete(sid, NOW - datetime.timedelta(seconds=1))

    def test_unknown_session(self, tmp_path) -> None:
        with pytest.raises(ValueError):
            WorkoutSessionRepository(str(tmp_path / "s.db")).fetch(42)

    def test_range_is_ordered_and_bounded(self, tmp_path) -> None:
        db_path = str(tmp_path / "s.db")
        sessions = WorkoutSessionRepository(db_path)
        plan_id = WorkoutPlanRepository(db_path).create(1, "Legs")
        late = sessions.create(1, NOW - datetime.timedelta(days=1), workout_plan_id=plan_id)
        early = sessions.create(1, NOW - datetime.timedelta(days=3))
        sessions.create(1, NOW - datetime.timedelta(days=40))
        sessions.create(2, NOW - datetime.timedelta(days=2))
        found = sessions.fetch_range(1, NOW - datetime.timedelta(days=30), NOW)
        assert [s.id for s in found] == [early, late]
        assert found[1].plan_name == "Legs"

    def test_logs_join_feedback(self, tmp_path) -> None:
        db_path = str(tmp_path / "s.db")
        sid = WorkoutSessionRepository(db_path).create(1, NOW - datetime.timedelta(days=1))
        logs = ExerciseLogRepository(db_path)
        first = logs.add(sid, "Squat", 1, 5, 100.0)
        logs.add(sid, "Squat", 2, 5, 100.0, 180)
        SetFeedbackRepository(db_path).upsert(SetFeedback(first, 8, "perfect", created_at=NOW))
        rows = logs.fetch_for_user(1, NOW - datetime.timedelta(days=7), NOW)
        assert [r.set_number for r in rows] == [1, 2]
        assert rows[0].feedback.set_rpe == 8
        assert rows[1].feedback is None
        assert rows[1].rest_time_seconds == 180
        assert rows[0].volume == 500.0

    def test_negative_log_values_rejected(self, tmp_path) -> None:
        logs = ExerciseLogRepository(str(tmp_path / "s.db"))
        with pytest.raises(ValueError):
            logs.add(1, "Squat", 1, -1, 50.0)


class TestFeedback:
    def test_set_feedback_upsert_keeps_one_row(self, tmp_path) -> None:
        db_path = str(tmp_path / "f.db")
        sid = WorkoutSessionRepository(db_path).create(1, NOW - datetime.timedelta(days=1))
        log_id = ExerciseLogRepository(db_path).add(sid, "Row", 1, 10, 50.0)
        repo = SetFeedbackRepository(db_path)
        repo.upsert(SetFeedback(log_id, 6, "too_light", created_at=NOW))
        repo.upsert(SetFeedback(log_id, 9, "too_heavy", created_at=NOW))
        assert repo.count_for_log(log_id) == 1
        recent = repo.fetch_recent_for_exercise(1, "Row", NOW - datetime.timedelta(days=1))
        assert len(recent) == 1
        assert recent[0].set_rpe == 9
        assert repo.fetch_recent_for_exercise(2, "Row", NOW - datetime.timedelta(days=1)) == []

    def test_set_feedback_validation(self) -> None:
        with pytest.raises(ValueError):
            SetFeedback(1, 11, "perfect")
        with pytest.raises(ValueError):
            SetFeedback(1, 5, "meh")

    def test_workout_feedback_upsert(self, tmp_path) -> None:
        db_path = str(tmp_path / "f.db")
        sessions = WorkoutSessionRepository(db_path)
        sid = sessions.create(1, NOW - datetime.timedelta(days=1))
        repo = WorkoutFeedbackRepository(db_path)
        repo.save(sid, WorkoutFeedback(rpe=7, satisfaction=3))
        repo.save(sid, WorkoutFeedback(rpe=8, satisfaction=5, preferred_exercises=["Squat"]))
        rows = repo.fetch_range(1, NOW - datetime.timedelta(days=7), NOW)
        assert len(rows) == 1
        assert rows[0].rpe == 8
        assert rows[0].preferred_exercises == ["Squat"]
        assert rows[0].session_completed is False


class TestWeights:
    def test_history_newest_first(self, tmp_path) -> None:
        repo = WeightHistoryRepository(str(tmp_path / "w.db"))
        for days, weight in [(3, 60.0), (1, 62.5), (1, 65.0)]:
            repo.append(
                WeightHistoryEntry(1, "Squat", NOW.date() - datetime.timedelta(days=days), 60.0, weight)
            )
        repo.append(WeightHistoryEntry(1, "Row", NOW.date() - datetime.timedelta(days=40), 40.0, 40.0))
        assert [e.actual_weight for e in repo.fetch_recent(1, "Squat")] == [65.0, 62.5, 60.0]
        assert [e.actual_weight for e in repo.fetch_recent(1, "Squat", limit=1)] == [65.0]
        since = NOW.date() - datetime.timedelta(days=28)
        assert repo.exercise_names(1, since) == ["Squat"]
        assert repo.exercise_names(1) == ["Row", "Squat"]
        assert repo.user_ids() == [1]

    def test_suggestion_upsert_is_unique(self, tmp_path) -> None:
        repo = WeightSuggestionRepository(str(tmp_path / "w.db"))
        first = repo.upsert(
            WeightSuggestion(1, "Squat", 60.0, 0.3, 0, ProgressionTrend.STABLE, NOW + datetime.timedelta(days=7))
        )
        second = repo.upsert(
            WeightSuggestion(1, "Squat", 62.5, 0.5, 2, "increasing", NOW + datetime.timedelta(days=7), 60.0)
        )
        assert repo.count(1, "Squat") == 1
        assert second.id == first.id
        assert second.suggested_weight == 62.5
        assert second.progression_trend == ProgressionTrend.INCREASING
        assert second.last_used_weight == 60.0

    def test_suggestion_validity(self, tmp_path) -> None:
        repo = WeightSuggestionRepository(str(tmp_path / "w.db"))
        repo.upsert(
            WeightSuggestion(1, "Squat", 60.0, 0.3, 0, "stable", NOW + datetime.timedelta(days=7))
        )
        assert repo.fetch_valid(1, "Squat", NOW) is not None
        assert repo.fetch_valid(1, "Squat", NOW + datetime.timedelta(days=8)) is None
        repo.expire(1, "Squat", NOW)
        assert repo.fetch_valid(1, "Squat", NOW) is None
        assert repo.fetch(1, "Squat") is not None
        assert [s.exercise_name for s in repo.fetch_for_user(1)] == ["Squat"]


def _analysis(user_id: int, detected: bool) -> PeriodizationAnalysis:
    return PeriodizationAnalysis(
        user_id=user_id,
        analysis_date=NOW.date(),
        current_phase=TrainingPhase.HYPERTROPHY,
        weeks_in_phase=2,
        progress_trend=ProgressTrend.STABLE,
        avg_rpe=7.0,
        avg_satisfaction=3.0,
        avg_fatigue=3.0,
        stagnation_detected=detected,
        stagnation_type=StagnationType.STRENGTH if detected else StagnationType.NONE,
        severity=Severity.MEDIUM,
        recommended_action=SuggestedAction.CONTINUE,
        recommended_phase=TrainingPhase.DEFINITION,
        confidence_score=0.5 if detected else 0.0,
        indicators=["flat volume"],
    )


class TestAnalysesAndDecisions:
    def test_active_and_decision(self, tmp_path) -> None:
        repo = PeriodizationAnalysisRepository(str(tmp_path / "a.db"))
        stagnant = repo.append(_analysis(1, True))
        repo.append(_analysis(1, False))
        assert repo.fetch_latest(1).stagnation_detected is False
        assert repo.fetch_active(1).id == stagnant
        assert repo.fetch(stagnant).indicators == ["flat volume"]
        repo.update_decision(stagnant, UserDecision.ACCEPTED, "ok")
        assert repo.fetch_active(1) is None
        assert repo.fetch(stagnant).user_feedback == "ok"
        assert len(repo.fetch_history(1, limit=1)) == 1
        with pytest.raises(ValueError):
            repo.update_decision(999, UserDecision.REJECTED)

    def test_decisions_filter_by_type(self, tmp_path) -> None:
        repo = AIDecisionRepository(str(tmp_path / "d.db"))
        repo.append(
            AIDecision(
                1,
                PreferenceUpdatePayload({"rpe": 9}, {"intensity": "decrease"}, {}, {}),
                "rpe high",
                0.8,
                NOW,
            )
        )
        repo.append(
            AIDecision(
                1,
                WeightLearningPayload("Squat", None, 62.5, 6.5, {"perfect": 3}, "stable", 8),
                "learned",
                0.46,
                NOW + datetime.timedelta(minutes=1),
            )
        )
        everything = repo.fetch(1)
        assert [d.decision_type for d in everything] == [
            DecisionType.WEIGHT_LEARNING,
            DecisionType.PREFERENCE_UPDATE,
        ]
        learned = repo.fetch(1, "weight_learning")
        assert len(learned) == 1
        assert learned[0].payload.progression_trend == ProgressionTrend.STABLE
        assert learned[0].payload.suggested_weight == 62.5
        assert repo.fetch(2) == []


class TestPreferencesAndReports:
    def test_preferences_update(self, tmp_path) -> None:
        repo = UserPreferencesRepository(str(tmp_path / "p.db"))
        assert repo.fetch(1) is None
        prefs = repo.update(1, {"preferred_intensity": "high", "weekly_frequency": 5})
        assert prefs.preferred_intensity == Intensity.HIGH
        stored = repo.fetch(1)
        assert stored.weekly_frequency == 5
        assert stored.preferred_workout_duration == 45
        with pytest.raises(ValueError):
            repo.update(1, {"favourite_colour": "red"})
        with pytest.raises(ValueError):
            repo.update(1, {"user_id": 2})

    def test_weekly_report_upsert(self, tmp_path) -> None:
        repo = WeeklyReportRepository(str(tmp_path / "r.db"))
        start = datetime.date(2026, 3, 16)
        end = datetime.date(2026, 3, 22)
        repo.upsert(1, start, end, 2, 7.0, 4.0, 50.0, {"insights": ["a"]})
        repo.upsert(1, start, end, 3, 7.5, 4.5, 55.0, {"insights": ["b"]})
        assert repo.count(1) == 1
        stored = repo.fetch(1, start)
        assert stored["completed_workouts"] == 3
        assert stored["insights"] == {"insights": ["b"]}
        assert repo.fetch(1, end) is None
