import sqlite3
import datetime
import json
from contextlib import contextmanager
from typing import List, Tuple, Optional

from models import (
    AIDecision,
    DecisionType,
    ExerciseLog,
    Intensity,
    PeriodizationAnalysis,
    ProgressTrend,
    ProgressionTrend,
    RestTimePattern,
    SessionStatus,
    SetFeedback,
    Severity,
    StagnationType,
    SuggestedAction,
    TrainingPhase,
    UserDecision,
    UserPreferences,
    WeightFeeling,
    WeightHistoryEntry,
    WeightSuggestion,
    WorkoutFeedback,
    WorkoutSession,
    parse_timestamp,
    payload_from_dict,
    to_plain,
    utcnow,
)


def _ts(value: datetime.datetime) -> str:
    """Normalise a datetime to the UTC ISO form used for range comparisons."""
    return parse_timestamp(value).isoformat()


def _date(value: datetime.date | str) -> str:
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    return datetime.date.fromisoformat(value).isoformat()


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workout_plans": (
            """CREATE TABLE workout_plans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    name TEXT NOT NULL
                );""",
            ["id", "user_id", "name"],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    workout_plan_id INTEGER,
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    status TEXT NOT NULL DEFAULT 'in_progress',
                    FOREIGN KEY(workout_plan_id) REFERENCES workout_plans(id) ON DELETE SET NULL
                );""",
            ["id", "user_id", "workout_plan_id", "started_at", "completed_at", "status"],
        ),
        "exercise_logs": (
            """CREATE TABLE exercise_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    exercise_name TEXT NOT NULL,
                    set_number INTEGER NOT NULL,
                    reps_completed INTEGER NOT NULL,
                    weight_used REAL NOT NULL,
                    rest_time_seconds INTEGER,
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "session_id",
                "exercise_name",
                "set_number",
                "reps_completed",
                "weight_used",
                "rest_time_seconds",
            ],
        ),
        "exercise_set_feedback": (
            """CREATE TABLE exercise_set_feedback (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_log_id INTEGER NOT NULL UNIQUE,
                    set_rpe INTEGER NOT NULL,
                    weight_feeling TEXT NOT NULL,
                    completed_as_planned INTEGER NOT NULL DEFAULT 1,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(exercise_log_id) REFERENCES exercise_logs(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "exercise_log_id",
                "set_rpe",
                "weight_feeling",
                "completed_as_planned",
                "notes",
                "created_at",
            ],
        ),
        "workout_feedback": (
            """CREATE TABLE workout_feedback (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL UNIQUE,
                    post_rpe INTEGER,
                    post_satisfaction INTEGER,
                    post_fatigue INTEGER,
                    post_progress_feeling INTEGER,
                    preferred_exercises TEXT NOT NULL DEFAULT '[]',
                    disliked_exercises TEXT NOT NULL DEFAULT '[]',
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "session_id",
                "post_rpe",
                "post_satisfaction",
                "post_fatigue",
                "post_progress_feeling",
                "preferred_exercises",
                "disliked_exercises",
            ],
        ),
        "exercise_weight_history": (
            """CREATE TABLE exercise_weight_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    exercise_name TEXT NOT NULL,
                    session_id INTEGER,
                    workout_date TEXT NOT NULL,
                    suggested_weight REAL NOT NULL,
                    actual_weight REAL NOT NULL,
                    weight_feedback TEXT,
                    rpe_achieved INTEGER,
                    reps_completed INTEGER,
                    sets_completed INTEGER,
                    progression_percentage REAL NOT NULL DEFAULT 0,
                    user_override INTEGER NOT NULL DEFAULT 0
                );""",
            [
                "id",
                "user_id",
                "exercise_name",
                "session_id",
                "workout_date",
                "suggested_weight",
                "actual_weight",
                "weight_feedback",
                "rpe_achieved",
                "reps_completed",
                "sets_completed",
                "progression_percentage",
                "user_override",
            ],
        ),
        "ai_weight_suggestions": (
            """CREATE TABLE ai_weight_suggestions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    exercise_name TEXT NOT NULL,
                    suggested_weight REAL NOT NULL,
                    confidence_score REAL NOT NULL,
                    based_on_sessions INTEGER NOT NULL DEFAULT 0,
                    last_used_weight REAL,
                    progression_trend TEXT NOT NULL DEFAULT 'stable',
                    target_rpe_range TEXT NOT NULL DEFAULT '6-8',
                    muscle_group TEXT,
                    exercise_type TEXT,
                    valid_until TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(user_id, exercise_name)
                );""",
            [
                "id",
                "user_id",
                "exercise_name",
                "suggested_weight",
                "confidence_score",
                "based_on_sessions",
                "last_used_weight",
                "progression_trend",
                "target_rpe_range",
                "muscle_group",
                "exercise_type",
                "valid_until",
                "updated_at",
            ],
        ),
        "periodization_analysis": (
            """CREATE TABLE periodization_analysis (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    analysis_date TEXT NOT NULL,
                    current_phase TEXT NOT NULL,
                    weeks_in_phase INTEGER NOT NULL DEFAULT 0,
                    progress_trend TEXT NOT NULL DEFAULT 'stable',
                    avg_rpe REAL NOT NULL DEFAULT 0,
                    avg_satisfaction REAL NOT NULL DEFAULT 0,
                    avg_fatigue REAL NOT NULL DEFAULT 0,
                    stagnation_detected INTEGER NOT NULL DEFAULT 0,
                    stagnation_type TEXT NOT NULL DEFAULT 'none',
                    severity TEXT NOT NULL DEFAULT 'low',
                    indicators TEXT NOT NULL DEFAULT '[]',
                    recommendations TEXT NOT NULL DEFAULT '[]',
                    recommended_action TEXT NOT NULL,
                    recommended_phase TEXT NOT NULL,
                    confidence_score REAL NOT NULL DEFAULT 0,
                    user_decision TEXT NOT NULL DEFAULT 'pending',
                    user_feedback TEXT
                );""",
            [
                "id",
                "user_id",
                "analysis_date",
                "current_phase",
                "weeks_in_phase",
                "progress_trend",
                "avg_rpe",
                "avg_satisfaction",
                "avg_fatigue",
                "stagnation_detected",
                "stagnation_type",
                "severity",
                "indicators",
                "recommendations",
                "recommended_action",
                "recommended_phase",
                "confidence_score",
                "user_decision",
                "user_feedback",
            ],
        ),
        "rest_time_patterns": (
            """CREATE TABLE rest_time_patterns (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    exercise_name TEXT NOT NULL,
                    muscle_group TEXT,
                    session_id INTEGER,
                    set_number INTEGER,
                    recommended_rest_seconds INTEGER NOT NULL,
                    actual_rest_seconds INTEGER NOT NULL,
                    next_set_performance INTEGER,
                    fatigue_level INTEGER,
                    workout_date TEXT NOT NULL
                );""",
            [
                "id",
                "user_id",
                "exercise_name",
                "muscle_group",
                "session_id",
                "set_number",
                "recommended_rest_seconds",
                "actual_rest_seconds",
                "next_set_performance",
                "fatigue_level",
                "workout_date",
            ],
        ),
        "ai_decisions": (
            """CREATE TABLE ai_decisions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    decision_type TEXT NOT NULL,
                    decision_data TEXT NOT NULL,
                    reasoning TEXT NOT NULL,
                    confidence_level REAL NOT NULL,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "user_id",
                "decision_type",
                "decision_data",
                "reasoning",
                "confidence_level",
                "created_at",
            ],
        ),
        "user_preferences": (
            """CREATE TABLE user_preferences (
                    user_id INTEGER PRIMARY KEY,
                    preferred_intensity TEXT NOT NULL DEFAULT 'moderate',
                    preferred_workout_duration INTEGER NOT NULL DEFAULT 45,
                    weekly_frequency INTEGER NOT NULL DEFAULT 3,
                    available_training_days TEXT NOT NULL DEFAULT '[]',
                    preferred_exercises TEXT NOT NULL DEFAULT '[]',
                    avoided_exercises TEXT NOT NULL DEFAULT '[]'
                );""",
            [
                "user_id",
                "preferred_intensity",
                "preferred_workout_duration",
                "weekly_frequency",
                "available_training_days",
                "preferred_exercises",
                "avoided_exercises",
            ],
        ),
        "weekly_reports": (
            """CREATE TABLE weekly_reports (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    week_start_date TEXT NOT NULL,
                    week_end_date TEXT NOT NULL,
                    completed_workouts INTEGER NOT NULL DEFAULT 0,
                    avg_rpe REAL NOT NULL DEFAULT 0,
                    avg_satisfaction REAL NOT NULL DEFAULT 0,
                    avg_workout_duration REAL NOT NULL DEFAULT 0,
                    insights TEXT NOT NULL DEFAULT '{}',
                    UNIQUE(user_id, week_start_date)
                );""",
            [
                "id",
                "user_id",
                "week_start_date",
                "week_end_date",
                "completed_workouts",
                "avg_rpe",
                "avg_satisfaction",
                "avg_workout_duration",
                "insights",
            ],
        ),
    }

    def __init__(self, db_path: str = "coach.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path, timeout=30)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class WorkoutPlanRepository(BaseRepository):
    """Repository for named workout plans (splits)."""

    def create(self, user_id: int, name: str) -> int:
        if not name.strip():
            raise ValueError("plan name required")
        return self.execute(
            "INSERT INTO workout_plans (user_id, name) VALUES (?, ?);",
            (user_id, name.strip()),
        )

    def fetch_name(self, plan_id: int) -> Optional[str]:
        rows = self.fetch_all("SELECT name FROM workout_plans WHERE id = ?;", (plan_id,))
        return rows[0][0] if rows else None


class WorkoutSessionRepository(BaseRepository):
    """Repository for workout session rows."""

    _SELECT = (
        "SELECT s.id, s.user_id, s.started_at, s.status, s.completed_at, "
        "s.workout_plan_id, p.name FROM workout_sessions s "
        "LEFT JOIN workout_plans p ON s.workout_plan_id = p.id"
    )

    @staticmethod
    def _row(r: Tuple) -> WorkoutSession:
        return WorkoutSession(
            id=int(r[0]),
            user_id=int(r[1]),
            started_at=parse_timestamp(r[2]),
            status=SessionStatus(r[3]),
            completed_at=parse_timestamp(r[4]),
            workout_plan_id=int(r[5]) if r[5] is not None else None,
            plan_name=r[6],
        )

    def create(
        self,
        user_id: int,
        started_at: datetime.datetime,
        status: SessionStatus | str = SessionStatus.IN_PROGRESS,
        completed_at: datetime.datetime | None = None,
        workout_plan_id: int | None = None,
    ) -> int:
        status = SessionStatus(status)
        if completed_at is not None and parse_timestamp(completed_at) < parse_timestamp(started_at):
            raise ValueError("completed_at must not precede started_at")
        return self.execute(
            "INSERT INTO workout_sessions (user_id, workout_plan_id, started_at, completed_at, status) "
            "VALUES (?, ?, ?, ?, ?);",
            (
                user_id,
                workout_plan_id,
                _ts(started_at),
                _ts(completed_at) if completed_at is not None else None,
                status.value,
            ),
        )

    def fetch(self, session_id: int) -> WorkoutSession:
        rows = self.fetch_all(self._SELECT + " WHERE s.id = ?;", (session_id,))
        if not rows:
            raise ValueError("session not found")
        return self._row(rows[0])

    def complete(
        self,
        session_id: int,
        completed_at: datetime.datetime,
        status: SessionStatus | str = SessionStatus.COMPLETED,
    ) -> None:
        session = self.fetch(session_id)
        if parse_timestamp(completed_at) < session.started_at:
            raise ValueError("completed_at must not precede started_at")
        self.execute(
            "UPDATE workout_sessions SET completed_at = ?, status = ? WHERE id = ?;",
            (_ts(completed_at), SessionStatus(status).value, session_id),
        )

    def fetch_range(
        self,
        user_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[WorkoutSession]:
        rows = self.fetch_all(
            self._SELECT
            + " WHERE s.user_id = ? AND s.started_at >= ? AND s.started_at <= ? "
            "ORDER BY s.started_at, s.id;",
            (user_id, _ts(start), _ts(end)),
        )
        return [self._row(r) for r in rows]


class ExerciseLogRepository(BaseRepository):
    """Repository for logged sets."""

    def add(
        self,
        session_id: int,
        exercise_name: str,
        set_number: int,
        reps_completed: int,
        weight_used: float,
        rest_time_seconds: int | None = None,
    ) -> int:
        if reps_completed < 0 or weight_used < 0:
            raise ValueError("reps and weight must be non-negative")
        return self.execute(
            "INSERT INTO exercise_logs (session_id, exercise_name, set_number, reps_completed, weight_used, rest_time_seconds) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (session_id, exercise_name, set_number, reps_completed, weight_used, rest_time_seconds),
        )

    def fetch_for_user(
        self,
        user_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[ExerciseLog]:
        """Return logs of sessions started in [start, end] with set feedback joined."""
        rows = self.fetch_all(
            "SELECT l.id, l.session_id, l.exercise_name, l.set_number, l.reps_completed, "
            "l.weight_used, l.rest_time_seconds, s.started_at, p.name, "
            "f.set_rpe, f.weight_feeling, f.completed_as_planned, f.notes, f.created_at "
            "FROM exercise_logs l "
            "JOIN workout_sessions s ON l.session_id = s.id "
            "LEFT JOIN workout_plans p ON s.workout_plan_id = p.id "
            "LEFT JOIN exercise_set_feedback f ON f.exercise_log_id = l.id "
            "WHERE s.user_id = ? AND s.started_at >= ? AND s.started_at <= ? "
            "ORDER BY s.started_at, l.set_number, l.id;",
            (user_id, _ts(start), _ts(end)),
        )
        logs: list[ExerciseLog] = []
        for r in rows:
            feedback = None
            if r[9] is not None:
                feedback = SetFeedback(
                    exercise_log_id=int(r[0]),
                    set_rpe=int(r[9]),
                    weight_feeling=WeightFeeling(r[10]),
                    completed_as_planned=bool(r[11]),
                    notes=r[12],
                    created_at=parse_timestamp(r[13]),
                )
            logs.append(
                ExerciseLog(
                    id=int(r[0]),
                    session_id=int(r[1]),
                    exercise_name=r[2],
                    set_number=int(r[3]),
                    reps_completed=int(r[4]),
                    weight_used=float(r[5]),
                    rest_time_seconds=int(r[6]) if r[6] is not None else None,
                    started_at=parse_timestamp(r[7]),
                    plan_name=r[8],
                    feedback=feedback,
                )
            )
        return logs


class SetFeedbackRepository(BaseRepository):
    """Repository for per-set feedback, one row per exercise log."""

    def upsert(self, feedback: SetFeedback) -> None:
        created = feedback.created_at or utcnow()
        self.execute(
            "INSERT INTO exercise_set_feedback (exercise_log_id, set_rpe, weight_feeling, completed_as_planned, notes, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(exercise_log_id) DO UPDATE SET set_rpe=excluded.set_rpe, "
            "weight_feeling=excluded.weight_feeling, completed_as_planned=excluded.completed_as_planned, "
            "notes=excluded.notes, created_at=excluded.created_at;",
            (
                feedback.exercise_log_id,
                int(feedback.set_rpe),
                WeightFeeling(feedback.weight_feeling).value,
                int(feedback.completed_as_planned),
                feedback.notes,
                _ts(created),
            ),
        )

    def count_for_log(self, exercise_log_id: int) -> int:
        rows = self.fetch_all(
            "SELECT COUNT(*) FROM exercise_set_feedback WHERE exercise_log_id = ?;",
            (exercise_log_id,),
        )
        return int(rows[0][0])

    def fetch_recent_for_exercise(
        self,
        user_id: int,
        exercise_name: str,
        since: datetime.datetime,
        limit: int = 50,
    ) -> list[SetFeedback]:
        """Return the newest feedback rows of ``user_id`` for ``exercise_name``."""
        rows = self.fetch_all(
            "SELECT f.exercise_log_id, f.set_rpe, f.weight_feeling, f.completed_as_planned, f.notes, f.created_at "
            "FROM exercise_set_feedback f "
            "JOIN exercise_logs l ON f.exercise_log_id = l.id "
            "JOIN workout_sessions s ON l.session_id = s.id "
            "WHERE s.user_id = ? AND l.exercise_name = ? AND f.created_at >= ? "
            "ORDER BY f.created_at DESC, f.id DESC LIMIT ?;",
            (user_id, exercise_name, _ts(since), limit),
        )
        return [
            SetFeedback(
                exercise_log_id=int(r[0]),
                set_rpe=int(r[1]),
                weight_feeling=WeightFeeling(r[2]),
                completed_as_planned=bool(r[3]),
                notes=r[4],
                created_at=parse_timestamp(r[5]),
            )
            for r in rows
        ]


class WorkoutFeedbackRepository(BaseRepository):
    """Repository for post-session feedback."""

    def save(self, session_id: int, feedback: WorkoutFeedback) -> None:
        self.execute(
            "INSERT INTO workout_feedback (session_id, post_rpe, post_satisfaction, post_fatigue, "
            "post_progress_feeling, preferred_exercises, disliked_exercises) VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(session_id) DO UPDATE SET post_rpe=excluded.post_rpe, "
            "post_satisfaction=excluded.post_satisfaction, post_fatigue=excluded.post_fatigue, "
            "post_progress_feeling=excluded.post_progress_feeling, "
            "preferred_exercises=excluded.preferred_exercises, disliked_exercises=excluded.disliked_exercises;",
            (
                session_id,
                feedback.rpe,
                feedback.satisfaction,
                feedback.fatigue,
                feedback.progress_feeling,
                json.dumps(feedback.preferred_exercises),
                json.dumps(feedback.disliked_exercises),
            ),
        )

    def fetch_range(
        self,
        user_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[WorkoutFeedback]:
        """Return feedback for sessions started in [start, end], oldest first."""
        rows = self.fetch_all(
            "SELECT f.session_id, f.post_rpe, f.post_satisfaction, f.post_fatigue, f.post_progress_feeling, "
            "f.preferred_exercises, f.disliked_exercises, s.started_at, p.name, s.status, s.completed_at "
            "FROM workout_feedback f "
            "JOIN workout_sessions s ON f.session_id = s.id "
            "LEFT JOIN workout_plans p ON s.workout_plan_id = p.id "
            "WHERE s.user_id = ? AND s.started_at >= ? AND s.started_at <= ? "
            "ORDER BY s.started_at, f.id;",
            (user_id, _ts(start), _ts(end)),
        )
        return [
            WorkoutFeedback(
                session_id=int(r[0]),
                rpe=r[1],
                satisfaction=r[2],
                fatigue=r[3],
                progress_feeling=r[4],
                preferred_exercises=json.loads(r[5] or "[]"),
                disliked_exercises=json.loads(r[6] or "[]"),
                started_at=parse_timestamp(r[7]),
                plan_name=r[8],
                session_completed=r[9] in ("completed", "finished") or r[10] is not None,
            )
            for r in rows
        ]


class WeightHistoryRepository(BaseRepository):
    """Append-only repository for weights actually used per exercise."""

    _COLUMNS = (
        "id, user_id, exercise_name, session_id, workout_date, suggested_weight, actual_weight, "
        "weight_feedback, rpe_achieved, reps_completed, sets_completed"
    )

    def append(self, entry: WeightHistoryEntry) -> int:
        return self.execute(
            "INSERT INTO exercise_weight_history (user_id, exercise_name, session_id, workout_date, "
            "suggested_weight, actual_weight, weight_feedback, rpe_achieved, reps_completed, sets_completed, "
            "progression_percentage, user_override) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                entry.user_id,
                entry.exercise_name,
                entry.session_id,
                _date(entry.workout_date),
                entry.suggested_weight,
                entry.actual_weight,
                entry.weight_feedback.value if entry.weight_feedback else None,
                entry.rpe_achieved,
                entry.reps_completed,
                entry.sets_completed,
                entry.progression_percentage,
                int(entry.user_override),
            ),
        )

    def fetch_recent(
        self,
        user_id: int,
        exercise_name: str,
        since: datetime.date | None = None,
        limit: int = 10,
    ) -> list[WeightHistoryEntry]:
        """Return up to ``limit`` entries on or after ``since``, newest first."""
        floor = _date(since) if since is not None else "0001-01-01"
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_weight_history "
            "WHERE user_id = ? AND exercise_name = ? AND workout_date >= ? "
            "ORDER BY workout_date DESC, id DESC LIMIT ?;",
            (user_id, exercise_name, floor, limit),
        )
        return [
            WeightHistoryEntry(
                id=int(r[0]),
                user_id=int(r[1]),
                exercise_name=r[2],
                session_id=r[3],
                workout_date=datetime.date.fromisoformat(r[4]),
                suggested_weight=float(r[5]),
                actual_weight=float(r[6]),
                weight_feedback=WeightFeeling(r[7]) if r[7] else None,
                rpe_achieved=r[8],
                reps_completed=r[9],
                sets_completed=r[10],
            )
            for r in rows
        ]

    def exercise_names(self, user_id: int, since: datetime.date | None = None) -> list[str]:
        """Return distinct exercise names, most recently logged first."""
        query = "SELECT exercise_name, MAX(id) FROM exercise_weight_history WHERE user_id = ?"
        params: list = [user_id]
        if since is not None:
            query += " AND workout_date >= ?"
            params.append(_date(since))
        query += " GROUP BY exercise_name ORDER BY MAX(id) DESC;"
        return [r[0] for r in self.fetch_all(query, tuple(params))]

    def user_ids(self) -> list[int]:
        return [int(r[0]) for r in self.fetch_all(
            "SELECT DISTINCT user_id FROM exercise_weight_history ORDER BY user_id;"
        )]


class WeightSuggestionRepository(BaseRepository):
    """Repository holding at most one suggestion per (user, exercise)."""

    _COLUMNS = (
        "id, user_id, exercise_name, suggested_weight, confidence_score, based_on_sessions, "
        "last_used_weight, progression_trend, target_rpe_range, muscle_group, exercise_type, valid_until"
    )

    @staticmethod
    def _row(r: Tuple) -> WeightSuggestion:
        return WeightSuggestion(
            id=int(r[0]),
            user_id=int(r[1]),
            exercise_name=r[2],
            suggested_weight=float(r[3]),
            confidence_score=float(r[4]),
            based_on_sessions=int(r[5]),
            last_used_weight=float(r[6]) if r[6] is not None else None,
            progression_trend=ProgressionTrend(r[7]),
            target_rpe_range=r[8],
            muscle_group=r[9] or "General",
            exercise_type=r[10] or "isolation",
            valid_until=parse_timestamp(r[11]),
        )

    def upsert(self, suggestion: WeightSuggestion) -> WeightSuggestion:
        """Insert or replace the suggestion for its (user, exercise) atomically."""
        self.execute(
            "INSERT INTO ai_weight_suggestions (user_id, exercise_name, suggested_weight, confidence_score, "
            "based_on_sessions, last_used_weight, progression_trend, target_rpe_range, muscle_group, "
            "exercise_type, valid_until, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, exercise_name) DO UPDATE SET suggested_weight=excluded.suggested_weight, "
            "confidence_score=excluded.confidence_score, based_on_sessions=excluded.based_on_sessions, "
            "last_used_weight=excluded.last_used_weight, progression_trend=excluded.progression_trend, "
            "target_rpe_range=excluded.target_rpe_range, muscle_group=excluded.muscle_group, "
            "exercise_type=excluded.exercise_type, valid_until=excluded.valid_until, "
            "updated_at=excluded.updated_at;",
            (
                suggestion.user_id,
                suggestion.exercise_name,
                suggestion.suggested_weight,
                suggestion.confidence_score,
                suggestion.based_on_sessions,
                suggestion.last_used_weight,
                ProgressionTrend(suggestion.progression_trend).value,
                suggestion.target_rpe_range,
                suggestion.muscle_group,
                suggestion.exercise_type,
                _ts(suggestion.valid_until),
                _ts(utcnow()),
            ),
        )
        stored = self.fetch(suggestion.user_id, suggestion.exercise_name)
        if stored is None:
            raise sqlite3.DatabaseError("suggestion was not persisted")
        return stored

    def fetch(self, user_id: int, exercise_name: str) -> Optional[WeightSuggestion]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM ai_weight_suggestions WHERE user_id = ? AND exercise_name = ?;",
            (user_id, exercise_name),
        )
        return self._row(rows[0]) if rows else None

    def fetch_valid(
        self, user_id: int, exercise_name: str, now: datetime.datetime
    ) -> Optional[WeightSuggestion]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM ai_weight_suggestions "
            "WHERE user_id = ? AND exercise_name = ? AND valid_until > ?;",
            (user_id, exercise_name, _ts(now)),
        )
        return self._row(rows[0]) if rows else None

    def fetch_for_user(self, user_id: int) -> list[WeightSuggestion]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM ai_weight_suggestions WHERE user_id = ? ORDER BY exercise_name;",
            (user_id,),
        )
        return [self._row(r) for r in rows]

    def expire(self, user_id: int, exercise_name: str, now: datetime.datetime) -> None:
        self.execute(
            "UPDATE ai_weight_suggestions SET valid_until = ? WHERE user_id = ? AND exercise_name = ?;",
            (_ts(now), user_id, exercise_name),
        )

    def count(self, user_id: int, exercise_name: str) -> int:
        rows = self.fetch_all(
            "SELECT COUNT(*) FROM ai_weight_suggestions WHERE user_id = ? AND exercise_name = ?;",
            (user_id, exercise_name),
        )
        return int(rows[0][0])


class PeriodizationAnalysisRepository(BaseRepository):
    """Append-only repository of stagnation analyses."""

    _COLUMNS = (
        "id, user_id, analysis_date, current_phase, weeks_in_phase, progress_trend, avg_rpe, "
        "avg_satisfaction, avg_fatigue, stagnation_detected, stagnation_type, severity, indicators, "
        "recommendations, recommended_action, recommended_phase, confidence_score, user_decision, user_feedback"
    )

    @staticmethod
    def _row(r: Tuple) -> PeriodizationAnalysis:
        return PeriodizationAnalysis(
            id=int(r[0]),
            user_id=int(r[1]),
            analysis_date=datetime.date.fromisoformat(r[2]),
            current_phase=TrainingPhase(r[3]),
            weeks_in_phase=int(r[4]),
            progress_trend=ProgressTrend(r[5]),
            avg_rpe=float(r[6]),
            avg_satisfaction=float(r[7]),
            avg_fatigue=float(r[8]),
            stagnation_detected=bool(r[9]),
            stagnation_type=StagnationType(r[10]),
            severity=Severity(r[11]),
            indicators=json.loads(r[12]),
            recommendations=json.loads(r[13]),
            recommended_action=SuggestedAction(r[14]),
            recommended_phase=TrainingPhase(r[15]),
            confidence_score=float(r[16]),
            user_decision=UserDecision(r[17]),
            user_feedback=r[18],
        )

    def append(self, record: PeriodizationAnalysis) -> int:
        return self.execute(
            "INSERT INTO periodization_analysis (user_id, analysis_date, current_phase, weeks_in_phase, "
            "progress_trend, avg_rpe, avg_satisfaction, avg_fatigue, stagnation_detected, stagnation_type, "
            "severity, indicators, recommendations, recommended_action, recommended_phase, confidence_score, "
            "user_decision, user_feedback) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                record.user_id,
                _date(record.analysis_date),
                TrainingPhase(record.current_phase).value,
                record.weeks_in_phase,
                ProgressTrend(record.progress_trend).value,
                record.avg_rpe,
                record.avg_satisfaction,
                record.avg_fatigue,
                int(record.stagnation_detected),
                StagnationType(record.stagnation_type).value,
                Severity(record.severity).value,
                json.dumps(record.indicators),
                json.dumps(record.recommendations),
                SuggestedAction(record.recommended_action).value,
                TrainingPhase(record.recommended_phase).value,
                record.confidence_score,
                UserDecision(record.user_decision).value,
                record.user_feedback,
            ),
        )

    def fetch(self, analysis_id: int) -> Optional[PeriodizationAnalysis]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM periodization_analysis WHERE id = ?;",
            (analysis_id,),
        )
        return self._row(rows[0]) if rows else None

    def fetch_history(self, user_id: int, limit: int = 10) -> list[PeriodizationAnalysis]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM periodization_analysis WHERE user_id = ? "
            "ORDER BY analysis_date DESC, id DESC LIMIT ?;",
            (user_id, limit),
        )
        return [self._row(r) for r in rows]

    def fetch_latest(self, user_id: int) -> Optional[PeriodizationAnalysis]:
        history = self.fetch_history(user_id, 1)
        return history[0] if history else None

    def fetch_active(self, user_id: int) -> Optional[PeriodizationAnalysis]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM periodization_analysis WHERE user_id = ? "
            "AND user_decision = 'pending' AND stagnation_detected = 1 "
            "ORDER BY analysis_date DESC, id DESC LIMIT 1;",
            (user_id,),
        )
        return self._row(rows[0]) if rows else None

    def update_decision(
        self, analysis_id: int, decision: UserDecision, feedback: str | None = None
    ) -> None:
        if self.fetch(analysis_id) is None:
            raise ValueError("analysis not found")
        self.execute(
            "UPDATE periodization_analysis SET user_decision = ?, user_feedback = ? WHERE id = ?;",
            (UserDecision(decision).value, feedback, analysis_id),
        )


class RestTimePatternRepository(BaseRepository):
    """Append-only repository of observed rest periods."""

    def append(self, pattern: RestTimePattern) -> int:
        return self.execute(
            "INSERT INTO rest_time_patterns (user_id, exercise_name, muscle_group, session_id, set_number, "
            "recommended_rest_seconds, actual_rest_seconds, next_set_performance, fatigue_level, workout_date) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                pattern.user_id,
                pattern.exercise_name,
                pattern.muscle_group,
                pattern.session_id,
                pattern.set_number,
                pattern.recommended_rest_seconds,
                pattern.actual_rest_seconds,
                pattern.next_set_performance,
                pattern.fatigue_level,
                _date(pattern.workout_date or utcnow().date()),
            ),
        )

    def fetch_for_exercise(
        self, user_id: int, exercise_name: str, limit: int = 50
    ) -> list[RestTimePattern]:
        rows = self.fetch_all(
            "SELECT id, user_id, exercise_name, muscle_group, session_id, set_number, recommended_rest_seconds, "
            "actual_rest_seconds, next_set_performance, fatigue_level, workout_date FROM rest_time_patterns "
            "WHERE user_id = ? AND exercise_name = ? ORDER BY workout_date DESC, id DESC LIMIT ?;",
            (user_id, exercise_name, limit),
        )
        return [
            RestTimePattern(
                id=int(r[0]),
                user_id=int(r[1]),
                exercise_name=r[2],
                muscle_group=r[3],
                session_id=r[4],
                set_number=r[5],
                recommended_rest_seconds=int(r[6]),
                actual_rest_seconds=int(r[7]),
                next_set_performance=r[8],
                fatigue_level=r[9],
                workout_date=datetime.date.fromisoformat(r[10]),
            )
            for r in rows
        ]


class AIDecisionRepository(BaseRepository):
    """Append-only audit trail of automated adjustments."""

    def append(self, decision: AIDecision) -> int:
        return self.execute(
            "INSERT INTO ai_decisions (user_id, decision_type, decision_data, reasoning, confidence_level, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (
                decision.user_id,
                decision.decision_type.value,
                json.dumps(to_plain(decision.payload)),
                decision.reasoning,
                decision.confidence,
                _ts(decision.created_at or utcnow()),
            ),
        )

    def fetch(
        self,
        user_id: int,
        decision_type: DecisionType | str | None = None,
        limit: int = 50,
    ) -> list[AIDecision]:
        query = (
            "SELECT id, user_id, decision_type, decision_data, reasoning, confidence_level, created_at "
            "FROM ai_decisions WHERE user_id = ?"
        )
        params: list = [user_id]
        if decision_type is not None:
            query += " AND decision_type = ?"
            params.append(DecisionType(decision_type).value)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?;"
        params.append(limit)
        rows = self.fetch_all(query, tuple(params))
        return [
            AIDecision(
                id=int(r[0]),
                user_id=int(r[1]),
                payload=payload_from_dict(DecisionType(r[2]), json.loads(r[3])),
                reasoning=r[4],
                confidence=float(r[5]),
                created_at=parse_timestamp(r[6]),
            )
            for r in rows
        ]


class UserPreferencesRepository(BaseRepository):
    """Repository for coarse training preferences."""

    def fetch(self, user_id: int) -> Optional[UserPreferences]:
        rows = self.fetch_all(
            "SELECT user_id, preferred_intensity, preferred_workout_duration, weekly_frequency, "
            "available_training_days, preferred_exercises, avoided_exercises "
            "FROM user_preferences WHERE user_id = ?;",
            (user_id,),
        )
        if not rows:
            return None
        r = rows[0]
        return UserPreferences(
            user_id=int(r[0]),
            preferred_intensity=Intensity(r[1]),
            preferred_workout_duration=int(r[2]),
            weekly_frequency=int(r[3]),
            available_training_days=json.loads(r[4]),
            preferred_exercises=json.loads(r[5]),
            avoided_exercises=json.loads(r[6]),
        )

    def save(self, prefs: UserPreferences) -> None:
        self.execute(
            "INSERT INTO user_preferences (user_id, preferred_intensity, preferred_workout_duration, "
            "weekly_frequency, available_training_days, preferred_exercises, avoided_exercises) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET preferred_intensity=excluded.preferred_intensity, "
            "preferred_workout_duration=excluded.preferred_workout_duration, "
            "weekly_frequency=excluded.weekly_frequency, "
            "available_training_days=excluded.available_training_days, "
            "preferred_exercises=excluded.preferred_exercises, avoided_exercises=excluded.avoided_exercises;",
            (
                prefs.user_id,
                Intensity(prefs.preferred_intensity).value,
                prefs.preferred_workout_duration,
                prefs.weekly_frequency,
                json.dumps(prefs.available_training_days),
                json.dumps(prefs.preferred_exercises),
                json.dumps(prefs.avoided_exercises),
            ),
        )

    def update(self, user_id: int, patch: dict) -> UserPreferences:
        """Merge ``patch`` into the stored preferences and return the result."""
        current = self.fetch(user_id) or UserPreferences(user_id=user_id)
        unknown = set(patch) - set(current.__dataclass_fields__) | ({"user_id"} & set(patch))
        if unknown:
            raise ValueError(f"unknown preference fields: {sorted(unknown)}")
        for key, value in patch.items():
            setattr(current, key, value)
        current.preferred_intensity = Intensity(current.preferred_intensity)
        self.save(current)
        return current


class WeeklyReportRepository(BaseRepository):
    """Repository for stored weekly reports, one per user and week."""

    def upsert(
        self,
        user_id: int,
        week_start: datetime.date,
        week_end: datetime.date,
        completed_workouts: int,
        avg_rpe: float,
        avg_satisfaction: float,
        avg_workout_duration: float,
        insights: dict,
    ) -> None:
        self.execute(
            "INSERT INTO weekly_reports (user_id, week_start_date, week_end_date, completed_workouts, avg_rpe, "
            "avg_satisfaction, avg_workout_duration, insights) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, week_start_date) DO UPDATE SET week_end_date=excluded.week_end_date, "
            "completed_workouts=excluded.completed_workouts, avg_rpe=excluded.avg_rpe, "
            "avg_satisfaction=excluded.avg_satisfaction, avg_workout_duration=excluded.avg_workout_duration, "
            "insights=excluded.insights;",
            (
                user_id,
                _date(week_start),
                _date(week_end),
                completed_workouts,
                avg_rpe,
                avg_satisfaction,
                avg_workout_duration,
                json.dumps(insights),
            ),
        )

    def fetch(self, user_id: int, week_start: datetime.date) -> Optional[dict]:
        rows = self.fetch_all(
            "SELECT week_start_date, week_end_date, completed_workouts, avg_rpe, avg_satisfaction, "
            "avg_workout_duration, insights FROM weekly_reports WHERE user_id = ? AND week_start_date = ?;",
            (user_id, _date(week_start)),
        )
        if not rows:
            return None
        r = rows[0]
        return {
            "week_start_date": r[0],
            "week_end_date": r[1],
            "completed_workouts": int(r[2]),
            "avg_rpe": float(r[3]),
            "avg_satisfaction": float(r[4]),
            "avg_workout_duration": float(r[5]),
            "insights": json.loads(r[6]),
        }

    def count(self, user_id: int) -> int:
        rows = self.fetch_all("SELECT COUNT(*) FROM weekly_reports WHERE user_id = ?;", (user_id,))
        return int(rows[0][0])
