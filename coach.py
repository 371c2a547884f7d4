from __future__ import annotations

import datetime
from typing import Callable

from ai_learning_service import AILearningService
from analytics_service import AnalyticsService
from db import (
    AIDecisionRepository,
    ExerciseLogRepository,
    PeriodizationAnalysisRepository,
    RestTimePatternRepository,
    SetFeedbackRepository,
    UserPreferencesRepository,
    WeeklyReportRepository,
    WeightHistoryRepository,
    WeightSuggestionRepository,
    WorkoutFeedbackRepository,
    WorkoutPlanRepository,
    WorkoutSessionRepository,
)
from localization import Translator
from models import utcnow
from periodization_service import PeriodizationService
from reporting_service import ReportingService
from settings_schema import SettingsSchema
from weight_suggestion_service import WeightSuggestionService


class CoachingCore:
    """Wire repositories and services for one database."""

    def __init__(
        self,
        settings: SettingsSchema | None = None,
        *,
        db_path: str | None = None,
        now: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.settings = settings or SettingsSchema()
        self.db_path = db_path or self.settings.db_path
        path = self.db_path
        self.plans = WorkoutPlanRepository(path)
        self.sessions = WorkoutSessionRepository(path)
        self.logs = ExerciseLogRepository(path)
        self.set_feedback = SetFeedbackRepository(path)
        self.workout_feedback = WorkoutFeedbackRepository(path)
        self.weight_history = WeightHistoryRepository(path)
        self.suggestion_store = WeightSuggestionRepository(path)
        self.analysis_store = PeriodizationAnalysisRepository(path)
        self.rest_patterns = RestTimePatternRepository(path)
        self.decision_store = AIDecisionRepository(path)
        self.preferences = UserPreferencesRepository(path)
        self.weekly_reports = WeeklyReportRepository(path)
        self.translator = Translator(self.settings.language)

        s = self.settings
        self.analytics = AnalyticsService(
            self.sessions,
            self.logs,
            self.workout_feedback,
            self.preferences,
            default_training_days=s.default_training_days,
            now=now,
        )
        self.weights = WeightSuggestionService(
            self.weight_history,
            self.suggestion_store,
            valid_days=s.suggestion_valid_days,
            history_limit=s.suggestion_history_limit,
            lookback_days=s.history_lookback_days,
            now=now,
        )
        self.learning = AILearningService(
            self.weight_history,
            self.set_feedback,
            self.suggestion_store,
            self.decision_store,
            self.preferences,
            self.rest_patterns,
            session_repo=self.sessions,
            log_repo=self.logs,
            workout_feedback_repo=self.workout_feedback,
            lookback_days=s.history_lookback_days,
            history_limit=s.learning_history_limit,
            feedback_limit=s.learning_feedback_limit,
            valid_days=s.suggestion_valid_days,
            insight_window_days=s.insight_window_days,
            translator=self.translator,
            now=now,
        )
        self.periodization = PeriodizationService(
            self.analytics,
            self.analysis_store,
            window_days=s.stagnation_window_days,
            translator=self.translator,
            now=now,
        )
        self.reporting = ReportingService(
            self.analytics,
            self.sessions,
            self.workout_feedback,
            self.weekly_reports,
            self.preferences,
            translator=self.translator,
            now=now,
        )
