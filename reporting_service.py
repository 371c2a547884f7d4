from __future__ import annotations

import calendar
import datetime
import logging
from collections import Counter
from typing import Callable, Optional

from algorithms import MathTools
from analytics_service import AnalyticsService
from db import (
    UserPreferencesRepository,
    WeeklyReportRepository,
    WorkoutFeedbackRepository,
    WorkoutSessionRepository,
)
from localization import Translator
from models import (
    MonthlyReport,
    WeeklyProgress,
    WeeklyReport,
    WeeklySummary,
    require_user_id,
    utcnow,
)

logger = logging.getLogger(__name__)

MONTH_WINDOW_DAYS = 30


def week_start(day: datetime.date) -> datetime.date:
    """Return the Monday of the week containing ``day``."""
    return day - datetime.timedelta(days=day.weekday())


def _day_bounds(
    first: datetime.date, last: datetime.date
) -> tuple[datetime.datetime, datetime.datetime]:
    start = datetime.datetime.combine(first, datetime.time.min, tzinfo=datetime.timezone.utc)
    end = datetime.datetime.combine(last, datetime.time.max, tzinfo=datetime.timezone.utc)
    return start, end


class ReportingService:
    """Assemble weekly and monthly narrative reports from training data."""

    def __init__(
        self,
        analytics: AnalyticsService,
        session_repo: WorkoutSessionRepository,
        feedback_repo: WorkoutFeedbackRepository,
        report_repo: WeeklyReportRepository,
        preferences_repo: UserPreferencesRepository | None = None,
        translator: Translator | None = None,
        now: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.analytics = analytics
        self.sessions = session_repo
        self.feedback = feedback_repo
        self.reports = report_repo
        self.preferences = preferences_repo
        self.translator = translator or Translator()
        self._now = now

    def _(self, text: str, **kwargs) -> str:
        return self.translator.gettext(text, **kwargs)

    # ------------------------------------------------------------------
    # Weekly
    # ------------------------------------------------------------------

    def generate_weekly_report(
        self, user_id: int, start: Optional[datetime.date] = None
    ) -> WeeklyReport:
        require_user_id(user_id)
        first = week_start(start or self._now().date())
        last = first + datetime.timedelta(days=6)
        logger.info("generating weekly report for user %s from %s", user_id, first)
        lower, upper = _day_bounds(first, last)

        completed = [s for s in self.sessions.fetch_range(user_id, lower, upper) if s.is_completed]
        completed_ids = {s.id for s in completed}
        feedback = [
            f for f in self.feedback.fetch_range(user_id, lower, upper)
            if f.session_id in completed_ids
        ]
        total_duration = sum(s.duration_minutes or 0.0 for s in completed)
        average_rpe = MathTools.mean(f.rpe for f in feedback if f.rpe)
        average_satisfaction = MathTools.mean(f.satisfaction for f in feedback if f.satisfaction)
        plans = Counter(s.plan_name for s in completed if s.plan_name)

        count = len(completed)
        return WeeklyReport(
            user_id=user_id,
            week_start=first,
            week_end=last,
            summary=WeeklySummary(
                workouts_completed=count,
                total_duration=total_duration,
                average_rpe=average_rpe,
                average_satisfaction=average_satisfaction,
                top_plans=[name for name, _ in plans.most_common(3)],
                achievements=self._weekly_achievements(count, total_duration),
            ),
            insights=self._weekly_insights(count, average_rpe, average_satisfaction),
            recommendations=self._weekly_recommendations(count, average_rpe, average_satisfaction),
        )

    def _weekly_insights(self, count: int, rpe: float, satisfaction: float) -> list[str]:
        if count == 0:
            return [self._("Time to get started! No workouts logged this week.")]
        insights = []
        if count >= 4:
            insights.append(self._("Excellent consistency! You trained 4+ times this week."))
        elif count >= 2:
            insights.append(self._("Good training frequency this week."))
        else:
            insights.append(self._("At least you kept the habit with 1 workout."))

        if rpe > 0:
            if rpe <= 6:
                insights.append(self._("Your average intensity was moderate (RPE {rpe:.1f}). Consider raising the challenge.", rpe=rpe))
            elif rpe >= 8:
                insights.append(self._("You trained at high intensity (RPE {rpe:.1f}). Make sure you recover well.", rpe=rpe))
            else:
                insights.append(self._("Balanced intensity this week (RPE {rpe:.1f}). Good job!", rpe=rpe))

        if satisfaction > 0:
            if satisfaction >= 4:
                insights.append(self._("You really enjoyed your workouts ({score:.1f}/5). Keep that motivation.", score=satisfaction))
            elif satisfaction <= 2:
                insights.append(self._("Looks like you did not enjoy it much ({score:.1f}/5). Let's try variations.", score=satisfaction))
            else:
                insights.append(self._("Moderate satisfaction this week ({score:.1f}/5). There is room to improve.", score=satisfaction))

        if len(insights) == 1:
            insights.append(self._("Keep building your training habit. Every session counts!"))
        return insights

    def _weekly_recommendations(self, count: int, rpe: float, satisfaction: float) -> list[str]:
        if count == 0:
            return [
                self._("Schedule your first workout of the week. The first step matters most!"),
                self._("Start with short 20-30 minute sessions to build the habit."),
            ]
        recommendations = []
        if count < 2:
            recommendations.append(self._("Try to add at least one more session next week for better results."))
        elif count < 3:
            recommendations.append(self._("Consider training 3 times a week for optimal progress."))
        elif count >= 5:
            recommendations.append(self._("Excellent frequency! Make sure to include rest days for recovery."))

        if rpe > 0:
            if rpe < 6:
                recommendations.append(self._("Your intensity is low. Consider gradually increasing weight or reps."))
            elif rpe > 8.5:
                recommendations.append(self._("Your intensity is very high. Include lighter sessions to avoid overtraining."))

        if satisfaction > 0:
            if satisfaction < 3:
                recommendations.append(self._("Let's try new exercises or routines to keep motivation high."))
            elif satisfaction >= 4.5:
                recommendations.append(self._("You love your workouts! Keep this routine that works so well."))

        if not recommendations:
            recommendations.append(self._("Stay consistent and listen to your body to adjust intensity."))
        return recommendations

    def _weekly_achievements(self, count: int, total_duration: float) -> list[str]:
        achievements = []
        if count >= 5:
            achievements.append(self._("Warrior of the week: 5+ workouts"))
        elif count >= 3:
            achievements.append(self._("Solid consistency: 3+ workouts"))
        if total_duration >= 300:
            achievements.append(self._("Marathoner: 5+ hours of training"))
        return achievements

    def save_weekly_report(self, report: WeeklyReport) -> None:
        """Store ``report``, replacing any earlier report for the same week."""
        summary = report.summary
        self.reports.upsert(
            report.user_id,
            report.week_start,
            report.week_end,
            summary.workouts_completed,
            summary.average_rpe,
            summary.average_satisfaction,
            summary.total_duration / max(1, summary.workouts_completed),
            {
                "insights": report.insights,
                "recommendations": report.recommendations,
                "achievements": summary.achievements,
                "top_plans": summary.top_plans,
            },
        )
        logger.info("saved weekly report for user %s week %s", report.user_id, report.week_start)

    def weekly_progress(self, user_id: int) -> WeeklyProgress:
        """Completed workouts this week against the preferred weekly frequency."""
        require_user_id(user_id)
        first = week_start(self._now().date())
        lower, upper = _day_bounds(first, first + datetime.timedelta(days=6))
        completed = sum(1 for s in self.sessions.fetch_range(user_id, lower, upper) if s.is_completed)
        goal = 3
        if self.preferences is not None:
            prefs = self.preferences.fetch(user_id)
            if prefs is not None:
                goal = prefs.weekly_frequency
        percentage = min(100, round(completed / goal * 100)) if goal > 0 else 0
        return WeeklyProgress(completed=completed, goal=goal, percentage=percentage)

    # ------------------------------------------------------------------
    # Monthly
    # ------------------------------------------------------------------

    def generate_monthly_report(
        self, user_id: int, month_start: Optional[datetime.date] = None
    ) -> MonthlyReport:
        """Summarise the last 30 days and compare volume with the 30 days before."""
        require_user_id(user_id)
        first = (month_start or self._now().date()).replace(day=1)
        last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
        logger.info("generating monthly report for user %s for %s", user_id, first)

        progress = self.analytics.compute_progress(user_id, MONTH_WINDOW_DAYS)
        adherence = self.analytics.compute_adherence(user_id, MONTH_WINDOW_DAYS)
        effectiveness = self.analytics.compute_effectiveness(user_id, MONTH_WINDOW_DAYS)
        previous_volume = self.analytics.previous_volume(user_id, MONTH_WINDOW_DAYS)
        volume_trend = MathTools.percent_change(
            progress.strength_progress.total_volume_kg, previous_volume or 0.0
        )
        favourites = [e.exercise_name for e in effectiveness.top_exercises[:5]]
        if not favourites:
            favourites = self.analytics.favourite_exercises(user_id, MONTH_WINDOW_DAYS)

        volume_change = progress.strength_progress.volume_change
        improvements = []
        if volume_change > 10:
            improvements.append(self._("Volume increased by {value:.1f}%", value=volume_change))
        if adherence.completion_rate > 80:
            improvements.append(self._("Excellent adherence of {value:.1f}%", value=adherence.completion_rate))
        if adherence.streak_days >= 7:
            improvements.append(self._("Streak of {days} consecutive days", days=adherence.streak_days))

        achieved = []
        if adherence.completion_rate >= 90:
            achieved.append(self._("Consistency goal (90%+) reached"))
        if volume_change > 15:
            achieved.append(self._("Strength progress goal (15%+) reached"))

        suggested = []
        if adherence.completion_rate < 80:
            suggested.append(self._("Reach 80% adherence"))
        if progress.strength_progress.exercise_count < 10:
            suggested.append(self._("Try 10+ different exercises"))
        suggested.append(self._("Keep average RPE between 6 and 8"))
        suggested.append(self._("Increase total volume by 10%"))

        return MonthlyReport(
            user_id=user_id,
            month_start=first,
            month_end=last,
            total_workouts=adherence.total_planned_workouts,
            adherence_rate=adherence.completion_rate,
            strength_progress=volume_change,
            favourite_exercises=favourites,
            improvements=improvements,
            rpe_trend=progress.rpe_metrics.rpe_change,
            satisfaction_trend=effectiveness.satisfaction_trend,
            volume_trend=volume_trend,
            achieved_goals=achieved,
            suggested_goals=suggested,
        )
