from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .math_tools import MathTools


@dataclass
class WeightRecommendation:
    suggested_weight: float
    confidence_score: float
    progression_trend: str
    based_on_sessions: int
    reasoning: str
    average_rpe: float = 7.0
    feeling_counts: dict[str, int] | None = None


class WeightProgression:
    """Feedback driven weight adjustment rules.

    Two paths share the rounding and confidence cap: ``quick_adjustment`` reacts
    to the most recent session only, ``learning_recommendation`` combines a
    longer weight history with a batch of set feedback.
    """

    MAX_CONFIDENCE = 0.95
    BASE_CONFIDENCE = 0.3
    MIN_WEIGHT = 2.5
    TREND_THRESHOLD = 0.05
    HIGH_VARIANCE = 25.0

    @staticmethod
    def quick_adjustment(
        last_weight: float, last_rpe: Optional[float], last_feeling: Optional[str]
    ) -> float:
        """Return the next weight after a single session, before rounding."""
        rpe = 7 if last_rpe is None else last_rpe
        feeling = last_feeling or "perfect"
        if feeling == "too_light" or rpe < 6:
            return last_weight * 1.10
        if feeling == "too_heavy" or rpe > 9:
            return last_weight * 0.90
        if 6 <= rpe <= 8 and feeling == "perfect":
            return last_weight * 1.025
        return last_weight

    @classmethod
    def session_confidence(cls, session_count: int) -> float:
        return min(cls.MAX_CONFIDENCE, cls.BASE_CONFIDENCE + session_count * 0.1)

    @classmethod
    def window_trend(
        cls, weights: Sequence[float], recent: int = 3, older: int = 3
    ) -> str:
        """Compare the mean of the first ``recent`` weights against the next ``older``.

        ``weights`` are ordered most recent first. Fewer than ``recent`` values,
        or no older values, give ``"stable"``.
        """
        if len(weights) < recent:
            return "stable"
        avg_recent = MathTools.mean(weights[:recent])
        older_slice = weights[recent : recent + older]
        if not older_slice:
            return "stable"
        avg_older = MathTools.mean(older_slice)
        if avg_recent > avg_older * (1 + cls.TREND_THRESHOLD):
            return "increasing"
        if avg_recent < avg_older * (1 - cls.TREND_THRESHOLD):
            return "decreasing"
        return "stable"

    @classmethod
    def learning_recommendation(
        cls,
        recent_weights: Sequence[float],
        feedback_rpes: Sequence[Optional[float]],
        feedback_feelings: Sequence[Optional[str]],
        history_count: int,
        feedback_count: int,
    ) -> WeightRecommendation:
        """Recommend a weight from weight history plus set feedback.

        ``recent_weights`` are most recent first; only the first ten are used
        (five recent, five older). ``feedback_rpes`` / ``feedback_feelings``
        hold the most recent set feedback, of which the first ten are used.
        """
        if not recent_weights:
            raise ValueError("no weight data available for recommendation")
        latest = [float(w) for w in recent_weights[:5]]
        previous = [float(w) for w in recent_weights[5:10]]
        avg_recent = MathTools.mean(latest)
        avg_older = MathTools.mean(previous) if previous else avg_recent

        trend = "stable"
        if avg_older > 0:
            change = (avg_recent - avg_older) / avg_older
            if abs(change) > cls.TREND_THRESHOLD:
                trend = "increasing" if change > 0 else "decreasing"

        rpes = [7.0 if r is None else float(r) for r in feedback_rpes[:10]]
        avg_rpe = MathTools.mean(rpes, default=7.0)
        feelings = [f for f in feedback_feelings[:10] if f]
        counts = {
            "too_light": feelings.count("too_light"),
            "perfect": feelings.count("perfect"),
            "too_heavy": feelings.count("too_heavy"),
        }

        new_weight = avg_recent
        reasoning = "Keeping current weight"
        if avg_rpe < 6 or counts["too_light"] > counts["perfect"]:
            step = 0.075 if trend == "increasing" else 0.05
            new_weight = avg_recent * (1 + step)
            reasoning = f"Low RPE ({avg_rpe:.1f}) or weight felt light: +{step * 100:.1f}%"
        elif avg_rpe > 9 or counts["too_heavy"] > counts["perfect"]:
            step = 0.075 if trend == "decreasing" else 0.05
            new_weight = avg_recent * (1 - step)
            reasoning = f"High RPE ({avg_rpe:.1f}) or weight felt heavy: -{step * 100:.1f}%"
        elif 6 <= avg_rpe <= 8 and counts["perfect"] >= counts["too_light"] + counts["too_heavy"]:
            new_weight = avg_recent * 1.025
            reasoning = f"Optimal RPE ({avg_rpe:.1f}) with positive feedback: +2.5%"

        new_weight = max(cls.MIN_WEIGHT, MathTools.round_to_increment(new_weight))

        data_points = history_count + feedback_count
        confidence = min(cls.MAX_CONFIDENCE, cls.BASE_CONFIDENCE + data_points * 0.02)
        if MathTools.variance(latest) > cls.HIGH_VARIANCE:
            confidence *= 0.8

        return WeightRecommendation(
            suggested_weight=new_weight,
            confidence_score=round(confidence, 2),
            progression_trend=trend,
            based_on_sessions=history_count,
            reasoning=reasoning,
            average_rpe=round(avg_rpe, 2),
            feeling_counts=counts,
        )
