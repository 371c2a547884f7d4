from .math_tools import MathTools
from .exercise_classifier import ExerciseClassifier
from .weight_progression import WeightProgression, WeightRecommendation

__all__ = ["MathTools", "ExerciseClassifier", "WeightProgression", "WeightRecommendation"]
