class ExerciseClassifier:
    """Keyword lookup tables for classifying exercise names.

    Matching is a case-insensitive substring test and the first table entry
    that matches wins, so entry order is part of the behaviour. Names that
    match nothing fall back to ``GENERAL`` / ``DEFAULT_BASE_WEIGHT`` /
    ``"isolation"``.
    """

    GENERAL = "General"

    # Legs and Shoulders precede Chest so "Leg Press" and "Shoulder Press"
    # are not claimed by the generic "press" keyword.
    MUSCLE_GROUP_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
        (
            "Legs",
            (
                "squat",
                "sentadilla",
                "leg",
                "pierna",
                "prensa",
                "cuádriceps",
                "cuadriceps",
            ),
        ),
        (
            "Shoulders",
            ("shoulder", "hombro", "deltoid", "elevación", "elevaciones", "lateral"),
        ),
        ("Chest", ("press", "pecho", "chest")),
        ("Back", ("pull", "row", "remo", "jalón", "jalon", "espalda", "back")),
        ("Biceps", ("bicep", "bíceps", "curl")),
        ("Triceps", ("tricep", "tríceps", "extensión", "dip")),
    ]

    DEFAULT_BASE_WEIGHT = 25.0

    BASE_WEIGHTS: list[tuple[str, float]] = [
        ("Press de Banca", 40.0),
        ("Press Inclinado", 35.0),
        ("Elevaciones Laterales", 15.0),
        ("Curl de Bíceps", 12.5),
        ("Extensiones de Tríceps", 20.0),
        ("Remo", 45.0),
        ("Jalones", 40.0),
        ("Sentadillas", 60.0),
        ("Prensa de Piernas", 80.0),
        ("Extensiones de Cuádriceps", 30.0),
        ("Bench Press", 40.0),
        ("Incline Press", 35.0),
        ("Lateral Raise", 15.0),
        ("Bicep Curl", 12.5),
        ("Tricep Extension", 20.0),
        ("Row", 45.0),
        ("Lat Pulldown", 40.0),
        ("Squat", 60.0),
        ("Leg Press", 80.0),
        ("Leg Extension", 30.0),
    ]

    COMPOUND_KEYWORDS: tuple[str, ...] = (
        "press",
        "sentadilla",
        "squat",
        "remo",
        "row",
        "jalón",
        "pulldown",
        "deadlift",
        "peso muerto",
    )

    @classmethod
    def muscle_group(cls, exercise_name: str) -> str:
        """Return the muscle group bucket for ``exercise_name``."""
        name = exercise_name.lower()
        for group, keywords in cls.MUSCLE_GROUP_KEYWORDS:
            if any(k in name for k in keywords):
                return group
        return cls.GENERAL

    @classmethod
    def base_weight(cls, exercise_name: str) -> float:
        """Return a starting weight in kg for a user with no history.

        A table key matches when either string contains the other.
        """
        name = exercise_name.strip().lower()
        if not name:
            return cls.DEFAULT_BASE_WEIGHT
        for key, weight in cls.BASE_WEIGHTS:
            k = key.lower()
            if k in name or name in k:
                return weight
        return cls.DEFAULT_BASE_WEIGHT

    @classmethod
    def exercise_type(cls, exercise_name: str) -> str:
        name = exercise_name.lower()
        if any(k in name for k in cls.COMPOUND_KEYWORDS):
            return "compound"
        return "isolation"
