from pydantic import BaseModel, Field, ValidationError

class SettingsSchema(BaseModel):
    db_path: str = "coach.db"
    analytics_window_days: int = Field(30, gt=0)
    stagnation_window_days: int = Field(21, gt=0)
    suggestion_valid_days: int = Field(7, gt=0)
    history_lookback_days: int = Field(28, gt=0)
    suggestion_history_limit: int = Field(10, gt=0)
    learning_history_limit: int = Field(20, gt=0)
    learning_feedback_limit: int = Field(50, gt=0)
    default_training_days: list[str] = ["monday", "wednesday", "friday"]
    language: str = "en"
    log_level: str = "INFO"
    sweep_workers: int = Field(4, gt=0)
    insight_window_days: int = Field(90, gt=0)

def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
