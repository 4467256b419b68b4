from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="REHAPP_", extra="ignore")

    app_name: str = "Rehapp PAD"
    env: str = "dev"
    api_prefix: str = "/api"

    database_url: str = "sqlite:///./rehapp.db"
    seed_demo_data: bool = True

    frontend_origin: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Walk session simulation (no pedometer integration).
    steps_per_second: float = 1.2
    stride_m: float = 0.7
    tick_interval_sec: float = 1.0
    # Finished sessions whose last save failed, kept in memory for a retry.
    max_unsaved_sessions: int = 50

    # Clinical protocol constants. Do not tune without clinical review.
    daily_target_minutes: int = 60
    default_exercise_minutes: int = 5
    default_step_goal: int = 4500
    low_adherence_threshold: int = 3
    critical_pain_threshold: int = 8
    exercise_pain_alert_threshold: int = 7

    # 0 => count every walk session ever recorded (legacy dashboard behaviour).
    compliance_window_days: int = 7


settings = Settings()
