from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DUTYROSTER_",
        case_sensitive=False,
    )

    # App
    env: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./dutyroster.db"

    # Roster
    timezone: str = "Asia/Singapore"
    drop_lead_hours: int = 2
    default_num_weeks: int = 1

    # Email
    email_enabled: bool = False
    email_from: str = ""


def get_settings() -> Settings:
    return Settings()
