from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    APP_NAME: str = "Attendance Payroll Engine"
    LOG_LEVEL: str = "INFO"

    # IANA zone used to split punches into calendar days when the batch does not set one
    ORG_TIMEZONE: str = "UTC"

    # Device exports are tab-separated (EnNo, Name, Mode, In/Out, DateTime)
    DEFAULT_DELIMITER: str = "\t"
    DAYFIRST: bool = False

    # Extra raw direction/mode labels, e.g. {"sortie": "out", "entrada": "in"}
    DIRECTION_OVERRIDES: dict[str, str] = {}

    # Off by default: an unknown card id must surface as UnresolvedIdentifier
    FUZZY_NAME_MATCH_ENABLED: bool = False
    FUZZY_MATCH_THRESHOLD: int = 90

    # Drop exact repeat punches (same instant, direction, mode, device) before pairing
    DROP_DUPLICATE_PUNCHES: bool = False

    # Hours used to turn a monthly salary into an hourly rate on days without a scheduled shift
    STANDARD_WORKDAY_HOURS: float = 8.0

    MAX_WORKERS: int = 8

    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]


settings = Settings()
