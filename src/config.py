"""Application configuration loaded from environment variables and .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./dev.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_BUFFER_LIMIT: int = 500

    # Capacity enforcement
    ENFORCE_MODE: str = "block"  # "block" | "warn"
    INCLUDE_NESTED: bool = True
    EXCEED_MESSAGE_TEXT: str = ""

    # Weight / currency
    COINS_PER_WEIGHT_UNIT: float = 50.0
    METRIC_WEIGHT_UNITS: bool = False

    # Container configuration permissions + relay
    GM_ONLY_CONFIG: bool = True
    GM_API_KEY: str = ""  # X-GM-Key header value granting GM rights; empty = nobody is GM
    RELAY_BACKEND: str = "local"  # "local" | "null"


settings = Settings()
