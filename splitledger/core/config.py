from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite+aiosqlite:///./splitledger.db"
    DB_ECHO: bool = False

    DEFAULT_CURRENCY: str = "USD"

    # Fail fast with ConcurrencyError instead of waiting on a locked balance row
    BALANCE_LOCK_NOWAIT: bool = True

    LOG_LEVEL: str = "INFO"


settings = Settings()
