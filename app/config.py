from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Postgres settings
    DATABASE_URL: str = "postgresql://localhost:5432/crm"

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 3
    DB_POOL_MAX_SIZE: int = 12
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # LEAD SCORING
    # =================================================================
    # Optional JSON file replacing the built-in default scoring configuration
    SCORING_CONFIG_PATH: str | None = None
    LEAD_RESCORE_INTERVAL_SECONDS: int = 3600
    LEAD_RESCORE_BATCH_SIZE: int = 500

    # =================================================================
    # CAMPAIGN SCHEDULER
    # =================================================================
    CAMPAIGN_SCHEDULER_INTERVAL_SECONDS: int = 60
    CAMPAIGN_SEND_TIMEOUT_SECONDS: float = 30.0
    # None keeps failed sends requeued forever
    CAMPAIGN_MAX_SEND_ATTEMPTS: int | None = None
    # A campaign left in sending for longer than this is put back in scheduled;
    # keep it well above CAMPAIGN_SEND_TIMEOUT_SECONDS
    CAMPAIGN_STALE_SENDING_SECONDS: float = 600.0
    CAMPAIGN_SENDER_URL: str | None = None
    CAMPAIGN_SENDER_TOKEN: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": min(self.DB_POOL_MIN_SIZE, 2),
                    "max_size": min(self.DB_POOL_MAX_SIZE, 5),
                    "timeout": 15.0,
                }
            )

        return config

    def campaign_sender_configured(self) -> bool:
        return bool(self.CAMPAIGN_SENDER_URL)


settings = Settings()
