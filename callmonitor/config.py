from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # CTI (PBX provider) settings
    CTI_API_BASE_URL: str = "https://providersupportdata.cloud-cfg.com"
    CTI_API_USERNAME: str | None = None
    CTI_API_PASSWORD: str | None = None
    CTI_TOKEN_REFRESH_SECONDS: float = 240.0  # 4 minutes
    CTI_REQUEST_TIMEOUT: float = 30.0
    STREAM_RECONNECT_DELAY_SECONDS: float = 5.0

    # Contact directory (projectfacts) settings
    PF_API_BASE_URL: str | None = None
    PF_API_DEVICE_ID: str | None = None
    PF_API_TOKEN: str | None = None
    DIRECTORY_REFRESH_MINUTES: float = 15.0
    DIRECTORY_PAGE_SIZE: int = 200
    DIRECTORY_CONCURRENCY: int = 10
    DIRECTORY_PHONE_TYPES: list[str] = ["TEL", "TEL_VOICE", "TEL_MOBILE"]

    # Call aggregation
    STALE_CALL_THRESHOLD_SECONDS: float = 300.0  # 5 minutes
    STALE_REAPER_INTERVAL_SECONDS: float = 60.0

    # Phone number classification (ordered, first match wins)
    PHONE_MOBILE_PREFIXES: list[str] = [
        "0151", "0152", "0155", "0157", "0159",
        "0160", "0162", "0163",
        "0170", "0171", "0172", "0173", "0174",
        "0175", "0176", "0177", "0178", "0179",
    ]
    PHONE_SPECIAL_PREFIXES: list[str] = [
        "0800", "0900", "0180", "0137", "0138", "0700", "0118",
    ]

    # =================================================================
    # DATABASE SETTINGS - optional, in-memory store when unset
    # =================================================================
    DATABASE_URL: str | None = None
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 5
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def cti_configured(self) -> bool:
        """True when CTI credentials are present."""
        return bool(self.CTI_API_USERNAME and self.CTI_API_PASSWORD)

    def directory_configured(self) -> bool:
        """True when the contact directory can be queried."""
        return bool(self.PF_API_BASE_URL and self.PF_API_DEVICE_ID and self.PF_API_TOKEN)

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
            # A single monitor process needs very few connections
            config.update({"min_size": 1, "max_size": 3, "timeout": 15.0})

        return config


settings = Settings()
