from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from pydantic import field_validator


class Settings(BaseSettings):
    # Database (leave empty to persist to SNAPSHOT_FILE instead)
    DATABASE_URL: str = ""

    # Snapshot file storage
    SNAPSHOT_FILE: str = "data/organflow_state.json"
    PERSIST_TIMEOUT_SECONDS: float = 5.0

    # Ledger relay (optional; synthetic tx references are used when unset)
    LEDGER_API_URL: str = ""
    LEDGER_API_KEY: str = ""
    LEDGER_TIMEOUT_SECONDS: float = 10.0

    # Lifecycle
    DEFAULT_OWNING_HOSPITAL: str = "Unknown Hospital"
    SEED_DEMO_DATA: bool = False
    ALLOW_RESET: bool = False

    # Application
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    APP_NAME: str = "OrganFlow API"
    APP_VERSION: str = "1.0.0"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173,http://127.0.0.1:3000,http://localhost:8080"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 3002
    WORKERS: int = 1

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
    LOG_FILE: str = "logs/app.log"

    # Database Connection Pool
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600

    @field_validator('DEBUG', 'SEED_DEMO_DATA', 'ALLOW_RESET', mode='before')
    @classmethod
    def parse_bool(cls, v):
        """Parse boolean from string."""
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes")
        return bool(v)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._cors_origins_list = [item.strip() for item in self.CORS_ORIGINS.split(',') if item.strip()]

    @property
    def db_pool_options(self) -> dict:
        """Connection pool settings for server databases."""
        return {
            "pool_size": self.DB_POOL_SIZE,
            "max_overflow": self.DB_MAX_OVERFLOW,
            "pool_timeout": self.DB_POOL_TIMEOUT,
            "pool_recycle": self.DB_POOL_RECYCLE,
        }

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS_ORIGINS as a list."""
        return self._cors_origins_list

    @property
    def ledger_api_key(self) -> Optional[str]:
        """Ledger key, or None when unset or still the 'X...' placeholder from .env.example."""
        key = self.LEDGER_API_KEY.strip()
        if not key or key.startswith("X"):
            return None
        return key

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
