import os
import logging
from pydantic import BaseModel, Field
from typing import Dict, List
from dotenv import load_dotenv

load_dotenv()


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _parse_quotas(raw: str) -> Dict[str, float]:
    """Parse ``"Vacation=20,Sick Leave=12"`` into a quota mapping."""
    quotas = {}
    for item in _split_csv(raw):
        name, _, days = item.partition("=")
        if not days:
            raise ValueError(f"Invalid DEFAULT_LEAVE_QUOTAS entry: {item!r}")
        quotas[name.strip()] = float(days)
    return quotas


def _default_database_url() -> str:
    user = os.getenv("DB_USER", "root")
    password = os.getenv("DB_PASSWORD", "")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "3306")
    name = os.getenv("DB_NAME", "college_leave_management")
    charset = os.getenv("DB_CHARSET", "utf8mb4")
    return f"mysql+mysqldb://{user}:{password}@{host}:{port}/{name}?charset={charset}"


class StorageSettings(BaseModel):
    pool_size: int = Field(default=int(os.getenv("DB_POOL_SIZE", "10")))
    pool_recycle_seconds: int = Field(default=int(os.getenv("DB_POOL_RECYCLE", "3600")))
    retry_attempts: int = Field(default=int(os.getenv("STORAGE_RETRY_ATTEMPTS", "3")))
    retry_backoff: float = Field(default=float(os.getenv("STORAGE_RETRY_BACKOFF", "0.2")))
    retry_backoff_max: float = Field(default=float(os.getenv("STORAGE_RETRY_BACKOFF_MAX", "2.0")))


class LeavePolicySettings(BaseModel):
    leave_types: List[str] = Field(
        default_factory=lambda: _split_csv(
            os.getenv("LEAVE_TYPES", "Vacation,Sick Leave,Personal,Bereavement,Unpaid")
        )
    )
    # Quota granted when a balance row is first needed for an (employee, type) pair
    default_quotas: Dict[str, float] = Field(
        default_factory=lambda: _parse_quotas(
            os.getenv(
                "DEFAULT_LEAVE_QUOTAS",
                "Vacation=20,Sick Leave=12,Personal=5,Bereavement=5,Unpaid=30",
            )
        )
    )
    reason_min_length: int = Field(default=int(os.getenv("REASON_MIN_LENGTH", "5")))
    reason_max_length: int = Field(default=int(os.getenv("REASON_MAX_LENGTH", "500")))
    recent_requests_limit: int = Field(default=int(os.getenv("RECENT_REQUESTS_LIMIT", "5")))

    def quota_for(self, leave_type: str) -> float:
        return self.default_quotas.get(leave_type, 0.0)


class Config(BaseModel):
    app_name: str = "College Leave Management"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = Field(default_factory=lambda: os.getenv("DATABASE_URL") or _default_database_url())
    storage: StorageSettings = StorageSettings()

    # Leave policy
    leave: LeavePolicySettings = LeavePolicySettings()

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: _split_csv(
            os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://localhost:5173,"
                "http://127.0.0.1:3000,http://127.0.0.1:5173",
            )
        )
    )


settings = Config()

_logger = logging.getLogger(__name__)
if settings.environment == "production" and settings.database_url.startswith("sqlite"):
    _logger.warning("SQLite database configured in production; use MySQL for concurrent reviewers.")
