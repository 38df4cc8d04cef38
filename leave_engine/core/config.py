import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()

class AccrualSettings(BaseModel):
    # Fractional accrual is floored to this step (e.g. 8.33 -> 8.0 with a 0.5 step)
    rounding_step: float = Field(default=float(os.getenv("ACCRUAL_ROUNDING_STEP", "0.5")))

class Config(BaseModel):
    app_name: str = "Leave Management Engine"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = os.getenv("API_PREFIX", "/api")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./leave.db")

    # Leave rules
    accrual: AccrualSettings = AccrualSettings()
    conflict_retries: int = int(os.getenv("CONFLICT_RETRIES", "1"))
    seed_default_leave_types: bool = os.getenv("SEED_DEFAULT_LEAVE_TYPES", "true").lower() == "true"

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    # Scalability & Performance
    enable_caching: bool = os.getenv("ENABLE_CACHING", "true").lower() == "true"

settings = Config()

_logger = logging.getLogger(__name__)
if settings.environment == "production" and settings.database_url.startswith("sqlite"):
    _logger.warning("⚠ Running production with a SQLite database; set DATABASE_URL.")
