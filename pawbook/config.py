"""Configuration for the grooming salon booking core.

Business defaults live here as module constants; deployment settings
(POS credentials, database, retry tuning) come from the environment.
"""
import os
from typing import Dict, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

WEEKDAYS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

# Salon hours when nothing else is configured
DEFAULT_BUSINESS_HOURS: Dict[str, Tuple[str, str]] = {
    day: ("09:00", "17:00") for day in WEEKDAYS
}

SLOT_GRANULARITY_MINUTES = 15
SAME_DAY_BUFFER_MINUTES = 30
DEFAULT_SERVICE_DURATION_MINUTES = 30

ORDER_TITLE = "Pet Grooming Appointment"


class Settings(BaseModel):
    """Runtime settings resolved from environment variables."""
    clover_api_base: str = Field(default="https://api.clover.com")
    clover_api_token: str = Field(default="")
    clover_merchant_id: str = Field(default="")
    database_url: str = Field(default="sqlite:///pawbook.db")
    pos_timeout_seconds: float = Field(default=15.0, gt=0)
    pos_max_retries: int = Field(default=3, ge=0, le=10)
    pos_cache_ttl_seconds: float = Field(default=300.0, ge=0)
    slot_granularity_minutes: int = Field(default=SLOT_GRANULARITY_MINUTES, gt=0)
    same_day_buffer_minutes: int = Field(default=SAME_DAY_BUFFER_MINUTES, ge=0)
    default_service_duration_minutes: int = Field(
        default=DEFAULT_SERVICE_DURATION_MINUTES, gt=0
    )
    log_level: str = Field(default="INFO")

    @property
    def has_pos_credentials(self) -> bool:
        return bool(self.clover_api_token and self.clover_merchant_id)


def load_settings() -> Settings:
    """
    Build Settings from the process environment.

    Reads a local .env first so development setups don't need exported
    variables. Unset variables fall back to the model defaults.
    """
    load_dotenv()

    env_map = {
        "clover_api_base": "CLOVER_API_BASE",
        "clover_api_token": "CLOVER_API_TOKEN",
        "clover_merchant_id": "CLOVER_MERCHANT_ID",
        "database_url": "DATABASE_URL",
        "pos_timeout_seconds": "POS_TIMEOUT_SECONDS",
        "pos_max_retries": "POS_MAX_RETRIES",
        "pos_cache_ttl_seconds": "POS_CACHE_TTL_SECONDS",
        "slot_granularity_minutes": "SLOT_GRANULARITY_MINUTES",
        "same_day_buffer_minutes": "SAME_DAY_BUFFER_MINUTES",
        "default_service_duration_minutes": "DEFAULT_SERVICE_DURATION_MINUTES",
        "log_level": "LOG_LEVEL",
    }

    values = {}
    for field_name, env_name in env_map.items():
        raw = os.getenv(env_name)
        if raw is not None and raw.strip() != "":
            values[field_name] = raw.strip()

    return Settings(**values)
