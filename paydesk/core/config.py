from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PAYDESK_", env_file=".env", extra="ignore")

    APP_NAME: str = Field("PayDesk", description="Logger namespace and audit prefix")
    DB_URL: str = Field("sqlite:///./data/paydesk.db", description="Database URL")
    LOG_LEVEL: str = "INFO"
    LOG_PATH: str = "./data/logs"
    AUDIT_LOG_PATH: str = "./data/audit"

    # Fire-and-forget employee notifications; unset means log only
    NOTIFY_WEBHOOK_URL: Optional[str] = None
    NOTIFY_TIMEOUT_SECONDS: float = 10.0

    # Statutory deductions, as fractions of gross salary
    PENSION_RATE: Decimal = Decimal("0.10")
    HEALTH_RATE: Decimal = Decimal("0.07")
    PENSION_CONCEPT: str = "pension"
    HEALTH_CONCEPT: str = "health"
    # Additional (concept, rate) lines appended after pension and health
    EXTRA_DEDUCTIONS: List[Tuple[str, Decimal]] = []

    # Attendance and proportional salary policy
    STANDARD_SHIFT_HOURS: Decimal = Decimal("8")
    STANDARD_WORKING_DAYS: int = 20
    OVERTIME_MULTIPLIER: Decimal = Decimal("1.5")

settings = Settings()
