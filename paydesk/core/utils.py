import calendar
import logging
import os
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Tuple

from paydesk.core.config import settings

CENTS = Decimal("0.01")

def mkdir_safe(path: str):
    Path(path).mkdir(parents=True, exist_ok=True)

def setup_logging(*, log_level: str = None, log_path: str = None) -> logging.Logger:
    """Attach file (and, with DEV set, console) handlers to the package logger."""
    logger = logging.getLogger("paydesk")
    if logger.handlers:
        return logger
    level = log_level or getattr(settings, "LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper()))
    log_dir = log_path or getattr(settings, "LOG_PATH", "./data/logs")
    mkdir_safe(log_dir)
    logfile = Path(log_dir) / f"{settings.APP_NAME.lower()}.log"
    handler = RotatingFileHandler(str(logfile), maxBytes=10_000_000, backupCount=5)
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    if os.getenv("DEV", "").lower() in ("1", "true", "yes"):
        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        logger.addHandler(ch)
    logger.propagate = False
    return logger

def utcnow() -> datetime:
    # naive UTC; DateTime columns are stored without tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_money(value: Any) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)

def to_hours(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)

def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)

def period_label(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"
