from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from bookkeeper.config import settings


def today(tz_name: Optional[str] = None) -> date:
    """Current calendar date in the given zone (defaults to the configured one)."""
    return datetime.now(ZoneInfo(tz_name or settings.timezone)).date()
