"""
FastAPI dependencies.
"""

from datetime import date
from typing import Optional

from fastapi import Header, HTTPException

from bookkeeper.config import settings
from bookkeeper.database import get_db
from bookkeeper.utils.dates import today

__all__ = ["get_db", "get_organization_id", "get_user_id", "get_today", "verify_cron_secret"]


def get_organization_id(x_organization_id: Optional[str] = Header(None)) -> str:
    """
    Tenant scope for the request, set by the upstream auth layer.
    """
    if not x_organization_id:
        raise HTTPException(status_code=400, detail="X-Organization-Id header is required")
    return x_organization_id


def get_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id


def get_today() -> date:
    """Reference date for due checks, resolved once per request."""
    return today()


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Require the bearer secret on the scheduler trigger when one is configured."""
    expected = settings.cron_secret
    if expected and authorization != f"Bearer {expected}":
        raise HTTPException(status_code=401, detail="Unauthorized")
