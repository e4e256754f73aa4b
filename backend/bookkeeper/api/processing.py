"""Scheduler-facing trigger for processing due recurring payments."""

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from bookkeeper.dependencies import get_db, get_today, verify_cron_secret
from bookkeeper.schemas.recurring import CronProcessingResponse
from bookkeeper.services import processor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/process-recurring-payments", tags=["processing"])


@router.post("", response_model=CronProcessingResponse, dependencies=[Depends(verify_cron_secret)])
def run_recurring_payments(
    today: date = Depends(get_today),
    db: Session = Depends(get_db)
):
    """Process due recurring payments for every organization."""
    report = processor.process_all_due(db, today)

    if report.failed:
        logger.warning("%d recurring payments failed to process", len(report.failed))

    return CronProcessingResponse(
        success=not report.failed,
        processed=report.processed,
        failed=len(report.failed),
        errors=[f"{failure.rule_id}: {failure.error}" for failure in report.failed],
        timestamp=datetime.utcnow(),
    )


@router.get("")
def run_recurring_payments_get():
    return JSONResponse(
        status_code=405,
        content={"message": "Use POST method to process recurring payments"},
    )
