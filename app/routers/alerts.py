# app/routers/alerts.py
"""
Alert endpoints.
POST /alerts                   create + fan out to online receivers
POST /alerts/test              dashboard "Test Alert" quick action
GET  /alerts                   recent alerts, filterable by severity / acknowledged
GET  /alerts/{id}              single alert
POST /alerts/{id}/acknowledge  one-way acknowledgment (idempotent)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.models.alert import Alert
from app.schemas.alert import AlertCreate, AlertCreated, AlertOut, DeliveryReport, Severity
from app.services.alert_service import create_alert, list_recent_alerts, get_alert, acknowledge_alert
from app.services.alert_dispatcher import broadcast
from app.exceptions import PersistenceError
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


async def _broadcast_quietly(alert: Alert, db: Session) -> Optional[DeliveryReport]:
    """The alert is already stored; a registry failure only costs us the delivery report."""
    try:
        return await broadcast(alert, db)
    except PersistenceError as e:
        logger.error(f"[DISPATCH] Alert #{alert.id} not broadcast — {e}")
        return None


@router.post("/alerts", response_model=AlertCreated, status_code=201, summary="Create alert and notify receivers")
async def post_alert(body: AlertCreate, db: Session = Depends(get_db)):
    alert = await create_alert(db, **body.model_dump())
    delivery = await _broadcast_quietly(alert, db)
    return AlertCreated(alert=AlertOut.model_validate(alert), delivery=delivery)


@router.post("/alerts/test", response_model=AlertCreated, status_code=201, summary="Send a test alert")
async def post_test_alert(db: Session = Depends(get_db)):
    alert = await create_alert(db, alert_type="Test Alert", severity="medium",
                               details="Test alert from dashboard", source_device="Dashboard")
    delivery = await _broadcast_quietly(alert, db)
    return AlertCreated(alert=AlertOut.model_validate(alert), delivery=delivery)


@router.get("/alerts", response_model=list[AlertOut], summary="Recent alerts, newest first")
async def get_recent_alerts(
    limit: int = Query(20, ge=1, le=200),
    severity: Optional[Severity] = None,
    acknowledged: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    return await list_recent_alerts(db, limit=limit, severity=severity, acknowledged=acknowledged)


@router.get("/alerts/{alert_id}", response_model=AlertOut)
async def get_one_alert(alert_id: int, db: Session = Depends(get_db)):
    return await get_alert(db, alert_id)


@router.post("/alerts/{alert_id}/acknowledge", response_model=AlertOut, summary="Acknowledge an alert")
async def post_acknowledge(alert_id: int, db: Session = Depends(get_db)):
    """Safe to call repeatedly and from several dashboards at once."""
    return await acknowledge_alert(db, alert_id)
