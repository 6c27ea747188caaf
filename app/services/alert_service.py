# app/services/alert_service.py
"""
Alert store: the single source of truth for alerts.
Used by the alerts router, the dashboard test action and any detection producer.

create → persist → notify live feed. Fan-out to receivers is a separate step
(alert_dispatcher.broadcast) so a failed push can never undo a stored alert.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.models.alert import Alert
from app.services.alert_feed import alert_feed
from app.exceptions import PersistenceError, ValidationError, NotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)

SEVERITIES = ("low", "medium", "high")


def _validate(alert_type, severity, source_device, confidence_score):
    if not alert_type or not alert_type.strip():
        raise ValidationError("alert_type is required")
    if severity not in SEVERITIES:
        raise ValidationError(f"severity must be one of {', '.join(SEVERITIES)}, got {severity!r}")
    if not source_device or not source_device.strip():
        raise ValidationError("source_device is required")
    if confidence_score is not None and not 0 <= confidence_score <= 100:
        raise ValidationError(f"confidence_score must be within 0-100, got {confidence_score}")


async def create_alert(db: Session, alert_type: str, severity: str, source_device: str,
                       details: Optional[str] = None, detected_person: Optional[str] = None,
                       confidence_score: Optional[float] = None,
                       image_url: Optional[str] = None) -> Alert:
    """
    Create and persist an alert. Always commits immediately.
    At-most-once: no retry on failure, the caller surfaces the PersistenceError.
    """
    _validate(alert_type, severity, source_device, confidence_score)

    alert = Alert(
        alert_type=alert_type.strip(),
        severity=severity,
        details=details,
        source_device=source_device.strip(),
        detected_person=detected_person or "Unknown",
        confidence_score=confidence_score,
        image_url=image_url,
        created_at=datetime.utcnow(),
        acknowledged=False,
    )
    try:
        db.add(alert)
        db.commit()
        db.refresh(alert)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[ALERT] Failed to store '{alert_type}' alert: {e}")
        raise PersistenceError("Failed to create alert") from e

    logger.warning(f"[ALERT][{severity.upper()}] #{alert.id} {alert.alert_type} from {alert.source_device}"
                   f"{' — ' + details if details else ''}")
    alert_feed.notify()
    return alert


async def list_recent_alerts(db: Session, limit: int = 20, severity: Optional[str] = None,
                             acknowledged: Optional[bool] = None) -> list[Alert]:
    """Newest first. Same-timestamp alerts come out in reverse insertion order (id desc)."""
    if limit < 1:
        return []
    try:
        q = db.query(Alert)
        if severity:
            q = q.filter(Alert.severity == severity)
        if acknowledged is not None:
            q = q.filter(Alert.acknowledged == acknowledged)
        return q.order_by(Alert.created_at.desc(), Alert.id.desc()).limit(limit).all()
    except SQLAlchemyError as e:
        logger.error(f"[ALERT] Failed to list alerts: {e}")
        raise PersistenceError("Failed to read alerts") from e


async def get_alert(db: Session, alert_id: int) -> Alert:
    try:
        alert = db.query(Alert).filter(Alert.id == alert_id).first()
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to read alert") from e
    if not alert:
        raise NotFoundError(f"Alert {alert_id} not found")
    return alert


async def acknowledge_alert(db: Session, alert_id: int) -> Alert:
    """
    One-way false → true transition. Repeat calls return the stored record untouched,
    so acknowledged_at keeps the time of the first acknowledgment.
    """
    alert = await get_alert(db, alert_id)
    if alert.acknowledged:
        return alert

    alert.acknowledged = True
    alert.acknowledged_at = datetime.utcnow()
    try:
        db.commit()
        db.refresh(alert)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[ALERT] Failed to acknowledge #{alert_id}: {e}")
        raise PersistenceError("Failed to acknowledge alert") from e

    logger.info(f"[ALERT] #{alert_id} acknowledged")
    alert_feed.notify()
    return alert


async def count_alerts(db: Session, acknowledged: Optional[bool] = None,
                       severity: Optional[str] = None) -> int:
    try:
        q = db.query(Alert)
        if acknowledged is not None:
            q = q.filter(Alert.acknowledged == acknowledged)
        if severity:
            q = q.filter(Alert.severity == severity)
        return q.count()
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to count alerts") from e
