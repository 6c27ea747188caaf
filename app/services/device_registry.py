# app/services/device_registry.py
"""
Device registry: ESP32 boards and receiver apps that accept alert pushes.

Heartbeats upsert the row and mark it online. Expiry is lazy: a device whose
last heartbeat is older than HEARTBEAT_EXPIRY_SECONDS is read as offline even
if nobody called mark_offline(). No background sweep.
"""

from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.models.receiver import Receiver
from app.config import settings
from app.exceptions import PersistenceError, ValidationError, NotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEVICE_TYPES = ("esp32", "receiver")


def _expiry_cutoff(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.utcnow()) - timedelta(seconds=settings.HEARTBEAT_EXPIRY_SECONDS)


def effective_status(receiver: Receiver, now: Optional[datetime] = None) -> str:
    """Stored status, except a stale 'online' device reads as 'offline'."""
    if receiver.status == "online":
        if receiver.last_heartbeat is None or receiver.last_heartbeat < _expiry_cutoff(now):
            return "offline"
    return receiver.status


async def upsert_receiver(db: Session, device_name: str, ip_address: str,
                          port: Optional[int] = None, device_type: str = "receiver") -> Receiver:
    """Create or update a device's connection info and mark it online. Doubles as the heartbeat."""
    if not device_name or not device_name.strip():
        raise ValidationError("device_name is required")
    if not ip_address or not ip_address.strip():
        raise ValidationError("ip_address is required")
    if device_type not in DEVICE_TYPES:
        raise ValidationError(f"device_type must be one of {', '.join(DEVICE_TYPES)}")

    device_name = device_name.strip()
    now = datetime.utcnow()
    try:
        receiver = db.query(Receiver).filter(Receiver.device_name == device_name).first()
        if not receiver:
            receiver = Receiver(device_name=device_name, device_type=device_type, created_at=now)
            db.add(receiver)
            logger.info(f"[REGISTRY] New {device_type} '{device_name}' at {ip_address}")
        elif receiver.status != "online":
            logger.info(f"[REGISTRY] '{device_name}' back online at {ip_address}")

        receiver.device_type = device_type
        receiver.ip_address = ip_address.strip()
        receiver.port = port or settings.DEFAULT_PORTS[device_type]
        receiver.status = "online"
        receiver.last_heartbeat = now
        db.commit()
        db.refresh(receiver)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[REGISTRY] Heartbeat from '{device_name}' not stored: {e}")
        raise PersistenceError("Failed to register device") from e
    return receiver


async def get_receiver(db: Session, device_name: str) -> Receiver:
    try:
        receiver = db.query(Receiver).filter(Receiver.device_name == device_name).first()
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to read device registry") from e
    if not receiver:
        raise NotFoundError(f"Device '{device_name}' not found")
    return receiver


async def mark_offline(db: Session, device_name: str) -> Receiver:
    receiver = await get_receiver(db, device_name)
    receiver.status = "offline"
    try:
        db.commit()
        db.refresh(receiver)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to update device status") from e
    logger.info(f"[REGISTRY] '{device_name}' marked offline")
    return receiver


async def list_online(db: Session) -> list[Receiver]:
    """Receivers the dispatcher should push to: online and heartbeat within the expiry window."""
    try:
        return (
            db.query(Receiver)
            .filter(Receiver.status == "online", Receiver.last_heartbeat >= _expiry_cutoff())
            .order_by(Receiver.device_name)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"[REGISTRY] Failed to read online receivers: {e}")
        raise PersistenceError("Failed to read device registry") from e


async def list_receivers(db: Session) -> list[Receiver]:
    """
    Every registered device, newest first. `status` is replaced by the effective
    status on the returned (expunged) copies so callers never see a stale 'online'.
    """
    try:
        receivers = db.query(Receiver).order_by(Receiver.created_at.desc()).all()
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to read device registry") from e

    now = datetime.utcnow()
    for r in receivers:
        db.expunge(r)
        r.status = effective_status(r, now)
    return receivers
