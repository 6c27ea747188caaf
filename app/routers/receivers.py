# app/routers/receivers.py
"""Receiver registry endpoints: heartbeats from ESP32 boards and receiver apps."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.receiver import ReceiverHeartbeat, ReceiverOut
from app.services.device_registry import upsert_receiver, mark_offline, list_online, list_receivers

router = APIRouter()


@router.get("/receivers", response_model=list[ReceiverOut], summary="All registered devices")
async def get_receivers(db: Session = Depends(get_db)):
    """Status is effective: devices past the heartbeat window show as offline."""
    return await list_receivers(db)


@router.get("/receivers/online", response_model=list[ReceiverOut], summary="Devices that will receive pushes")
async def get_online_receivers(db: Session = Depends(get_db)):
    return await list_online(db)


@router.post("/receivers/heartbeat", response_model=ReceiverOut, summary="Register / keep a device online")
async def post_heartbeat(body: ReceiverHeartbeat, db: Session = Depends(get_db)):
    """
    Call every HEARTBEAT_INTERVAL_SECONDS (30s).
    Port defaults to 80 for esp32 and 8080 for receiver apps.
    """
    return await upsert_receiver(db, body.device_name, body.ip_address, body.port, body.device_type)


@router.post("/receivers/{device_name}/offline", response_model=ReceiverOut, summary="Mark a device offline")
async def post_offline(device_name: str, db: Session = Depends(get_db)):
    return await mark_offline(db, device_name)
