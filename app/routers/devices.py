# app/routers/devices.py
"""
ESP32 manager endpoints: proxy status/config/reboot to a registered board.
Device address comes from the receiver registry, looked up by device_name.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.alert import AlertPush, DeliveryReport, DeliveryFailure
from app.schemas.receiver import DeviceConfig, DeviceStatus, DeviceCommandResult
from app.services.device_registry import get_receiver
from app.services.esp32_client import get_device_status, update_device_config, reboot_device
from app.services.alert_dispatcher import push_alert
from app.exceptions import DeliveryError
from datetime import datetime, timezone
import httpx

router = APIRouter()


@router.get("/devices/{device_name}/status", response_model=DeviceStatus, summary="Live status from the board")
async def get_status(device_name: str, db: Session = Depends(get_db)):
    device = await get_receiver(db, device_name)
    return await get_device_status(device)


@router.post("/devices/{device_name}/config", response_model=DeviceConfig, summary="Push feature flags")
async def post_config(device_name: str, body: DeviceConfig, db: Session = Depends(get_db)):
    device = await get_receiver(db, device_name)
    return await update_device_config(device, body)


@router.post("/devices/{device_name}/reboot", response_model=DeviceCommandResult, summary="Reboot the board")
async def post_reboot(device_name: str, db: Session = Depends(get_db)):
    device = await get_receiver(db, device_name)
    accepted = await reboot_device(device)
    return DeviceCommandResult(device_name=device_name, accepted=accepted,
                               detail=None if accepted else "no confirmation from device")


@router.post("/devices/{device_name}/test-alert", response_model=DeliveryReport, summary="Push a test alert")
async def post_test_alert(device_name: str, db: Session = Depends(get_db)):
    """Pushes straight to one device; nothing is stored in the alert table."""
    device = await get_receiver(db, device_name)
    payload = AlertPush(
        type="Test Alert",
        severity="high",
        message="This is a test alert to verify the system is working",
        timestamp=datetime.now(timezone.utc).isoformat(),
        source="Manual Test",
    ).model_dump(exclude_none=True)
    async with httpx.AsyncClient() as client:
        try:
            await push_alert(client, device, payload)
        except DeliveryError as e:
            failure = DeliveryFailure(device_name=device.device_name, address=device.base_url, reason=e.reason)
            return DeliveryReport(attempted=1, succeeded=0, failures=[failure])
    return DeliveryReport(attempted=1, succeeded=1)
