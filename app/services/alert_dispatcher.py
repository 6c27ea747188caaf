# app/services/alert_dispatcher.py
"""
Alert fan-out: pushes a stored alert to every online receiver.

Endpoint: POST http://{ip}:{port}/alert  (JSON, see schemas.alert.AlertPush)

All pushes run concurrently, each with its own timeout. No retries. A failed
or timed-out push is recorded in the DeliveryReport and never raised; only a
registry read failure (PersistenceError) reaches the caller. The alert row is
never touched here.
"""

import asyncio
from datetime import timezone
from typing import Optional
import httpx
from sqlalchemy.orm import Session
from app.config import settings
from app.models.alert import Alert
from app.models.receiver import Receiver
from app.schemas.alert import AlertPush, DeliveryFailure, DeliveryReport
from app.services.device_registry import list_online
from app.exceptions import DeliveryError
from app.utils.logger import get_logger

logger = get_logger(__name__)

ALERT_PATH = "/alert"


def build_alert_payload(alert: Alert) -> dict:
    push = AlertPush(
        type=alert.alert_type,
        severity=alert.severity,
        message=alert.details or "Security alert triggered",
        timestamp=alert.created_at.replace(tzinfo=timezone.utc).isoformat(),
        confidence=alert.confidence_score,
        source=alert.source_device,
    )
    return push.model_dump(exclude_none=True)


async def push_alert(client: httpx.AsyncClient, receiver: Receiver, payload: dict,
                     timeout: Optional[float] = None):
    """
    POST one payload to one receiver. Raises DeliveryError on non-2xx, network error
    or timeout. The asyncio deadline also covers DNS/connect stalls httpx can't see.
    """
    timeout = timeout or settings.ALERT_PUSH_TIMEOUT_SECONDS
    url = f"{receiver.base_url}{ALERT_PATH}"
    try:
        response = await asyncio.wait_for(client.post(url, json=payload, timeout=timeout), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        raise DeliveryError(receiver.device_name, f"timed out after {timeout}s")
    except httpx.HTTPError as e:
        raise DeliveryError(receiver.device_name, f"{type(e).__name__}: {e}")

    if not response.is_success:
        raise DeliveryError(receiver.device_name, f"HTTP {response.status_code}")


async def _deliver(client, receiver: Receiver, payload: dict) -> Optional[DeliveryFailure]:
    try:
        await push_alert(client, receiver, payload)
        return None
    except DeliveryError as e:
        logger.warning(f"[DISPATCH] ❌ {receiver.device_name} ({receiver.base_url}) — {e.reason}")
        return DeliveryFailure(device_name=receiver.device_name, address=receiver.base_url, reason=e.reason)


async def broadcast(alert: Alert, db: Session, client: Optional[httpx.AsyncClient] = None) -> DeliveryReport:
    """Fan one alert out to every online receiver and report how many accepted it."""
    receivers = await list_online(db)   # PersistenceError propagates
    if not receivers:
        logger.info(f"[DISPATCH] Alert #{alert.id}: no online receivers")
        return DeliveryReport(attempted=0, succeeded=0)

    payload = build_alert_payload(alert)
    if client is None:
        async with httpx.AsyncClient() as own_client:
            results = await asyncio.gather(*(_deliver(own_client, r, payload) for r in receivers))
    else:
        results = await asyncio.gather(*(_deliver(client, r, payload) for r in receivers))

    failures = [f for f in results if f is not None]
    report = DeliveryReport(attempted=len(receivers), succeeded=len(receivers) - len(failures),
                            failures=failures)
    logger.info(f"[DISPATCH] Alert #{alert.id} delivered to {report.succeeded}/{report.attempted} receivers")
    return report
