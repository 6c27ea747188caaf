# app/services/esp32_client.py
"""
ESP32 device control: status pull, config push, reboot.

Endpoints on the board:
  GET  http://{ip}:{port}/status   → uptime, free_heap, wifi_signal, temperature
  POST http://{ip}:{port}/config   → {buzzer_enabled, lcd_enabled, ir_sensor_enabled}
  POST http://{ip}:{port}/reboot   → empty body, fire-and-forget
"""

from typing import Optional
import httpx
from pydantic import ValidationError as SchemaError
from app.config import settings
from app.models.receiver import Receiver
from app.schemas.receiver import DeviceConfig, DeviceStatus
from app.exceptions import DeliveryError
from app.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_PATH = "/status"
CONFIG_PATH = "/config"
REBOOT_PATH = "/reboot"
REBOOT_TIMEOUT_SECONDS = 2.0


async def _request(device: Receiver, method: str, path: str, client: Optional[httpx.AsyncClient] = None,
                   timeout: Optional[float] = None, **kwargs) -> httpx.Response:
    timeout = timeout or settings.DEVICE_REQUEST_TIMEOUT_SECONDS
    url = f"{device.base_url}{path}"
    try:
        if client is not None:
            response = await client.request(method, url, timeout=timeout, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                response = await own_client.request(method, url, **kwargs)
    except httpx.TimeoutException:
        raise DeliveryError(device.device_name, f"timed out after {timeout}s")
    except httpx.HTTPError as e:
        raise DeliveryError(device.device_name, f"{type(e).__name__}: {e}")

    if not response.is_success:
        raise DeliveryError(device.device_name, f"HTTP {response.status_code}")
    return response


async def get_device_status(device: Receiver, client: Optional[httpx.AsyncClient] = None) -> DeviceStatus:
    response = await _request(device, "GET", STATUS_PATH, client=client)
    try:
        status = DeviceStatus.model_validate(response.json())
    except (ValueError, SchemaError) as e:
        raise DeliveryError(device.device_name, f"malformed status payload: {e}")
    logger.debug(f"[ESP32] {device.device_name} status: {status.model_dump()}")
    return status


async def update_device_config(device: Receiver, config: DeviceConfig,
                               client: Optional[httpx.AsyncClient] = None) -> DeviceConfig:
    await _request(device, "POST", CONFIG_PATH, client=client, json=config.model_dump())
    logger.info(f"[ESP32] {device.device_name} config updated: {config.model_dump()}")
    return config


async def reboot_device(device: Receiver, client: Optional[httpx.AsyncClient] = None) -> bool:
    """
    Fire-and-forget. Returns True if the board accepted the request; never raises,
    the board often drops the connection while going down.
    """
    try:
        await _request(device, "POST", REBOOT_PATH, client=client, timeout=REBOOT_TIMEOUT_SECONDS)
    except DeliveryError as e:
        logger.warning(f"[ESP32] Reboot request to {device.device_name} not confirmed — {e.reason}")
        return False
    logger.info(f"[ESP32] {device.device_name} rebooting")
    return True
