# app/schemas/receiver.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional, Union

DeviceType = Literal["esp32", "receiver"]


class ReceiverHeartbeat(BaseModel):
    device_name: str = Field(..., min_length=1, max_length=100)
    ip_address: str = Field(..., min_length=1, max_length=45)
    port: Optional[int] = Field(None, ge=1, le=65535)   # default depends on device_type
    device_type: DeviceType = "receiver"


class ReceiverOut(BaseModel):
    id: int
    device_name: str
    device_type: DeviceType
    ip_address: str
    port: int
    status: Literal["online", "offline", "error"]
    last_heartbeat: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class DeviceConfig(BaseModel):
    buzzer_enabled: bool = True
    lcd_enabled: bool = True
    ir_sensor_enabled: bool = True


class DeviceStatus(BaseModel):
    """Health report returned by an ESP32's GET /status. Extra firmware fields pass through."""
    uptime: Union[int, str]
    free_heap: Union[int, str]
    wifi_signal: int                     # dBm
    temperature: float                   # °C

    class Config:
        extra = "allow"


class DeviceCommandResult(BaseModel):
    device_name: str
    accepted: bool
    detail: Optional[str] = None
