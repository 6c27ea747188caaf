# app/schemas/alert.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

Severity = Literal["low", "medium", "high"]


class AlertCreate(BaseModel):
    alert_type: str = Field(..., min_length=1, max_length=100)
    severity: Severity
    details: Optional[str] = None
    source_device: str = Field("Dashboard", min_length=1, max_length=100)
    detected_person: Optional[str] = None
    confidence_score: Optional[float] = Field(None, ge=0, le=100)
    image_url: Optional[str] = None


class AlertOut(BaseModel):
    id: int
    alert_type: str
    severity: Severity
    details: Optional[str]
    source_device: str
    detected_person: Optional[str]
    confidence_score: Optional[float]
    image_url: Optional[str] = None
    created_at: datetime
    acknowledged: bool
    acknowledged_at: Optional[datetime]

    class Config:
        from_attributes = True


class AlertPush(BaseModel):
    """Body POSTed to every receiver's /alert endpoint."""
    type: str
    severity: Severity
    message: str
    timestamp: str                       # ISO-8601, UTC
    confidence: Optional[float] = None
    source: Optional[str] = None


class DeliveryFailure(BaseModel):
    device_name: str
    address: str
    reason: str


class DeliveryReport(BaseModel):
    attempted: int
    succeeded: int
    failures: list[DeliveryFailure] = []


class AlertCreated(BaseModel):
    alert: AlertOut
    delivery: Optional[DeliveryReport] = None   # None when the registry could not be read
