# app/models/alert.py
"""
Alerts table: one row per security event.
Written by alert_service (camera detections, manual tests, dashboard actions).
Rows are never deleted; the only mutation is the one-way acknowledgment.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Float, Boolean
from app.database import Base


class Alert(Base):
    __tablename__ = "security_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_type = Column(String(100), nullable=False, index=True)
    severity = Column(String(10), nullable=False, index=True)   # low | medium | high
    details = Column(Text)
    source_device = Column(String(100), nullable=False)
    detected_person = Column(String(100), default="Unknown")
    confidence_score = Column(Float)
    image_url = Column(String(500))
    created_at = Column(DateTime, nullable=False, index=True)
    acknowledged = Column(Boolean, default=False, nullable=False, index=True)
    acknowledged_at = Column(DateTime)

    def __repr__(self):
        return f"<Alert {self.id} type={self.alert_type} severity={self.severity} ack={self.acknowledged}>"
