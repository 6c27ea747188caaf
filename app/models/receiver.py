# app/models/receiver.py
"""
Receiver registry table: ESP32 boards and receiver-app instances that accept alert pushes.
Rows are upserted by heartbeats (device_registry.upsert_receiver) and never deleted.
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class Receiver(Base):
    __tablename__ = "alert_receivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_name = Column(String(100), unique=True, nullable=False, index=True)
    device_type = Column(String(20), nullable=False, default="receiver")  # esp32 | receiver
    ip_address = Column(String(45), nullable=False)
    port = Column(Integer, nullable=False)
    status = Column(String(10), nullable=False, default="online", index=True)  # online | offline | error
    last_heartbeat = Column(DateTime)
    created_at = Column(DateTime, nullable=False)

    @property
    def base_url(self) -> str:
        return f"http://{self.ip_address}:{self.port}"

    def __repr__(self):
        return f"<Receiver {self.device_name} {self.ip_address}:{self.port} status={self.status}>"
