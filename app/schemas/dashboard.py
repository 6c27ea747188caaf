# app/schemas/dashboard.py
from pydantic import BaseModel


class DashboardSummary(BaseModel):
    total_users: int
    active_alerts: int          # unacknowledged
    high_priority: int          # unacknowledged, severity=high
    receivers_online: int
    receivers_total: int
    live_subscribers: int
