# app/routers/dashboard.py
"""Security overview tab: headline counters."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.dashboard import DashboardSummary
from app.services.alert_service import count_alerts
from app.services.user_service import count_active_users
from app.services.device_registry import list_online, list_receivers
from app.services.alert_feed import alert_feed

router = APIRouter()


@router.get("/dashboard/summary", response_model=DashboardSummary)
async def get_summary(db: Session = Depends(get_db)):
    return DashboardSummary(
        total_users=await count_active_users(db),
        active_alerts=await count_alerts(db, acknowledged=False),
        high_priority=await count_alerts(db, acknowledged=False, severity="high"),
        receivers_online=len(await list_online(db)),
        receivers_total=len(await list_receivers(db)),
        live_subscribers=alert_feed.subscriber_count,
    )
