# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + ESP32 reachability.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.models.receiver import Receiver
from app.services.alert_feed import alert_feed
from app.services.device_registry import effective_status
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - ESP32 reachability (GET /status on each board with a live heartbeat)
    - Live feed subscriber count
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "devices": {},
        "live_subscribers": alert_feed.subscriber_count,
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"
        return result

    now = datetime.utcnow()
    boards = [
        b for b in db.query(Receiver).filter(Receiver.device_type == "esp32").all()
        if effective_status(b, now) == "online"
    ]
    for board in boards:
        try:
            resp = requests.get(f"{board.base_url}/status", timeout=3)
            result["devices"][board.device_name] = "ok" if resp.status_code == 200 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            result["devices"][board.device_name] = "unreachable"
            result["status"] = "degraded"
        except requests.exceptions.RequestException as e:
            result["devices"][board.device_name] = f"error: {str(e)}"

    return result
