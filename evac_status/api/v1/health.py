"""
Health endpoint for the evacuation status backend.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Request


router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
def health(request: Request) -> dict:
    refresher = getattr(request.app.state, "evacuation_refresher", None)
    scheduler = getattr(request.app.state, "evacuation_scheduler", None)
    last = refresher.last_report if refresher is not None else None
    return {
        "status": "ok",
        "timestamp_utc": datetime.utcnow().isoformat() + "Z",
        "evacuation": {
            "enabled": scheduler is not None,
            "scheduler_alive": bool(scheduler is not None and scheduler.is_alive),
            "running": bool(refresher is not None and refresher.running),
            "last_refresh": None
            if last is None
            else {
                "started_at_ms": last.started_at_ms,
                "finished_at_ms": last.finished_at_ms,
                "lists": len(last.lists),
                "failed_lists": last.failed_lists,
                "error": last.error,
            },
        },
    }
