"""Schemas for health and scheduler status."""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Database and scheduler reachability."""

    status: str
    database: str
    scheduler: Optional[str] = None
    services: Dict[str, str] = {}


class SchedulerStatusResponse(BaseModel):
    """Polling scheduler state and the last cycle summary."""

    running: bool
    cycle_running: bool
    jobs: Dict[str, Dict[str, Any]] = {}
    last_cycle: Optional[Dict[str, Any]] = None
