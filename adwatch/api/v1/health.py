"""Health check and scheduler status endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from adwatch.config import settings
from adwatch.dependencies import get_db, get_scheduler
from adwatch.schemas import HealthCheckResponse, SchedulerStatusResponse
from adwatch.scrapers.scheduler import PollingScheduler

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    scheduler: Optional[PollingScheduler] = Depends(get_scheduler),
):
    """Report database reachability and scheduler state.

    Checks database connectivity and whether the polling scheduler runs.
    """
    services = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    services["database"] = db_status

    if scheduler is None:
        scheduler_status = "disabled"
    else:
        scheduler_status = "ok" if scheduler.is_running() else "error: not running"
        services["scheduler"] = scheduler_status

    overall_status = "ok" if all(s == "ok" for s in services.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        scheduler=scheduler_status,
        services=services,
    )


@router.get("/health/scheduler", response_model=SchedulerStatusResponse)
async def scheduler_status(scheduler: Optional[PollingScheduler] = Depends(get_scheduler)):
    """Scheduled jobs and the summary of the last polling cycle."""
    if scheduler is None:
        return SchedulerStatusResponse(running=False, cycle_running=False)

    return SchedulerStatusResponse(
        running=scheduler.is_running(),
        cycle_running=scheduler.cycle_running,
        jobs=scheduler.get_jobs_status(),
        last_cycle=scheduler.last_report.to_dict() if scheduler.last_report else None,
    )


@router.post("/debug/poll")
async def debug_poll(scheduler: Optional[PollingScheduler] = Depends(get_scheduler)):
    """Run one polling cycle now. Only available in debug mode."""
    if not settings.DEBUG:
        raise HTTPException(status_code=404, detail="only available in debug mode")
    if scheduler is None:
        raise HTTPException(status_code=409, detail="scheduler is disabled")

    report = await scheduler.tick()
    if report is None:
        return {"status": "skipped"}
    return {"status": "success", "cycle": report.to_dict()}
