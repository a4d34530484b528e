import random

from fastapi import APIRouter

from app.api.schemas.system import SystemStatusOut

router = APIRouter()


@router.get("/system-status")
async def system_status() -> SystemStatusOut:
    """Simulated link telemetry for the dashboard; nothing is measured."""
    return SystemStatusOut(
        ping=random.randint(20, 39),
        connection="Connected",
        wifi=f"Strong ({random.randint(75, 89)}%)",
    )
