from typing import Annotated

from fastapi import APIRouter, Depends

from loom_scheduler.core.config import Settings, get_settings
from loom_scheduler.schemas.system import SystemSettingsRead

router = APIRouter()


@router.get("/settings", response_model=SystemSettingsRead)
async def read_settings(settings: Annotated[Settings, Depends(get_settings)]) -> SystemSettingsRead:
    """Expose runtime configuration relevant to operators."""
    return SystemSettingsRead(
        project_name=settings.project_name,
        version=settings.version,
        environment=settings.environment,
        default_window_weeks=settings.default_window_weeks,
        min_window_weeks=settings.min_window_weeks,
        max_window_weeks=settings.max_window_weeks,
        quality_audit_percentage=settings.quality_audit_percentage,
        short_notice_threshold_hours=settings.short_notice_threshold_hours,
        pay_period_days=settings.pay_period_days,
        routing_enabled=bool(settings.routing_base_url),
    )
