from pydantic import BaseModel


class SystemSettingsRead(BaseModel):
    project_name: str
    version: str
    environment: str
    default_window_weeks: int
    min_window_weeks: int
    max_window_weeks: int
    quality_audit_percentage: float
    short_notice_threshold_hours: float
    pay_period_days: int
    routing_enabled: bool
