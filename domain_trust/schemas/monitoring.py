"""Monitor configuration and status schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class AlertThresholds(BaseModel):
    """Domain monitor alert thresholds."""

    reputation_score: float = 70
    delivery_rate: float = 95
    bounce_rate: float = 5


class EnabledChecks(BaseModel):
    """Which sub-checks a domain monitoring cycle runs."""

    dns_records: bool = True
    reputation: bool = True
    deliverability: bool = True


class MonitorConfig(BaseModel):
    """Domain monitor configuration."""

    check_interval_minutes: float = Field(60, gt=0)
    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    enabled_checks: EnabledChecks = Field(default_factory=EnabledChecks)


class CycleReport(BaseModel):
    """What one monitoring cycle did."""

    started_at: datetime
    finished_at: datetime | None = None
    skipped: bool = False
    checked: list[UUID] = Field(default_factory=list)
    failures: dict[str, str] = Field(default_factory=dict)


class MonitorStatus(BaseModel):
    """Current state of a periodic monitor."""

    name: str
    is_running: bool
    cycle_in_progress: bool
    interval_minutes: float
    last_cycle: CycleReport | None = None
