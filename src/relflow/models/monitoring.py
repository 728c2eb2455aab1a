"""Post-release monitoring models."""

from datetime import datetime

from pydantic import BaseModel, Field


class HealthMetrics(BaseModel):
    """Counters collected during one monitoring cycle."""

    downloads: int = Field(default=0, description="Downloads reported for the last day")
    install_failures: int = Field(default=0, description="Failed installation attempts")
    error_count: int = Field(default=0, description="Health check errors")
    warning_count: int = Field(default=0, description="Health check warnings")
    messages: list[str] = Field(default_factory=list, description="Check findings")


class MonitoringSnapshot(BaseModel):
    """State written to disk after each monitoring cycle."""

    timestamp: datetime = Field(default_factory=datetime.now)
    version: str
    cycle: int
    metrics: HealthMetrics
    triggers: list[str] = Field(default_factory=list, description="Rollback triggers that fired")
    auto_rollback: bool = False
    duration_minutes: int
    check_interval: int
