"""Activity log models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ActivityUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    email: str


class ActivityLog(BaseModel):
    """One audit entry (who did what in which module)."""

    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: int | None = None
    action: str
    module: str
    reference_id: int | None = None
    description: str = ""
    created_at: datetime | None = None
    user: ActivityUser | None = None


class ActivityStatistics(BaseModel):
    """Aggregated activity counts for the dashboard."""

    model_config = ConfigDict(extra="ignore")

    total_activities: int = 0
    today_activities: int = 0
    week_activities: int = 0
    month_activities: int = 0
    by_module: dict[str, int] = Field(default_factory=dict)
    by_action: dict[str, int] = Field(default_factory=dict)
