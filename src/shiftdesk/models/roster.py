"""Roster period models (month-level rosters with optional day detail)."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from shiftdesk.models.user import Employee


class Shift(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    start_time: time
    end_time: time
    code: Literal["pagi", "siang", "malam"]


class ShiftAssignment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    roster_day_id: int
    employee_id: int
    shift_id: int
    employee: Employee | None = None
    shift: Shift | None = None


class RosterDay(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    roster_period_id: int
    work_date: date
    manager_id: int | None = None
    shift_assignments: list[ShiftAssignment] = Field(default_factory=list)


class RosterPeriod(BaseModel):
    """A monthly roster; ``draft`` until published."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    month: int = Field(ge=1, le=12)
    year: int
    status: Literal["draft", "published"] = "draft"
    spreadsheet_url: str | None = None
    last_synced_at: datetime | None = None
    published_at: datetime | None = None
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    roster_days: list[RosterDay] = Field(default_factory=list, alias="rosterDays")

    @property
    def is_published(self) -> bool:
        return self.status == "published"
