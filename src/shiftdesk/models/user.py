"""User and employee models.

A user carries an optional linked employee sub-record.  Deletion is a soft
flag (``deleted_at``); deleted users stay in the cache.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

UserRole = Literal["Admin", "Cns", "Support", "Manager Teknik", "General Manager"]
EmployeeType = Literal["Administrator", "CNS", "Support", "Manager Teknik", "General Manager"]

USER_ROLE_LABELS: dict[str, str] = {
    "Admin": "Administrator",
    "Cns": "CNS",
    "Support": "Support",
    "Manager Teknik": "Manager Teknik",
    "General Manager": "General Manager",
}


class Employee(BaseModel):
    """Employee sub-record linked to a user."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    user_id: int | str | None = None
    employee_type: EmployeeType
    employee_type_name: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class User(BaseModel):
    """A console user as returned by ``/admin/users``."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    name: str
    email: str
    role: UserRole
    role_name: str | None = None
    grade: int | None = None
    is_active: bool = True
    last_login: datetime | None = None
    employee: Employee | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def role_label(self) -> str:
        return self.role_name or USER_ROLE_LABELS.get(self.role, self.role)


class CreateUserRequest(BaseModel):
    """Payload for creating a user together with its employee record."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: UserRole
    employee_type: EmployeeType
    grade: int | None = None
    is_active: bool = True


class UpdateUserRequest(BaseModel):
    """Partial update payload; unset fields are left untouched server-side."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    email: str | None = None
    role: UserRole | None = None
    employee_type: EmployeeType | None = None
    grade: int | None = None
    is_active: bool | None = None
