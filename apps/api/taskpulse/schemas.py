from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskpulse.reminders.windows import ReminderSettings

WindowName = Literal["24h", "6h", "1h", "day_of"]


class AssigneeOut(BaseModel):
  id: str
  email: str
  name: str | None = None


class ReminderOut(BaseModel):
  id: str
  title: str
  due_date: datetime
  priority: str
  status: str
  window: WindowName
  assignee: AssigneeOut | None = None


class TimeRangeOut(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  from_: datetime = Field(alias="from")
  to: datetime


class ReminderScanOut(BaseModel):
  reminders: list[ReminderOut]
  count: int
  checked_at: datetime
  tasks_checked: int
  window: TimeRangeOut
  failed_task_ids: list[str] = []
  message: str | None = None


class ReminderResetIn(BaseModel):
  taskIds: list[str] | None = None
  resetAll: bool = False
  window: WindowName | None = None

  @field_validator("taskIds")
  @classmethod
  def _dedupe_ids(cls, v: list[str] | None) -> list[str] | None:
    if v is None:
      return None
    out: list[str] = []
    for raw in v:
      s = str(raw or "").strip()
      if not s:
        continue
      try:
        s = str(uuid.UUID(s))
      except ValueError as e:
        raise ValueError(f"Invalid task id: {s}") from e
      if s not in out:
        out.append(s)
    return out


class ReminderResetOut(BaseModel):
  success: bool = True
  message: str
  taskIds: list[str] = []


class DueSoonTaskOut(BaseModel):
  id: str
  title: str
  due_date: datetime
  priority: str
  status: str
  assignee_id: str | None = None
  assignee: AssigneeOut | None = None


class DueSoonGroupOut(BaseModel):
  assignee: AssigneeOut | None = None
  tasks: list[DueSoonTaskOut]


class DueSoonOut(BaseModel):
  tasks: list[DueSoonTaskOut]
  grouped: dict[str, DueSoonGroupOut]
  count: int
  window: TimeRangeOut
  message: str | None = None


class ReminderSettingsOut(BaseModel):
  userId: str
  timezone: str | None = None
  custom: bool
  reminders: ReminderSettings


class ReminderSettingsIn(ReminderSettings):
  """Request body for replacing settings; unknown tiers are rejected."""

  model_config = ConfigDict(frozen=True, extra="forbid")
