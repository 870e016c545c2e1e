from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)


class ReminderWindow(str, Enum):
  """Named reminder windows, in canonical evaluation order."""

  H24 = "24h"
  H6 = "6h"
  H1 = "1h"
  DAY_OF = "day_of"

  @property
  def lookback(self) -> timedelta | None:
    """Fixed duration before the due date, or None for calendar-day windows."""
    return _LOOKBACKS.get(self)


_LOOKBACKS: dict[ReminderWindow, timedelta] = {
  ReminderWindow.H24: timedelta(hours=24),
  ReminderWindow.H6: timedelta(hours=6),
  ReminderWindow.H1: timedelta(hours=1),
}


class PriorityTier(str, Enum):
  HIGH = "high"
  MEDIUM = "medium"
  LOW = "low"


_PRIORITY_ALIASES: dict[str, PriorityTier] = {
  "critical": PriorityTier.HIGH,
  "high": PriorityTier.HIGH,
  "medium": PriorityTier.MEDIUM,
  "low": PriorityTier.LOW,
}


def normalize_priority(priority: str | None) -> PriorityTier | None:
  """Map a task priority onto its windowing tier; None means unrecognized."""
  key = str(priority or "").strip().lower()
  return _PRIORITY_ALIASES.get(key)


class ReminderSettings(BaseModel):
  """Per-tier window toggles. Immutable; build variants with `merged_with`."""

  model_config = ConfigDict(frozen=True, extra="ignore")

  high: dict[ReminderWindow, bool] = {}
  medium: dict[ReminderWindow, bool] = {}
  low: dict[ReminderWindow, bool] = {}

  @classmethod
  def default(cls) -> "ReminderSettings":
    return cls(
      high={ReminderWindow.H24: True, ReminderWindow.H6: True, ReminderWindow.H1: True},
      medium={ReminderWindow.H24: True},
      low={ReminderWindow.DAY_OF: True},
    )

  def for_tier(self, tier: PriorityTier) -> dict[ReminderWindow, bool]:
    return dict(getattr(self, tier.value))

  def merged_with(self, override: dict[str, Any]) -> "ReminderSettings":
    # Tier-level merge: a tier present in the override replaces the default tier.
    data = self.to_json()
    for tier in PriorityTier:
      if tier.value in override:
        data[tier.value] = override[tier.value]
    return ReminderSettings.model_validate(data)

  def to_json(self) -> dict[str, dict[str, bool]]:
    return {tier.value: {w.value: bool(on) for w, on in self.for_tier(tier).items()} for tier in PriorityTier}


def resolve_reminder_settings(raw: Any, defaults: ReminderSettings) -> ReminderSettings:
  """
  Effective settings for a user's stored `settings.reminders` value.

  Absent values use the defaults. Malformed values also use the defaults so a
  single bad profile never stops a scan.
  """
  if raw is None:
    return defaults
  if not isinstance(raw, dict):
    logger.warning("Ignoring reminder settings of type %s; using defaults", type(raw).__name__)
    return defaults
  try:
    return defaults.merged_with(raw)
  except ValidationError as e:
    logger.warning("Ignoring malformed reminder settings (%d errors); using defaults", e.error_count())
    return defaults


def merge_reminded_windows(previous: list[str] | None, fired: list[str]) -> list[str]:
  """Ordered set union: keeps existing order, appends new names once."""
  out: list[str] = []
  for name in list(previous or []) + list(fired):
    value = name.value if isinstance(name, ReminderWindow) else str(name)
    if value not in out:
      out.append(value)
  return out
