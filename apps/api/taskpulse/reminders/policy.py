from __future__ import annotations

from taskpulse.reminders.windows import PriorityTier, ReminderSettings, ReminderWindow, normalize_priority

# Windows for priorities outside the known tiers; user settings do not apply.
FALLBACK_WINDOWS: tuple[ReminderWindow, ...] = (ReminderWindow.H24,)


class WindowPolicy:
  def __init__(self, defaults: ReminderSettings | None = None) -> None:
    self.defaults = defaults or ReminderSettings.default()

  def applicable_windows(self, priority: str | PriorityTier | None, settings: ReminderSettings | None = None) -> list[ReminderWindow]:
    tier = priority if isinstance(priority, PriorityTier) else normalize_priority(priority)
    if tier is None:
      return list(FALLBACK_WINDOWS)
    enabled = (settings or self.defaults).for_tier(tier)
    return [w for w in ReminderWindow if enabled.get(w, False)]
