from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, tzinfo

from taskpulse.reminders.windows import ReminderWindow

DEFAULT_BUFFER = timedelta(minutes=30)
DEFAULT_DAY_OF_HOUR = 9


class WindowEvaluator:
  """
  Decides whether a reminder window fires at a given instant.

  - Fixed windows (24h/6h/1h) open `lookback + buffer` before the due date and
    close when the next shorter active fixed window opens, or at the due date
    for the shortest one.
  - `day_of` opens at `day_of_hour` local time on the due date's calendar day
    and closes at the due date.
  - Overdue tasks never fire.
  - A window listed in `already_sent` never fires again.
  """

  def __init__(self, *, buffer: timedelta = DEFAULT_BUFFER, day_of_hour: int = DEFAULT_DAY_OF_HOUR) -> None:
    if buffer < timedelta(0):
      raise ValueError("buffer must not be negative")
    if not 0 <= day_of_hour <= 23:
      raise ValueError("day_of_hour must be between 0 and 23")
    self.buffer = buffer
    self.day_of_hour = day_of_hour

  def opens_at(self, due_date: datetime, window: ReminderWindow) -> datetime | None:
    if window.lookback is None:
      return None
    return due_date - window.lookback - self.buffer

  def closes_at(self, due_date: datetime, window: ReminderWindow, active_windows: Iterable[ReminderWindow] | None = None) -> datetime:
    if window.lookback is None:
      return due_date
    pool = ReminderWindow if active_windows is None else [ReminderWindow(w) for w in active_windows]
    shorter = [w for w in pool if w.lookback is not None and w.lookback < window.lookback]
    if not shorter:
      return due_date
    # Earliest opening among the shorter windows is the longest of them.
    return self.opens_at(due_date, max(shorter, key=lambda w: w.lookback))

  def should_fire(
    self,
    due_date: datetime,
    window: ReminderWindow | str,
    now: datetime,
    already_sent: Iterable[str],
    *,
    tz: tzinfo | None = None,
    active_windows: Iterable[ReminderWindow] | None = None,
  ) -> bool:
    """
    `active_windows` is the task's candidate set; None treats every fixed
    window as active. `tz` is the zone for calendar-day rules; None uses the
    server's local zone.
    """
    window = ReminderWindow(window)
    sent = {w.value if isinstance(w, ReminderWindow) else str(w) for w in already_sent}
    if window.value in sent:
      return False
    if now >= due_date:
      return False

    if window is ReminderWindow.DAY_OF:
      local_now = now.astimezone(tz)
      local_due = due_date.astimezone(tz)
      return local_now.date() == local_due.date() and local_now.hour >= self.day_of_hour

    return self.opens_at(due_date, window) <= now < self.closes_at(due_date, window, active_windows)
