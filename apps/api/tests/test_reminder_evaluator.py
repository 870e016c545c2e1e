from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from taskpulse.reminders.evaluator import WindowEvaluator
from taskpulse.reminders.windows import ReminderWindow

pytestmark = pytest.mark.anyio

UTC = timezone.utc
DUE = datetime(2026, 3, 10, 15, 0, tzinfo=UTC)
HIGH = [ReminderWindow.H24, ReminderWindow.H6, ReminderWindow.H1]


def fired(ev: WindowEvaluator, due: datetime, now: datetime, sent=(), windows=HIGH) -> list[str]:
  return [w.value for w in windows if ev.should_fire(due, w, now, sent, tz=UTC, active_windows=windows)]


async def test_already_sent_never_fires() -> None:
  ev = WindowEvaluator()
  for window in ReminderWindow:
    for offset in (timedelta(minutes=1), timedelta(minutes=45), timedelta(hours=5), timedelta(hours=20)):
      now = DUE - offset
      assert ev.should_fire(DUE, window, now, {window.value}, tz=UTC) is False
      assert ev.should_fire(DUE, window, now, [window], tz=UTC) is False


async def test_1h_window_bounds() -> None:
  ev = WindowEvaluator()
  start = DUE - timedelta(hours=1, minutes=30)
  assert ev.should_fire(DUE, "1h", start, set()) is True
  assert ev.should_fire(DUE, "1h", start - timedelta(seconds=1), set()) is False
  assert ev.should_fire(DUE, "1h", DUE - timedelta(seconds=1), set()) is True
  assert ev.should_fire(DUE, "1h", DUE, set()) is False
  assert ev.should_fire(DUE, "1h", DUE + timedelta(minutes=5), set()) is False


async def test_high_task_four_and_a_half_hours_out_fires_6h_only() -> None:
  ev = WindowEvaluator()
  due = datetime(2026, 3, 10, 17, 0, tzinfo=UTC)
  now = due - timedelta(hours=4, minutes=30)
  assert fired(ev, due, now) == ["6h"]

  later = now + timedelta(minutes=10)
  assert fired(ev, due, later, sent={"6h"}) == []


async def test_each_high_window_fires_in_its_own_band() -> None:
  ev = WindowEvaluator()
  assert fired(ev, DUE, DUE - timedelta(hours=24, minutes=31)) == []
  assert fired(ev, DUE, DUE - timedelta(hours=24, minutes=30)) == ["24h"]
  assert fired(ev, DUE, DUE - timedelta(hours=12)) == ["24h"]
  assert fired(ev, DUE, DUE - timedelta(hours=6, minutes=30)) == ["6h"]
  assert fired(ev, DUE, DUE - timedelta(hours=2)) == ["6h"]
  assert fired(ev, DUE, DUE - timedelta(hours=1, minutes=30)) == ["1h"]
  assert fired(ev, DUE, DUE - timedelta(minutes=1)) == ["1h"]


async def test_lone_24h_window_stays_open_until_due() -> None:
  ev = WindowEvaluator()
  medium = [ReminderWindow.H24]
  assert fired(ev, DUE, DUE - timedelta(hours=3), windows=medium) == ["24h"]
  assert fired(ev, DUE, DUE - timedelta(minutes=5), windows=medium) == ["24h"]
  assert fired(ev, DUE, DUE, windows=medium) == []


async def test_disabled_6h_lets_24h_run_until_1h_opens() -> None:
  ev = WindowEvaluator()
  windows = [ReminderWindow.H24, ReminderWindow.H1]
  assert fired(ev, DUE, DUE - timedelta(hours=3), windows=windows) == ["24h"]
  assert fired(ev, DUE, DUE - timedelta(hours=1), windows=windows) == ["1h"]


async def test_overdue_fires_nothing() -> None:
  ev = WindowEvaluator()
  for window in ReminderWindow:
    assert ev.should_fire(DUE, window, DUE, set(), tz=UTC) is False
    assert ev.should_fire(DUE, window, DUE + timedelta(hours=2), set(), tz=UTC) is False


async def test_custom_buffer() -> None:
  ev = WindowEvaluator(buffer=timedelta(0))
  assert ev.should_fire(DUE, "1h", DUE - timedelta(minutes=61), set()) is False
  assert ev.should_fire(DUE, "1h", DUE - timedelta(minutes=60), set()) is True


async def test_day_of_calendar_rules() -> None:
  ev = WindowEvaluator()
  tz = ZoneInfo("UTC")
  due_8 = datetime(2026, 3, 11, 8, 0, tzinfo=UTC)

  # Today 09:30: different calendar day, even though within 24h.
  assert ev.should_fire(due_8, "day_of", datetime(2026, 3, 10, 9, 30, tzinfo=UTC), set(), tz=tz) is False
  # Tomorrow 09:30: after the due time.
  assert ev.should_fire(due_8, "day_of", datetime(2026, 3, 11, 9, 30, tzinfo=UTC), set(), tz=tz) is False
  # Tomorrow 07:30: before 09:00.
  assert ev.should_fire(due_8, "day_of", datetime(2026, 3, 11, 7, 30, tzinfo=UTC), set(), tz=tz) is False

  due_10 = datetime(2026, 3, 11, 10, 0, tzinfo=UTC)
  assert ev.should_fire(due_10, "day_of", datetime(2026, 3, 11, 9, 30, tzinfo=UTC), set(), tz=tz) is True
  assert ev.should_fire(due_10, "day_of", datetime(2026, 3, 11, 9, 0, tzinfo=UTC), set(), tz=tz) is True
  assert ev.should_fire(due_10, "day_of", datetime(2026, 3, 11, 8, 59, tzinfo=UTC), set(), tz=tz) is False


async def test_day_of_uses_the_given_zone() -> None:
  ev = WindowEvaluator()
  ny = ZoneInfo("America/New_York")
  # 2026-03-11 18:00 New York is 22:00 UTC on the same date.
  due = datetime(2026, 3, 11, 18, 0, tzinfo=ny)
  assert ev.should_fire(due, "day_of", datetime(2026, 3, 11, 9, 30, tzinfo=ny), set(), tz=ny) is True
  # 10:00 UTC is 06:00 in New York, before the day-of hour locally.
  assert ev.should_fire(due, "day_of", datetime(2026, 3, 11, 10, 0, tzinfo=UTC), set(), tz=ny) is False
  assert ev.should_fire(due, "day_of", datetime(2026, 3, 11, 10, 0, tzinfo=UTC), set(), tz=UTC) is True


async def test_custom_day_of_hour() -> None:
  ev = WindowEvaluator(day_of_hour=7)
  due = datetime(2026, 3, 11, 8, 0, tzinfo=UTC)
  assert ev.should_fire(due, "day_of", datetime(2026, 3, 11, 7, 30, tzinfo=UTC), set(), tz=UTC) is True


async def test_rejects_bad_configuration() -> None:
  with pytest.raises(ValueError):
    WindowEvaluator(buffer=timedelta(minutes=-1))
  with pytest.raises(ValueError):
    WindowEvaluator(day_of_hour=24)
  with pytest.raises(ValueError):
    WindowEvaluator().should_fire(DUE, "2h", DUE - timedelta(hours=1), set())
