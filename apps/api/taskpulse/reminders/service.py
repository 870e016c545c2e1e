from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from time import monotonic
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskpulse.audit import write_audit
from taskpulse.config import settings
from taskpulse.metrics import runtime_metrics
from taskpulse.models import Task, User, as_utc, utcnow
from taskpulse.reminders.evaluator import WindowEvaluator
from taskpulse.reminders.policy import WindowPolicy
from taskpulse.reminders.windows import ReminderWindow, merge_reminded_windows, resolve_reminder_settings

logger = logging.getLogger(__name__)

REMINDED_WINDOWS_MIGRATION = (
  "ALTER TABLE tasks ADD COLUMN IF NOT EXISTS reminded_windows JSONB NOT NULL DEFAULT '[]'::jsonb;"
)


class ReminderError(Exception):
  pass


class ReminderConfigurationError(ReminderError):
  def __init__(self, message: str, *, migration: str, hint: str) -> None:
    super().__init__(message)
    self.message = message
    self.migration = migration
    self.hint = hint


class ReminderQueryError(ReminderError):
  pass


class ScanInProgressError(ReminderError):
  pass


@dataclass(frozen=True)
class ReminderRecipient:
  id: str
  email: str
  name: str | None


@dataclass(frozen=True)
class ReminderEvent:
  task_id: str
  title: str
  due_date: datetime
  priority: str
  status: str
  window: ReminderWindow
  fired_at: datetime
  recipient: ReminderRecipient | None


@dataclass
class ReminderScanResult:
  events: list[ReminderEvent]
  tasks_checked: int
  checked_at: datetime
  window_from: datetime
  window_to: datetime
  failed_task_ids: list[str] = field(default_factory=list)


def default_policy() -> WindowPolicy:
  return WindowPolicy()


def default_evaluator() -> WindowEvaluator:
  return WindowEvaluator(
    buffer=timedelta(minutes=settings.reminder_buffer_minutes),
    day_of_hour=settings.reminder_day_of_hour,
  )


def _zone(name: str | None) -> tzinfo | None:
  if not name:
    return None
  try:
    return ZoneInfo(name)
  except Exception:
    logger.warning("Unknown timezone %r; falling back", name)
    return None


def _day_of_zone(user: User | None) -> tzinfo | None:
  # User's zone first, then the configured zone, then server local time (None).
  tz = _zone(getattr(user, "timezone", None)) if user else None
  return tz or _zone(settings.reminder_timezone)


def _stored_reminder_settings(user: User | None) -> object:
  raw = getattr(user, "settings", None) if user else None
  return raw.get("reminders") if isinstance(raw, dict) else raw


async def _query_error(db: AsyncSession, e: SQLAlchemyError, what: str) -> ReminderError:
  await db.rollback()
  if "reminded_windows" in str(e):
    return ReminderConfigurationError(
      "The reminded_windows column does not exist in the tasks table. Please run the migration.",
      migration=REMINDED_WINDOWS_MIGRATION,
      hint="Run `alembic upgrade head` or apply the SQL above to the database",
    )
  return ReminderQueryError(f"Failed to load {what}: {e}")


async def _mark_windows_sent(db: AsyncSession, task_id: str, fired: list[str]) -> list[str]:
  # Re-read right before writing so markers from another writer are kept.
  res = await db.execute(select(Task.reminded_windows).where(Task.id == task_id))
  current = res.scalar_one_or_none()
  merged = merge_reminded_windows(current, fired)
  await db.execute(
    update(Task)
    .where(Task.id == task_id)
    .values(reminded_windows=merged)
    .execution_options(synchronize_session=False)
  )
  return merged


_scan_in_flight = False


async def scan_reminders_once(
  db: AsyncSession,
  *,
  now: datetime | None = None,
  policy: WindowPolicy | None = None,
  evaluator: WindowEvaluator | None = None,
) -> ReminderScanResult:
  """
  Evaluate reminder windows for every task due soon and mark fired windows.

  - Only one scan runs per process at a time (ScanInProgressError otherwise).
  - Idempotent: windows already in `reminded_windows` never fire again.
  - A failed write-back for one task is logged and skipped; that task's
    events are left out of the result and retried by the next scan.
  """
  global _scan_in_flight
  if _scan_in_flight:
    raise ScanInProgressError("A reminder scan is already running")
  _scan_in_flight = True
  try:
    return await _scan(db, now=now, policy=policy or default_policy(), evaluator=evaluator or default_evaluator())
  finally:
    _scan_in_flight = False


async def scan_and_record(db: AsyncSession, *, now: datetime | None = None) -> ReminderScanResult:
  start = monotonic()
  try:
    result = await scan_reminders_once(db, now=now)
  except ScanInProgressError:
    raise
  except ReminderError as e:
    runtime_metrics.observe_scan(
      tasks_checked=0,
      reminders_fired=0,
      write_failures=0,
      duration_ms=(monotonic() - start) * 1000.0,
      error=str(e),
    )
    raise
  runtime_metrics.observe_scan(
    tasks_checked=result.tasks_checked,
    reminders_fired=len(result.events),
    write_failures=len(result.failed_task_ids),
    duration_ms=(monotonic() - start) * 1000.0,
  )
  return result


async def _scan(db: AsyncSession, *, now: datetime | None, policy: WindowPolicy, evaluator: WindowEvaluator) -> ReminderScanResult:
  now = as_utc(now or utcnow())
  horizon = now + timedelta(hours=settings.reminder_horizon_hours)

  try:
    res = await db.execute(
      select(Task)
      .where(
        Task.status != "done",
        Task.due_date.is_not(None),
        Task.due_date >= now,
        Task.due_date <= horizon,
      )
      .order_by(Task.due_date.asc())
    )
    tasks = res.scalars().all()
  except SQLAlchemyError as e:
    raise await _query_error(db, e, "tasks") from e

  assignee_ids = sorted({t.assignee_id for t in tasks if t.assignee_id})
  users: dict[str, User] = {}
  if assignee_ids:
    try:
      ures = await db.execute(select(User).where(User.id.in_(assignee_ids)))
      users = {u.id: u for u in ures.scalars().all()}
    except SQLAlchemyError as e:
      raise await _query_error(db, e, "assignees") from e

  pending: list[tuple[str, list[ReminderEvent]]] = []
  for t in tasks:
    user = users.get(t.assignee_id) if t.assignee_id else None
    user_settings = resolve_reminder_settings(_stored_reminder_settings(user), policy.defaults)
    tz = _day_of_zone(user)
    due = as_utc(t.due_date)
    already = list(t.reminded_windows or [])
    recipient = ReminderRecipient(id=user.id, email=user.email, name=user.name) if user else None

    candidates = policy.applicable_windows(t.priority, user_settings)
    fired: list[ReminderEvent] = []
    for window in candidates:
      if evaluator.should_fire(due, window, now, already, tz=tz, active_windows=candidates):
        fired.append(
          ReminderEvent(
            task_id=t.id,
            title=t.title,
            due_date=due,
            priority=t.priority,
            status=t.status,
            window=window,
            fired_at=now,
            recipient=recipient,
          )
        )
    if fired:
      pending.append((t.id, fired))

  events: list[ReminderEvent] = []
  failed: list[str] = []
  for task_id, fired in pending:
    names = [e.window.value for e in fired]
    try:
      merged = await _mark_windows_sent(db, task_id, names)
      await write_audit(
        db,
        event_type="reminder.windows.marked",
        entity_type="Task",
        entity_id=task_id,
        task_id=task_id,
        payload={"windows": names, "remindedWindows": merged},
      )
      await db.commit()
    except SQLAlchemyError:
      await db.rollback()
      logger.exception("Failed to mark reminder windows %s for task %s", names, task_id)
      failed.append(task_id)
      continue
    events.extend(fired)

  logger.info("Reminder scan checked %d tasks, fired %d reminders, %d write failures", len(tasks), len(events), len(failed))
  return ReminderScanResult(
    events=events,
    tasks_checked=len(tasks),
    checked_at=now,
    window_from=now,
    window_to=horizon,
    failed_task_ids=failed,
  )


async def reset_reminded_windows(
  db: AsyncSession,
  *,
  task_ids: list[str] | None = None,
  reset_all: bool = False,
  window: ReminderWindow | str | None = None,
  actor_id: str | None = None,
) -> list[str]:
  """
  Clear `reminded_windows` (or drop a single window name) so the next scan
  re-evaluates those tasks. Returns the ids of tasks that changed.
  """
  if not reset_all and not task_ids:
    raise ValueError("Provide taskIds or set resetAll")
  name = ReminderWindow(window).value if window else None

  q = select(Task.id, Task.reminded_windows).where(Task.reminded_windows != [])
  if not reset_all:
    q = q.where(Task.id.in_(list(task_ids or [])))
  try:
    rows = (await db.execute(q)).all()
  except SQLAlchemyError as e:
    raise await _query_error(db, e, "tasks") from e

  changed: list[str] = []
  if name is None:
    changed = [row.id for row in rows if row.reminded_windows]
    if changed:
      await db.execute(
        update(Task)
        .where(Task.id.in_(changed))
        .values(reminded_windows=[])
        .execution_options(synchronize_session=False)
      )
  else:
    for row in rows:
      current = list(row.reminded_windows or [])
      remaining = [w for w in current if w != name]
      if remaining == current:
        continue
      await db.execute(update(Task).where(Task.id == row.id).values(reminded_windows=remaining))
      changed.append(row.id)

  if changed:
    await write_audit(
      db,
      event_type="reminder.windows.reset",
      entity_type="Task",
      entity_id=None,
      actor_id=actor_id,
      payload={"taskIds": changed, "resetAll": bool(reset_all), "window": name},
    )
  await db.commit()
  logger.info("Reset reminder windows (%s) on %d tasks", name or "all", len(changed))
  return changed


@dataclass
class DueSoonTask:
  task: Task
  due_date: datetime
  assignee: ReminderRecipient | None


async def list_due_soon(db: AsyncSession, *, now: datetime | None = None, hours: int = 24) -> tuple[list[DueSoonTask], datetime, datetime]:
  now = as_utc(now or utcnow())
  until = now + timedelta(hours=hours)
  try:
    res = await db.execute(
      select(Task)
      .where(Task.status != "done", Task.due_date.is_not(None), Task.due_date >= now, Task.due_date <= until)
      .order_by(Task.due_date.asc())
    )
    tasks = res.scalars().all()
  except SQLAlchemyError as e:
    raise await _query_error(db, e, "tasks") from e
  ids = sorted({t.assignee_id for t in tasks if t.assignee_id})
  users: dict[str, User] = {}
  if ids:
    try:
      ures = await db.execute(select(User).where(User.id.in_(ids)))
      users = {u.id: u for u in ures.scalars().all()}
    except SQLAlchemyError as e:
      raise await _query_error(db, e, "assignees") from e

  out: list[DueSoonTask] = []
  for t in tasks:
    u = users.get(t.assignee_id) if t.assignee_id else None
    out.append(DueSoonTask(task=t, due_date=as_utc(t.due_date), assignee=ReminderRecipient(id=u.id, email=u.email, name=u.name) if u else None))
  return out, now, until
