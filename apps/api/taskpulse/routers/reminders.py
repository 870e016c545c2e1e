from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskpulse.deps import get_db, require_service_token
from taskpulse.reminders.service import ReminderEvent, ReminderRecipient, list_due_soon, reset_reminded_windows, scan_and_record
from taskpulse.schemas import (
  AssigneeOut,
  DueSoonGroupOut,
  DueSoonOut,
  DueSoonTaskOut,
  ReminderOut,
  ReminderResetIn,
  ReminderResetOut,
  ReminderScanOut,
  TimeRangeOut,
)

router = APIRouter(prefix="/tasks", tags=["reminders"], dependencies=[Depends(require_service_token)])


def _assignee_out(r: ReminderRecipient | None) -> AssigneeOut | None:
  if r is None:
    return None
  return AssigneeOut(id=r.id, email=r.email, name=r.name)


def _reminder_out(e: ReminderEvent) -> ReminderOut:
  return ReminderOut(
    id=e.task_id,
    title=e.title,
    due_date=e.due_date,
    priority=e.priority,
    status=e.status,
    window=e.window.value,
    assignee=_assignee_out(e.recipient),
  )


@router.get("/check-reminders", response_model=ReminderScanOut)
async def check_reminders(db: AsyncSession = Depends(get_db)) -> ReminderScanOut:
  result = await scan_and_record(db)
  reminders = [_reminder_out(e) for e in result.events]
  return ReminderScanOut(
    reminders=reminders,
    count=len(reminders),
    checked_at=result.checked_at,
    tasks_checked=result.tasks_checked,
    window=TimeRangeOut(from_=result.window_from, to=result.window_to),
    failed_task_ids=result.failed_task_ids,
    message=None if reminders else "No tasks need reminders",
  )


@router.post("/check-reminders", response_model=ReminderResetOut)
async def reset_reminders(payload: ReminderResetIn, db: AsyncSession = Depends(get_db)) -> ReminderResetOut:
  if not payload.resetAll and not payload.taskIds:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Provide taskIds array or set resetAll to true")

  changed = await reset_reminded_windows(db, task_ids=payload.taskIds, reset_all=payload.resetAll, window=payload.window)
  scope = f"window {payload.window}" if payload.window else "all windows"
  if payload.resetAll:
    message = f"Reset {scope} on all reminded tasks ({len(changed)} changed)"
  else:
    message = f"Reset {scope} on {len(payload.taskIds or [])} tasks ({len(changed)} changed)"
  return ReminderResetOut(success=True, message=message, taskIds=changed)


@router.get("/due-soon", response_model=DueSoonOut)
async def due_soon(hours: int = Query(default=24, ge=1, le=24 * 14), db: AsyncSession = Depends(get_db)) -> DueSoonOut:
  items, start, until = await list_due_soon(db, hours=hours)
  tasks: list[DueSoonTaskOut] = []
  grouped: dict[str, DueSoonGroupOut] = {}
  for item in items:
    t = item.task
    out = DueSoonTaskOut(
      id=t.id,
      title=t.title,
      due_date=item.due_date,
      priority=t.priority,
      status=t.status,
      assignee_id=t.assignee_id,
      assignee=_assignee_out(item.assignee),
    )
    tasks.append(out)
    key = t.assignee_id or "unassigned"
    group = grouped.setdefault(key, DueSoonGroupOut(assignee=out.assignee, tasks=[]))
    group.tasks.append(out)
  return DueSoonOut(
    tasks=tasks,
    grouped=grouped,
    count=len(tasks),
    window=TimeRangeOut(from_=start, to=until),
    message=None if tasks else f"No tasks due within the next {hours} hours",
  )
