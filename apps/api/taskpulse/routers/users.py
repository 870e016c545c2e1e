from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskpulse.audit import write_audit
from taskpulse.deps import get_db, require_service_token
from taskpulse.models import User
from taskpulse.reminders.windows import PriorityTier, ReminderSettings, resolve_reminder_settings
from taskpulse.schemas import ReminderSettingsIn, ReminderSettingsOut

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(require_service_token)])


async def _load_user(db: AsyncSession, user_id: str) -> User:
  res = await db.execute(select(User).where(User.id == user_id))
  u = res.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
  return u


def _settings_out(u: User) -> ReminderSettingsOut:
  stored = (u.settings or {}).get("reminders") if isinstance(u.settings, dict) else None
  return ReminderSettingsOut(
    userId=u.id,
    timezone=u.timezone,
    custom=isinstance(stored, dict),
    reminders=resolve_reminder_settings(stored, ReminderSettings.default()),
  )


@router.get("/{user_id}/reminder-settings", response_model=ReminderSettingsOut)
async def get_reminder_settings(user_id: str, db: AsyncSession = Depends(get_db)) -> ReminderSettingsOut:
  return _settings_out(await _load_user(db, user_id))


@router.put("/{user_id}/reminder-settings", response_model=ReminderSettingsOut)
async def replace_reminder_settings(
  user_id: str,
  payload: ReminderSettingsIn,
  db: AsyncSession = Depends(get_db),
) -> ReminderSettingsOut:
  u = await _load_user(db, user_id)
  # Only tiers present in the body are stored; the rest follow the defaults.
  provided = [tier for tier in PriorityTier if tier.value in payload.model_fields_set]
  stored = {tier.value: payload.to_json()[tier.value] for tier in provided}
  u.settings = {**(u.settings if isinstance(u.settings, dict) else {}), "reminders": stored}

  await write_audit(
    db,
    event_type="reminder.settings.updated",
    entity_type="User",
    entity_id=u.id,
    payload={"tiers": [t.value for t in provided]},
  )
  await db.commit()
  return _settings_out(u)


@router.delete("/{user_id}/reminder-settings", response_model=ReminderSettingsOut)
async def clear_reminder_settings(user_id: str, db: AsyncSession = Depends(get_db)) -> ReminderSettingsOut:
  u = await _load_user(db, user_id)
  current = dict(u.settings) if isinstance(u.settings, dict) else {}
  if "reminders" in current:
    current.pop("reminders")
    u.settings = current
    await write_audit(db, event_type="reminder.settings.cleared", entity_type="User", entity_id=u.id)
    await db.commit()
  return _settings_out(u)
