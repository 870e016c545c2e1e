from __future__ import annotations

import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete, select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

_TMP = tempfile.mkdtemp(prefix="taskpulse-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/taskpulse_test.db"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["REMINDER_TIMEZONE"] = "UTC"

from taskpulse.config import settings
from taskpulse.db import SessionLocal, engine
from taskpulse.main import app
from taskpulse.models import AuditEvent, Base, Task, User

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
  async with SessionLocal() as db:
    await db.execute(delete(AuditEvent))
    await db.execute(delete(Task))
    await db.execute(delete(User))
    await db.commit()
  await engine.dispose()


@pytest.fixture(autouse=True)
async def _clean_between_tests() -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskpulse_test)."
    )
  await _reset_db()
  yield
  await _reset_db()


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def create_user(
  email: str,
  *,
  name: str | None = None,
  timezone: str | None = None,
  settings: dict[str, Any] | None = None,
) -> str:
  async with SessionLocal() as db:
    u = User(email=email, name=name, timezone=timezone, settings=settings or {})
    db.add(u)
    await db.commit()
    return u.id


async def create_task(
  title: str,
  *,
  due_date: datetime | None,
  priority: str = "high",
  status: str = "todo",
  assignee_id: str | None = None,
  reminded_windows: list[str] | None = None,
) -> str:
  async with SessionLocal() as db:
    t = Task(
      title=title,
      due_date=due_date,
      priority=priority,
      status=status,
      assignee_id=assignee_id,
      reminded_windows=list(reminded_windows or []),
    )
    db.add(t)
    await db.commit()
    return t.id


async def reminded_windows(task_id: str) -> list[str]:
  async with SessionLocal() as db:
    res = await db.execute(select(Task.reminded_windows).where(Task.id == task_id))
    return list(res.scalar_one() or [])
