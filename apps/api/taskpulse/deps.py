from __future__ import annotations

import secrets

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskpulse.config import settings
from taskpulse.db import SessionLocal


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


def _bearer_token(request: Request) -> str | None:
  auth = request.headers.get("authorization")
  if auth and auth.lower().startswith("bearer "):
    token = auth.split(" ", 1)[1].strip()
    return token or None
  return None


async def require_service_token(request: Request) -> None:
  # Cron and admin callers authenticate with the shared CRON_SECRET.
  expected = (settings.cron_secret or "").strip()
  if not expected:
    return
  token = _bearer_token(request) or request.headers.get("x-cron-secret")
  if not token:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  if not secrets.compare_digest(token.encode(), expected.encode()):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
