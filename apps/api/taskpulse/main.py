from __future__ import annotations

import asyncio
import logging
from time import monotonic

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware

from taskpulse.config import settings
from taskpulse.db import SessionLocal
from taskpulse.deps import require_service_token
from taskpulse.metrics import runtime_metrics
from taskpulse.reminders.service import (
  ReminderConfigurationError,
  ReminderError,
  ScanInProgressError,
  scan_and_record,
)
from taskpulse.routers.reminders import router as reminders_router
from taskpulse.routers.users import router as users_router

logger = logging.getLogger(__name__)

app = FastAPI(
  title="TaskPulse API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(ReminderConfigurationError)
async def _reminder_config_error_handler(_, exc: ReminderConfigurationError) -> JSONResponse:
  return JSONResponse(
    status_code=500,
    content={"error": exc.message, "migration": exc.migration, "hint": exc.hint},
  )


@app.exception_handler(ScanInProgressError)
async def _scan_in_progress_handler(_, exc: ScanInProgressError) -> JSONResponse:
  return JSONResponse(status_code=409, content={"error": str(exc)})


@app.exception_handler(ReminderError)
async def _reminder_error_handler(_, exc: ReminderError) -> JSONResponse:
  logger.error("Reminder request failed: %s", exc)
  return JSONResponse(status_code=500, content={"error": str(exc)})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(reminders_router)
app.include_router(users_router)


@app.middleware("http")
async def _request_metrics_middleware(request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  runtime_metrics.observe_request(response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.get("/metrics", dependencies=[Depends(require_service_token)])
async def metrics() -> dict:
  return runtime_metrics.snapshot()


_reminder_loop_task: asyncio.Task | None = None


def _is_test_db() -> bool:
  try:
    db_name = settings.database_url.rsplit("/", 1)[-1]
    return "test" in db_name
  except Exception:
    return False


async def run_reminder_scan_tick() -> int:
  # Delivery is downstream; the tick only logs what fired.
  async with SessionLocal() as db:
    try:
      result = await scan_and_record(db)
    except ScanInProgressError:
      logger.info("Skipping reminder scan tick; a scan is already running")
      return 0
    except ReminderError:
      logger.exception("Reminder scan tick failed")
      return 0
  for e in result.events:
    logger.info(
      "Reminder due: task=%s window=%s recipient=%s",
      e.task_id,
      e.window.value,
      e.recipient.email if e.recipient else "unassigned",
    )
  return len(result.events)


async def _reminder_scan_loop() -> None:
  while True:
    await asyncio.sleep(max(10, int(settings.reminder_scan_interval_seconds)))
    try:
      await run_reminder_scan_tick()
    except Exception:
      # Never crash the app due to reminder failures.
      logger.exception("Unexpected error in reminder scan loop")


@app.on_event("startup")
async def _startup() -> None:
  global _reminder_loop_task
  logging.basicConfig(level=settings.log_level.upper())
  if _is_test_db():
    return
  if settings.reminder_scan_enabled and _reminder_loop_task is None:
    _reminder_loop_task = asyncio.create_task(_reminder_scan_loop())


@app.on_event("shutdown")
async def _shutdown() -> None:
  global _reminder_loop_task
  if _reminder_loop_task is not None:
    _reminder_loop_task.cancel()
    _reminder_loop_task = None
