from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from time import monotonic


@dataclass
class RequestSample:
  ts: datetime
  status_code: int
  latency_ms: float


@dataclass
class ScanSample:
  ts: datetime
  tasks_checked: int
  reminders_fired: int
  write_failures: int
  duration_ms: float
  error: str | None = None


class RuntimeMetrics:
  def __init__(self) -> None:
    self._started_monotonic = monotonic()
    self._started_at = datetime.now(timezone.utc)
    self._samples: deque[RequestSample] = deque()
    self._last_scan: ScanSample | None = None
    self._scan_count = 0
    self._reminders_total = 0
    self._lock = Lock()

  @property
  def started_at(self) -> datetime:
    return self._started_at

  def uptime_seconds(self) -> int:
    return max(0, int(monotonic() - self._started_monotonic))

  def observe_request(self, status_code: int, latency_ms: float) -> None:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._samples.append(RequestSample(ts=now, status_code=status_code, latency_ms=latency_ms))
      self._prune_locked(now)

  def observe_scan(
    self,
    *,
    tasks_checked: int,
    reminders_fired: int,
    write_failures: int,
    duration_ms: float,
    error: str | None = None,
  ) -> None:
    sample = ScanSample(
      ts=datetime.now(timezone.utc),
      tasks_checked=tasks_checked,
      reminders_fired=reminders_fired,
      write_failures=write_failures,
      duration_ms=duration_ms,
      error=error,
    )
    with self._lock:
      self._last_scan = sample
      self._scan_count += 1
      self._reminders_total += reminders_fired

  def _prune_locked(self, now: datetime) -> None:
    cutoff = now - timedelta(hours=24)
    while self._samples and self._samples[0].ts < cutoff:
      self._samples.popleft()

  def snapshot(self) -> dict:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._prune_locked(now)
      samples = list(self._samples)
      last_scan = self._last_scan
      scan_count = self._scan_count
      reminders_total = self._reminders_total

    cutoff_15 = now - timedelta(minutes=15)
    recent = [s for s in samples if s.ts >= cutoff_15]
    errors_15 = sum(1 for s in recent if s.status_code >= 500)
    errors_24h = sum(1 for s in samples if s.status_code >= 500)

    p95_ms = 0.0
    if samples:
      sorted_latencies = sorted(s.latency_ms for s in samples)
      idx = max(0, int(len(sorted_latencies) * 0.95) - 1)
      p95_ms = sorted_latencies[idx]

    out = {
      "uptimeSeconds": self.uptime_seconds(),
      "p95LatencyMs24h": round(p95_ms, 2),
      "requestCount15m": len(recent),
      "requestCount24h": len(samples),
      "errorCount15m": errors_15,
      "errorCount24h": errors_24h,
      "scanCount": scan_count,
      "remindersFiredTotal": reminders_total,
      "lastScan": None,
    }
    if last_scan is not None:
      out["lastScan"] = {
        "at": last_scan.ts.isoformat(),
        "tasksChecked": last_scan.tasks_checked,
        "remindersFired": last_scan.reminders_fired,
        "writeFailures": last_scan.write_failures,
        "durationMs": round(last_scan.duration_ms, 2),
        "error": last_scan.error,
      }
    return out


runtime_metrics = RuntimeMetrics()
