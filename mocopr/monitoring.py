"""Health checks and request performance metrics."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(Enum):
    """Outcome of a health check, from best to worst."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"

    @property
    def _severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
    HealthStatus.UNKNOWN: 3,
}


@dataclass
class HealthCheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=_now)
    duration: timedelta = field(default_factory=timedelta)


@dataclass
class HealthReport:
    """Results of all checks; status is the worst individual status."""

    status: HealthStatus
    checks: list[HealthCheckResult]
    timestamp: datetime
    total_duration: timedelta


class HealthCheck(ABC):
    """A named check of some part of the system."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the check."""

    @abstractmethod
    async def check(self) -> HealthCheckResult:
        """Run the check."""


@dataclass
class PerformanceMetrics:
    """Aggregated request and resource metrics."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    avg_response_time_ms: float = 0.0
    p95_response_time_ms: float = 0.0
    p99_response_time_ms: float = 0.0
    active_connections: int = 0
    memory_usage_bytes: int = 0
    cpu_usage_percent: float = 0.0
    timestamp: datetime = field(default_factory=_now)


@dataclass
class RequestMetrics:
    """Outcome of one handled request."""

    method: str
    success: bool
    response_time: timedelta
    error_message: Optional[str] = None
    start_time: float = field(default_factory=time.monotonic)


@dataclass
class MonitoringConfig:
    """Settings for a MonitoringSystem."""

    max_response_times: int = 10000
    health_check_interval: timedelta = timedelta(seconds=30)
    detailed_logging: bool = True


def _ms(value: timedelta) -> float:
    return value.total_seconds() * 1000.0


def _log_result(result: HealthCheckResult) -> None:
    details = result.message or "No details"
    if result.status is HealthStatus.HEALTHY:
        logger.debug("Health check '%s' passed", result.name)
    elif result.status is HealthStatus.DEGRADED:
        logger.warning("Health check '%s' degraded: %s", result.name, details)
    elif result.status is HealthStatus.UNHEALTHY:
        logger.error("Health check '%s' failed: %s", result.name, details)
    else:
        logger.warning("Health check '%s' status unknown: %s", result.name, details)


def _read_system_usage() -> tuple[int, float]:
    """Resident memory in bytes and a rough CPU figure, from /proc."""
    status = Path("/proc/self/status").read_text()
    memory_kb = 0
    for line in status.splitlines():
        if line.startswith("VmRSS:"):
            parts = line.split()
            if len(parts) > 1 and parts[1].isdigit():
                memory_kb = int(parts[1])
            break

    fields_ = Path("/proc/self/stat").read_text().split()

    def _field(index: int) -> int:
        try:
            return int(fields_[index])
        except (IndexError, ValueError):
            return 0

    cpu_percent = ((_field(13) + _field(14)) / 100.0) * 0.1
    return memory_kb * 1024, cpu_percent


class MonitoringSystem:
    """Runs registered health checks and aggregates request metrics."""

    def __init__(self, config: Optional[MonitoringConfig] = None) -> None:
        self.config = config or MonitoringConfig()
        self._health_checks: list[HealthCheck] = []
        self._metrics = PerformanceMetrics()
        self._response_times: deque[timedelta] = deque(
            maxlen=self.config.max_response_times
        )
        self._lock = asyncio.Lock()

    async def register_health_check(self, check: HealthCheck) -> None:
        async with self._lock:
            self._health_checks.append(check)

    async def health_check(self) -> HealthReport:
        """Run every check and report the worst status."""
        started = time.perf_counter()
        overall = HealthStatus.HEALTHY
        results = []
        for check in list(self._health_checks):
            result = await check.check()
            if result.status._severity > overall._severity:
                overall = result.status
            results.append(result)
        return HealthReport(
            status=overall,
            checks=results,
            timestamp=_now(),
            total_duration=timedelta(seconds=time.perf_counter() - started),
        )

    async def record_request(self, request: RequestMetrics) -> None:
        """Count a request and recompute the response-time statistics."""
        async with self._lock:
            metrics = self._metrics
            metrics.total_requests += 1
            if request.success:
                metrics.successful_requests += 1
            else:
                metrics.failed_requests += 1

            self._response_times.append(request.response_time)
            times = sorted(self._response_times)
            if times:
                count = len(times)
                metrics.avg_response_time_ms = _ms(sum(times, timedelta())) / count
                p95 = int(count * 0.95)
                p99 = int(count * 0.99)
                metrics.p95_response_time_ms = _ms(times[p95]) if p95 < count else 0.0
                metrics.p99_response_time_ms = _ms(times[p99]) if p99 < count else 0.0
            metrics.timestamp = _now()

        if self.config.detailed_logging:
            if request.success:
                logger.debug(
                    "Request completed: %s in %s", request.method, request.response_time
                )
            else:
                logger.warning(
                    "Request failed: %s in %s - %s",
                    request.method,
                    request.response_time,
                    request.error_message or "Unknown error",
                )

    async def get_metrics(self) -> PerformanceMetrics:
        """A snapshot of the current metrics."""
        async with self._lock:
            return replace(self._metrics)

    async def start_periodic_health_checks(self) -> asyncio.Task:
        """Start running the checks every interval; cancel the task to stop."""
        interval = self.config.health_check_interval.total_seconds()

        async def _loop() -> None:
            while True:
                for check in list(self._health_checks):
                    _log_result(await check.check())
                await asyncio.sleep(interval)

        return asyncio.create_task(_loop())

    async def update_system_metrics(self, active_connections: int) -> None:
        """Store the connection count and, on Linux, process resource usage."""
        async with self._lock:
            self._metrics.active_connections = active_connections
            if sys.platform.startswith("linux"):
                try:
                    memory, cpu = _read_system_usage()
                except OSError:
                    return
                self._metrics.memory_usage_bytes = memory
                self._metrics.cpu_usage_percent = cpu


class BasicHealthCheck(HealthCheck):
    """Healthy unless the HEALTH_CHECK_FAIL environment variable is set."""

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def check(self) -> HealthCheckResult:
        started = time.perf_counter()
        status = (
            HealthStatus.UNHEALTHY
            if "HEALTH_CHECK_FAIL" in os.environ
            else HealthStatus.HEALTHY
        )
        return HealthCheckResult(
            name=self._name,
            status=status,
            message="Basic system health check",
            timestamp=_now(),
            duration=timedelta(seconds=time.perf_counter() - started),
        )


class FileSystemHealthCheck(HealthCheck):
    """Healthy when the given path can be stat'ed."""

    def __init__(self, test_path: Union[str, "os.PathLike[str]"]) -> None:
        self.test_path = Path(test_path)

    @property
    def name(self) -> str:
        return "filesystem"

    async def check(self) -> HealthCheckResult:
        started = time.perf_counter()
        try:
            self.test_path.stat()
        except OSError as exc:
            status = HealthStatus.UNHEALTHY
            message = f"File system check failed: {exc}"
        else:
            status = HealthStatus.HEALTHY
            message = "File system accessible"
        return HealthCheckResult(
            name="filesystem",
            status=status,
            message=message,
            timestamp=_now(),
            duration=timedelta(seconds=time.perf_counter() - started),
        )