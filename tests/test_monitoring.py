import asyncio
from datetime import timedelta

import pytest

from mocopr.monitoring import (
    BasicHealthCheck,
    FileSystemHealthCheck,
    HealthCheck,
    HealthCheckResult,
    HealthStatus,
    MonitoringConfig,
    MonitoringSystem,
    RequestMetrics,
)


class _FixedCheck(HealthCheck):
    def __init__(self, name, status):
        self._name = name
        self.status = status
        self.calls = 0

    @property
    def name(self):
        return self._name

    async def check(self):
        self.calls += 1
        return HealthCheckResult(name=self._name, status=self.status, message="fixed")


def _request(ms, success=True):
    return RequestMetrics(
        method="test_method",
        success=success,
        response_time=timedelta(milliseconds=ms),
        error_message=None if success else "boom",
    )


@pytest.mark.asyncio
async def test_monitoring_system(monkeypatch):
    monkeypatch.delenv("HEALTH_CHECK_FAIL", raising=False)
    monitoring = MonitoringSystem(MonitoringConfig())
    await monitoring.register_health_check(BasicHealthCheck("test"))

    report = await monitoring.health_check()
    assert report.status is HealthStatus.HEALTHY
    assert len(report.checks) == 1

    await monitoring.record_request(_request(100))
    metrics = await monitoring.get_metrics()
    assert metrics.total_requests == 1
    assert metrics.successful_requests == 1
    assert metrics.failed_requests == 0


@pytest.mark.asyncio
async def test_health_check_aggregation(monkeypatch, tmp_path):
    monkeypatch.delenv("HEALTH_CHECK_FAIL", raising=False)
    monitoring = MonitoringSystem(MonitoringConfig())
    await monitoring.register_health_check(BasicHealthCheck("healthy"))
    await monitoring.register_health_check(FileSystemHealthCheck(tmp_path / "nonexistent"))

    report = await monitoring.health_check()
    assert len(report.checks) == 2
    assert report.status is HealthStatus.UNHEALTHY


@pytest.mark.asyncio
async def test_basic_check_fails_when_env_set(monkeypatch):
    monkeypatch.setenv("HEALTH_CHECK_FAIL", "1")
    result = await BasicHealthCheck("basic").check()
    assert result.status is HealthStatus.UNHEALTHY
    assert result.name == "basic"
    assert result.message == "Basic system health check"


@pytest.mark.asyncio
async def test_filesystem_check_existing_path(tmp_path):
    check = FileSystemHealthCheck(tmp_path)
    result = await check.check()
    assert check.name == "filesystem"
    assert result.status is HealthStatus.HEALTHY
    assert result.message == "File system accessible"


@pytest.mark.asyncio
async def test_filesystem_check_missing_path_message(tmp_path):
    result = await FileSystemHealthCheck(tmp_path / "missing").check()
    assert result.message.startswith("File system check failed: ")


@pytest.mark.asyncio
async def test_unknown_outranks_unhealthy():
    monitoring = MonitoringSystem()
    await monitoring.register_health_check(_FixedCheck("a", HealthStatus.UNKNOWN))
    await monitoring.register_health_check(_FixedCheck("b", HealthStatus.UNHEALTHY))
    report = await monitoring.health_check()
    assert report.status is HealthStatus.UNKNOWN


@pytest.mark.asyncio
async def test_degraded_not_lowered_by_healthy():
    monitoring = MonitoringSystem()
    await monitoring.register_health_check(_FixedCheck("a", HealthStatus.DEGRADED))
    await monitoring.register_health_check(_FixedCheck("b", HealthStatus.HEALTHY))
    report = await monitoring.health_check()
    assert report.status is HealthStatus.DEGRADED
    assert [c.name for c in report.checks] == ["a", "b"]


@pytest.mark.asyncio
async def test_empty_report_is_healthy():
    report = await MonitoringSystem().health_check()
    assert report.status is HealthStatus.HEALTHY
    assert report.checks == []


@pytest.mark.asyncio
async def test_percentiles_and_average():
    monitoring = MonitoringSystem(MonitoringConfig(detailed_logging=False))
    for ms in range(100, 0, -1):
        await monitoring.record_request(_request(ms))
    metrics = await monitoring.get_metrics()
    assert metrics.total_requests == 100
    assert metrics.avg_response_time_ms == pytest.approx(50.5)
    assert metrics.p95_response_time_ms == pytest.approx(96.0)
    assert metrics.p99_response_time_ms == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_response_times_are_trimmed():
    monitoring = MonitoringSystem(MonitoringConfig(max_response_times=3))
    for ms in (1, 2, 3, 4, 5):
        await monitoring.record_request(_request(ms))
    metrics = await monitoring.get_metrics()
    assert metrics.total_requests == 5
    assert metrics.avg_response_time_ms == pytest.approx(4.0)


@pytest.mark.asyncio
async def test_failed_requests_counted():
    monitoring = MonitoringSystem()
    await monitoring.record_request(_request(10, success=False))
    await monitoring.record_request(_request(10))
    metrics = await monitoring.get_metrics()
    assert metrics.failed_requests == 1
    assert metrics.successful_requests == 1


@pytest.mark.asyncio
async def test_get_metrics_returns_snapshot():
    monitoring = MonitoringSystem()
    snapshot = await monitoring.get_metrics()
    await monitoring.record_request(_request(5))
    assert snapshot.total_requests == 0
    assert (await monitoring.get_metrics()).total_requests == 1


@pytest.mark.asyncio
async def test_update_system_metrics_sets_connections():
    monitoring = MonitoringSystem()
    await monitoring.update_system_metrics(7)
    metrics = await monitoring.get_metrics()
    assert metrics.active_connections == 7


@pytest.mark.asyncio
async def test_periodic_health_checks_run_repeatedly():
    monitoring = MonitoringSystem(
        MonitoringConfig(health_check_interval=timedelta(milliseconds=5))
    )
    check = _FixedCheck("loop", HealthStatus.DEGRADED)
    await monitoring.register_health_check(check)
    task = await monitoring.start_periodic_health_checks()
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert check.calls >= 2