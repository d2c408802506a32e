"""
Tests for SyncController: initial hydration, run boundaries and console
commands.
"""

from __future__ import annotations

import json
from datetime import datetime
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio

from dashboard.core.sync_controller import SyncController, validate_config
from dashboard.core.timeseries import SERIES_DISK_READ, SERIES_OS_CPU, SERIES_TPS
from dashboard.errors import ConfigValidationError
from dashboard.models import BenchmarkConfig, BenchmarkStatus, LogLevel
from tests.conftest import FakeConnector


def _log(message: str, level: str = "INFO") -> dict:
    return {"timestamp": "2024-01-15 10:30:00.000", "level": level, "message": message}


def _connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


@pytest_asyncio.fixture
async def controller(fast_settings, api, sink):
    ctrl = SyncController(
        fast_settings,
        api=api,
        sinks=(sink,),
        connect=FakeConnector(),
        clock=lambda: 1_705_314_600_000.0,
    )
    yield ctrl
    await ctrl.close()


def _values(controller: SyncController, series: str) -> list[float]:
    return [p.value for p in controller.series_points(series)]


def _messages(controller: SyncController) -> list[str]:
    return [e.message for e in controller.live_tail()]


# =============================================================================
# Initial hydration
# =============================================================================


class TestLoadInitialState:
    """load_initial_state() fetches and applies in a fixed order."""

    @pytest.mark.asyncio
    async def test_running_restores_throughput_history(
        self, controller, backend, sink
    ) -> None:
        backend.set("GET", "/api/benchmark/config", {"database": {"type": "postgres"}})
        backend.set(
            "GET",
            "/api/metrics/current",
            {"status": "RUNNING", "transaction": {"tps": 5.0, "totalTransactions": 9}},
        )
        backend.set(
            "GET",
            "/api/metrics/history",
            [
                {"timestamp": "2024-01-15T10:30:00", "tps": 1.0},
                {"timestamp": "2024-01-15T10:30:01", "transactionMetrics": {"tps": 2.0}},
                {"tps": 3.0},
            ],
        )
        backend.set("GET", "/api/benchmark/logs", [_log("Run started"), _log("Warm")])

        assert await controller.load_initial_state() is True

        assert controller.config == {"database": {"type": "postgres"}}
        assert sink.of("on_config") == [({"database": {"type": "postgres"}},)]
        assert controller.status == BenchmarkStatus.RUNNING
        assert _values(controller, SERIES_TPS) == [1.0, 2.0, 3.0]
        assert controller.transaction_totals.total_transactions == 9
        assert [e.message for e in controller.logs()] == ["Run started", "Warm"]
        assert _messages(controller) == [
            "Run started",
            "Warm",
            "Restored 3 chart data points",
            "Dashboard initialized",
        ]

    @pytest.mark.asyncio
    async def test_history_request_uses_point_limit(self, controller, backend) -> None:
        backend.set("GET", "/api/metrics/current", {"status": "STOPPED"})

        await controller.load_initial_state()

        [request] = [r for r in backend.requests if r.url.path == "/api/metrics/history"]
        assert request.url.params["limit"] == "60"
        [logs_request] = [
            r for r in backend.requests if r.url.path == "/api/benchmark/logs"
        ]
        assert logs_request.url.params["limit"] == "100"

    @pytest.mark.asyncio
    async def test_idle_skips_history(self, controller, backend) -> None:
        assert await controller.load_initial_state() is True

        assert backend.count("GET", "/api/metrics/history") == 0
        assert controller.status == BenchmarkStatus.IDLE
        assert _values(controller, SERIES_TPS) == []

    @pytest.mark.asyncio
    async def test_loading_restores_progress(self, controller, backend) -> None:
        backend.set(
            "GET",
            "/api/metrics/current",
            {"status": "LOADING", "loading": True, "loadProgress": 40,
             "loadMessage": "Loading district"},
        )

        await controller.load_initial_state()

        assert controller.progress.active
        assert controller.progress.percent == 40
        assert controller.progress.message == "Loading district"
        assert controller.flags.can_cancel_load

    @pytest.mark.asyncio
    async def test_history_failure_keeps_load_going(self, controller, backend) -> None:
        backend.set(
            "GET", "/api/metrics/current", {"status": "RUNNING", "transaction": {"tps": 7}}
        )
        backend.set(
            "GET", "/api/metrics/history", lambda request: httpx.Response(500, json={})
        )

        assert await controller.load_initial_state() is True
        assert _values(controller, SERIES_TPS) == [7.0]
        assert _messages(controller)[-1] == "Dashboard initialized"

    @pytest.mark.asyncio
    async def test_fetch_failure_reported_once(self, controller, backend) -> None:
        backend.set("GET", "/api/benchmark/config", _connect_error)

        assert await controller.load_initial_state() is False

        tail = controller.live_tail()
        assert len(tail) == 1
        assert tail[0].level == LogLevel.ERROR
        assert tail[0].message.startswith("Failed to load initial state")
        assert controller.status is None

    @pytest.mark.asyncio
    async def test_start_hydrates_then_opens_transport(self, controller, backend) -> None:
        await controller.start()

        assert controller.transport.running
        assert controller.status == BenchmarkStatus.IDLE
        assert backend.count("GET", "/api/benchmark/config") == 1


class TestRestoreHistory:
    """Explicit history restore."""

    @pytest.mark.asyncio
    async def test_returns_point_count_and_notes(self, controller, backend) -> None:
        backend.set("GET", "/api/metrics/history", [{"tps": 4.0}, {"tps": 6.0}])

        assert await controller.restore_history() == 2

        assert _values(controller, SERIES_TPS) == [4.0, 6.0]
        assert _messages(controller) == ["Restored 2 chart data points"]

    @pytest.mark.asyncio
    async def test_epoch_millis_timestamps_become_point_labels(
        self, controller, backend
    ) -> None:
        backend.set("GET", "/api/metrics/current", {"status": "RUNNING"})
        backend.set(
            "GET",
            "/api/metrics/history",
            [
                {"timestamp": 1_705_314_000_000, "tps": 1.0},
                {"timestamp": 1_705_314_010_000, "transactionMetrics": {"tps": 2.0}},
            ],
        )

        await controller.load_initial_state()

        expected = [
            datetime.fromtimestamp(ms / 1000).strftime("%H:%M:%S")
            for ms in (1_705_314_000_000, 1_705_314_010_000)
        ]
        labels = [p.label for p in controller.series_points(SERIES_TPS)]
        assert labels == expected
        assert labels[0] != labels[1]

    @pytest.mark.asyncio
    async def test_empty_history_leaves_series(self, controller) -> None:
        controller.series.push(SERIES_TPS, "10:00:00", 9.0)

        assert await controller.restore_history() == 0
        assert _values(controller, SERIES_TPS) == [9.0]


# =============================================================================
# Commands
# =============================================================================


class TestRunCommands:
    """start/stop/load/cancel/clean round-trips."""

    @pytest.mark.asyncio
    async def test_start_resets_run_scoped_series(self, controller, backend, sink) -> None:
        backend.set(
            "POST",
            "/api/benchmark/start",
            {"success": True, "message": "Benchmark started", "status": "RUNNING"},
        )
        controller.series.push(SERIES_TPS, "10:00:00", 100.0)
        controller.series.push(SERIES_OS_CPU, "10:00:00", 50.0)
        controller.rates.rate(SERIES_DISK_READ, 1000, 0)

        result = await controller.start_benchmark()

        assert result.success
        assert _values(controller, SERIES_TPS) == []
        assert _values(controller, SERIES_OS_CPU) == [50.0]
        assert not controller.rates.has_state(SERIES_DISK_READ)
        assert controller.status == BenchmarkStatus.RUNNING
        assert ("success", "Benchmark Started", "Benchmark is now running") in sink.of(
            "on_notification"
        )
        assert "Benchmark started" in _messages(controller)

    @pytest.mark.asyncio
    async def test_failed_command_is_reported(self, controller, backend, sink) -> None:
        backend.set(
            "POST",
            "/api/benchmark/stop",
            lambda request: httpx.Response(
                409, json={"success": False, "error": "Benchmark is not running"}
            ),
        )

        result = await controller.stop_benchmark()

        assert not result.success
        assert result.error == "Benchmark is not running"
        assert _messages(controller)[-1] == "Error: Benchmark is not running"
        assert sink.of("on_notification")[-1] == (
            "error",
            "Operation Failed",
            "Benchmark is not running",
        )

    @pytest.mark.asyncio
    async def test_transport_error_never_raises(self, controller, backend, sink) -> None:
        backend.set("POST", "/api/benchmark/clean", _connect_error)

        result = await controller.clean_data()

        assert not result.success
        assert result.error
        level, title, _ = sink.of("on_notification")[-1]
        assert (level, title) == ("error", "Request Failed")
        assert controller.live_tail()[-1].level == LogLevel.ERROR

    @pytest.mark.asyncio
    async def test_load_arms_progress(self, controller, backend) -> None:
        backend.set("POST", "/api/benchmark/load", {"success": True, "status": "LOADING"})

        await controller.load_data()

        assert backend.count("POST", "/api/benchmark/load") == 1
        assert controller.progress.active
        assert controller.flags.can_cancel_load

    @pytest.mark.asyncio
    async def test_cancel_load_disarms_cancel(self, controller, backend, sink) -> None:
        backend.set("POST", "/api/benchmark/load/cancel", {"success": True})
        controller.status_machine.update(BenchmarkStatus.LOADING)

        result = await controller.cancel_load()

        assert result.success
        assert not controller.flags.can_cancel_load
        assert sink.of("on_notification")[-1][1] == "Cancelling"


class TestConfigCommands:
    """Configuration save and connection test."""

    @pytest.mark.asyncio
    async def test_invalid_mix_never_reaches_server(self, controller, backend, sink) -> None:
        config = {"transactionMix": {"newOrder": 50, "payment": 43, "orderStatus": 4,
                                     "delivery": 4, "stockLevel": 4}}

        result = await controller.save_config(config)

        assert not result.success
        assert "Transaction mix must total 100% (currently 105%)" in result.error
        assert backend.count("POST", "/api/benchmark/config") == 0
        assert sink.of("on_notification")[-1][1] == "Invalid Configuration"

    @pytest.mark.asyncio
    async def test_valid_config_saved(self, controller, backend, sink) -> None:
        saved = {"database": {"type": "mysql"}, "benchmark": {"warehouses": 20}}
        backend.set(
            "POST", "/api/benchmark/config", {"success": True, "config": saved}
        )
        config = BenchmarkConfig.model_validate({"benchmark": {"warehouses": 20}})

        result = await controller.save_config(config)

        assert result.success
        assert controller.config == saved
        [request] = [r for r in backend.requests if r.method == "POST"]
        body = json.loads(request.content)
        assert body["benchmark"]["warehouses"] == 20
        assert body["transactionMix"]["newOrder"] == 45
        assert "password" not in body["database"]
        assert sink.of("on_notification")[-1][1] == "Configuration Saved"

    @pytest.mark.asyncio
    async def test_save_goes_through_client_save_config(self, controller, backend) -> None:
        backend.set("POST", "/api/benchmark/config", {"success": True})

        with patch.object(
            controller.api, "save_config", wraps=controller.api.save_config
        ) as save:
            result = await controller.save_config({})

        assert result.success
        save.assert_awaited_once()
        [payload] = save.await_args.args
        assert payload["transactionMix"]["payment"] == 43

    @pytest.mark.asyncio
    async def test_connection_success(self, controller, backend, sink) -> None:
        backend.set(
            "POST",
            "/api/benchmark/test-connection",
            {"success": True, "database": "MySQL 8.0.36", "responseTime": 12},
        )

        result = await controller.test_connection({"type": "mysql"})

        assert result.success
        assert result.response_time == 12
        assert sink.of("on_notification")[-1] == (
            "success",
            "Connection Successful",
            "Connected to MySQL 8.0.36",
        )

    @pytest.mark.asyncio
    async def test_connection_failure_carries_suggestion(
        self, controller, backend, sink
    ) -> None:
        backend.set(
            "POST",
            "/api/benchmark/test-connection",
            {"success": False, "error": "Access denied", "suggestion": "Check the password"},
        )

        await controller.test_connection({"type": "mysql"})

        level, title, message = sink.of("on_notification")[-1]
        assert (level, title) == ("error", "Connection Failed")
        assert message == "Access denied\n\nSuggestion: Check the password"


class TestValidateConfig:
    """validate_config() raises with the first validation message."""

    def test_default_config_is_valid(self) -> None:
        assert validate_config({}).transaction_mix.total == 100

    def test_bad_warehouses(self) -> None:
        with pytest.raises(ConfigValidationError):
            validate_config({"benchmark": {"warehouses": 0}})


# =============================================================================
# Logs
# =============================================================================


class TestLogCommands:
    """Clearing and reopening the log history."""

    @pytest.mark.asyncio
    async def test_clear_logs(self, controller, backend, sink) -> None:
        backend.set("DELETE", "/api/benchmark/logs", {"success": True})
        backend.set("GET", "/api/benchmark/logs", [_log("old")])
        await controller.load_initial_state()

        assert await controller.clear_logs() is True

        assert controller.logs() == []
        assert _messages(controller) == ["Logs cleared"]
        assert sink.of("on_log_history_replaced")[-1] == ((),)

    @pytest.mark.asyncio
    async def test_clear_logs_failure_keeps_entries(self, controller, backend) -> None:
        backend.set("GET", "/api/benchmark/logs", [_log("old")])
        backend.set("DELETE", "/api/benchmark/logs", _connect_error)
        await controller.load_initial_state()

        assert await controller.clear_logs() is False
        assert [e.message for e in controller.logs()] == ["old"]

    @pytest.mark.asyncio
    async def test_open_log_history_refreshes(self, controller, backend) -> None:
        backend.set(
            "GET",
            "/api/benchmark/logs",
            [_log("a"), _log("Deadlock detected", "ERROR"), _log("b", "WARNING")],
        )

        entries = await controller.open_log_history()

        assert [e.message for e in entries] == ["a", "Deadlock detected", "b"]
        request = backend.requests[-1]
        assert request.url.params["limit"] == "1000"
        assert [e.message for e in controller.logs("dead", "error")] == [
            "Deadlock detected"
        ]
        assert [e.message for e in controller.logs(level_filter="warn")] == ["b"]
