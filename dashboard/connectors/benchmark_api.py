"""
Benchmark API client

Async REST client for the benchmark server. Reads return parsed models;
mutating commands return the server's ``CommandResult`` envelope.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from dashboard.config import settings
from dashboard.models import CommandResult, HistoryPoint, LogEntry, MetricSnapshot

logger = logging.getLogger(__name__)

# Command name -> path under /api/benchmark.
COMMANDS = {
    "start": "start",
    "stop": "stop",
    "load": "load",
    "cancel-load": "load/cancel",
    "clean": "clean",
    "save-config": "config",
    "test-connection": "test-connection",
}


class BenchmarkApiClient:
    """
    Thin async wrapper over the benchmark server's REST endpoints.

    Transport failures (httpx errors, non-2xx responses, unparseable bodies)
    propagate to the caller; the console decides how to surface them.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS,
        )

    async def __aenter__(self) -> "BenchmarkApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    # -- reads ---------------------------------------------------------------

    async def get_config(self) -> Dict[str, Any]:
        data = await self._get_json("/api/benchmark/config")
        return data if isinstance(data, dict) else {}

    async def get_current_metrics(self) -> MetricSnapshot:
        data = await self._get_json("/api/metrics/current")
        return MetricSnapshot.model_validate(data)

    async def get_logs(self, limit: int = 100) -> List[LogEntry]:
        data = await self._get_json("/api/benchmark/logs", params={"limit": limit})
        return [LogEntry.model_validate(item) for item in data or []]

    async def get_metrics_history(self, limit: int = 60) -> List[HistoryPoint]:
        data = await self._get_json("/api/metrics/history", params={"limit": limit})
        return [HistoryPoint.model_validate(item) for item in data or []]

    async def clear_logs(self) -> CommandResult:
        response = await self._client.delete("/api/benchmark/logs")
        response.raise_for_status()
        return CommandResult.model_validate(response.json())

    # -- commands ------------------------------------------------------------

    async def send_command(
        self, name: str, body: Optional[Dict[str, Any]] = None
    ) -> CommandResult:
        """
        POST a console command.

        ``success: false`` bodies are returned, not raised, even when the
        server pairs them with an error status code.
        """
        path = COMMANDS.get(name)
        if path is None:
            raise ValueError(f"Unknown command: {name}")

        logger.debug("POST /api/benchmark/%s", path)
        response = await self._client.post(f"/api/benchmark/{path}", json=body)
        try:
            data = response.json()
        except ValueError:
            response.raise_for_status()
            raise
        if not isinstance(data, dict):
            response.raise_for_status()
            return CommandResult.failure(f"Unexpected response: {data!r}")
        return CommandResult.model_validate(data)

    async def save_config(self, payload: Dict[str, Any]) -> CommandResult:
        return await self.send_command("save-config", payload)

    async def test_connection(self, database: Dict[str, Any]) -> CommandResult:
        return await self.send_command("test-connection", {"database": database})
