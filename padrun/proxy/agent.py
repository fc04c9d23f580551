"""
Engine Proxy Agent.

A monitoring/reporting agent that observes GraphQL traffic for one warm
process and forwards trace reports to the engine ingress.

Lifecycle:
    created -> starting -> running -> stopped
                        +-> failed

    - start() validates the origin, opens the HTTP client and spawns the
      periodic flush loop.
    - route() marks a request as passing through the agent.
    - record() queues a trace report once the response is ready.
      Both work from creation on, so the request that starts the agent
      is observed too. Its reports go out once the agent is running.
    - flush() posts queued reports in one batch.
    - stop() flushes what is left and closes the client.

A failed agent drops what it queued and stays in place, routing
nothing, so traffic continues without proxying.

Reporting never raises into the request path. HTTP failures are logged
as warnings and the batch is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from padrun.pipeline.context import PipelineContext

logger = logging.getLogger(__name__)

DEFAULT_REPORT_URL = "https://engine-report.apollodata.com"
REPORT_PATH = "/api/ingress/traces"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Configuration for one engine agent."""

    api_key: str
    origin_url: str
    endpoint: str = "/"
    report_url: str = DEFAULT_REPORT_URL
    report_interval: float = 10.0
    timeout: float = 5.0
    debug_reports: bool = True
    max_batch_size: int = 100

    def __post_init__(self):
        if not self.api_key:
            raise ValueError("Engine API key is required")

    def to_dict(self) -> dict[str, Any]:
        """Serialize config with the API key masked."""
        return {
            "api_key": f"{self.api_key[:4]}***",
            "origin_url": self.origin_url,
            "endpoint": self.endpoint,
            "report_url": self.report_url,
            "report_interval": self.report_interval,
            "debug_reports": self.debug_reports,
        }


# =============================================================================
# Reports
# =============================================================================


@dataclass(frozen=True, slots=True)
class TraceReport:
    """Facts about one request routed through the agent."""

    execution_id: str
    status_code: int
    duration_ms: float
    operation_name: str | None = None
    query: str | None = None
    tracing: dict[str, Any] | None = None
    error_count: int = 0
    received_at: datetime = field(default_factory=_utc_now)

    @classmethod
    def from_context(cls, ctx: "PipelineContext", status_code: int) -> "TraceReport":
        params = ctx.params
        extensions = ctx.payload.get("extensions") or {}
        return cls(
            execution_id=str(ctx.execution_id),
            status_code=status_code,
            duration_ms=round(ctx.elapsed_ms, 3),
            operation_name=params.operation_name if params else None,
            query=params.query if params else None,
            tracing=extensions.get("tracing"),
            error_count=len(ctx.payload.get("errors") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "status_code": self.status_code,
            "duration_ms": self.duration_ms,
            "operation_name": self.operation_name,
            "query": self.query,
            "tracing": self.tracing,
            "error_count": self.error_count,
            "received_at": self.received_at.isoformat(),
        }


# =============================================================================
# Agent
# =============================================================================


class AgentState(str, Enum):
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    FAILED = "failed"
    STOPPED = "stopped"


class ProxyAgent:
    """
    Process-wide engine agent.

    Example:
        agent = ProxyAgent(EngineConfig(api_key="...", origin_url="https://..."))
        await agent.start()
        if agent.route(ctx):
            ...
            agent.record(TraceReport.from_context(ctx, 200))
    """

    def __init__(
        self,
        config: EngineConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.state = AgentState.CREATED
        self.requests_routed = 0
        self.reports_sent = 0
        self.reports_dropped = 0
        self._client = client
        self._owns_client = client is None
        self._queue: list[TraceReport] = []
        self._flush_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self.state == AgentState.RUNNING

    @property
    def accepting(self) -> bool:
        """True until the agent fails or stops."""
        return self.state in (AgentState.CREATED, AgentState.STARTING, AgentState.RUNNING)

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def start(self) -> None:
        """
        Start the agent.

        Raises:
            ValueError: The origin URL is not an absolute http(s) URL
            RuntimeError: The agent was already started
        """
        if self.state != AgentState.CREATED:
            raise RuntimeError(f"Agent cannot start from state '{self.state.value}'")

        self.state = AgentState.STARTING
        try:
            origin = httpx.URL(self.config.origin_url)
            if origin.scheme not in ("http", "https") or not origin.host:
                raise ValueError(f"Invalid engine origin URL: {self.config.origin_url!r}")

            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.report_url,
                    timeout=self.config.timeout,
                    headers={
                        "Content-Type": "application/json",
                        "X-Api-Key": self.config.api_key,
                    },
                )
            self._flush_task = asyncio.create_task(self._flush_loop())
        except Exception:
            self.state = AgentState.FAILED
            self.reports_dropped += len(self._queue)
            self._queue.clear()
            raise

        self.state = AgentState.RUNNING
        logger.info(
            f"[engine] Agent started for origin {self.config.origin_url} "
            f"(endpoint={self.config.endpoint})"
        )

    def route(self, ctx: "PipelineContext") -> bool:
        """
        Route a request through the agent.

        Returns:
            True if the agent will observe the request
        """
        if not self.accepting:
            return False
        self.requests_routed += 1
        return True

    def record(self, report: TraceReport) -> None:
        """Queue a trace report. Never raises."""
        if not self.accepting:
            return
        if self.config.debug_reports:
            logger.debug(f"[engine] Report queued: {report.to_dict()}")
        self._queue.append(report)
        if len(self._queue) > self.config.max_batch_size * 10:
            dropped = len(self._queue) - self.config.max_batch_size * 10
            del self._queue[:dropped]
            self.reports_dropped += dropped

    async def flush(self) -> int:
        """
        Post queued reports to the engine ingress.

        Returns:
            Number of reports delivered
        """
        if not self._queue or self._client is None:
            return 0

        batch = self._queue[: self.config.max_batch_size]
        del self._queue[: len(batch)]

        body = {
            "origin": self.config.origin_url,
            "endpoint": self.config.endpoint,
            "traces": [r.to_dict() for r in batch],
        }
        try:
            response = await self._client.post(REPORT_PATH, json=body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.reports_dropped += len(batch)
            logger.warning(f"[engine] Failed to deliver {len(batch)} reports: {e}")
            return 0

        self.reports_sent += len(batch)
        if self.config.debug_reports:
            logger.debug(f"[engine] Delivered {len(batch)} reports")
        return len(batch)

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.report_interval)
            await self.flush()

    async def stop(self) -> None:
        """Flush remaining reports and release the HTTP client."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None

        if self.running:
            while self._queue:
                if not await self.flush():
                    break

        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
        self.state = AgentState.STOPPED
        logger.info("[engine] Agent stopped")

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "config": self.config.to_dict(),
            "requests_routed": self.requests_routed,
            "reports_sent": self.reports_sent,
            "reports_dropped": self.reports_dropped,
            "pending": self.pending,
        }

    def __repr__(self) -> str:
        return f"ProxyAgent(origin={self.config.origin_url!r}, state={self.state.value})"
