"""
Tracing Collector.

Collects per-request execution timing in the Apollo tracing format
(version 1) and returns it as a (key, payload) pair that is merged into
the GraphQL response `extensions` map.

One collector instance is created per request. It is attached to
graphql-core execution as middleware, so it observes every field
resolution of that request, and is read back once execution finishes.

Lifecycle:
    collector = TracingCollector()
    collector.start()
    result = await execute(..., middleware=[collector])
    collector.end()
    key, payload = collector.format()   # ("tracing", {...})

Payload:
    {
        "version": 1,
        "startTime": "2026-01-02T10:30:00.000Z",
        "endTime": "2026-01-02T10:30:00.012Z",
        "duration": 12000000,                       # nanoseconds
        "parsing": {"startOffset": ..., "duration": ...},
        "validation": {"startOffset": ..., "duration": ...},
        "execution": {
            "resolvers": [
                {"path": ["hello"], "parentType": "Query",
                 "fieldName": "hello", "returnType": "String",
                 "startOffset": 53000, "duration": 4100},
            ]
        }
    }
"""

from __future__ import annotations

import inspect
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterator

from graphql import GraphQLResolveInfo

TRACING_KEY = "tracing"
TRACING_VERSION = 1


def _iso(ts: datetime) -> str:
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class ResolverTrace:
    """Timing of one field resolution."""

    path: list[str | int]
    parent_type: str
    field_name: str
    return_type: str
    start_offset: int
    duration: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "parentType": self.parent_type,
            "fieldName": self.field_name,
            "returnType": self.return_type,
            "startOffset": self.start_offset,
            "duration": self.duration,
        }


class TracingCollector:
    """
    Per-request trace record and graphql-core middleware.

    Offsets and durations are in nanoseconds relative to start().
    """

    key = TRACING_KEY

    def __init__(self) -> None:
        self.started_at: datetime | None = None
        self.ended_at: datetime | None = None
        self._start_ns: int = 0
        self._end_ns: int = 0
        self._phases: dict[str, tuple[int, int]] = {}
        self.resolvers: list[ResolverTrace] = []

    @property
    def started(self) -> bool:
        return self.started_at is not None

    @property
    def finished(self) -> bool:
        return self.ended_at is not None

    @property
    def duration_ns(self) -> int:
        if not self.finished:
            return 0
        return self._end_ns - self._start_ns

    def start(self) -> None:
        """Begin collection for one request."""
        self.started_at = datetime.now(timezone.utc)
        self._start_ns = time.perf_counter_ns()

    def end(self) -> None:
        """Finalize collection. Idempotent."""
        if self.finished:
            return
        self.ended_at = datetime.now(timezone.utc)
        self._end_ns = time.perf_counter_ns()

    def _offset(self) -> int:
        return time.perf_counter_ns() - self._start_ns

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        """Time a request phase such as parsing or validation."""
        start = self._offset()
        try:
            yield
        finally:
            self._phases[name] = (start, self._offset() - start)

    # graphql-core middleware protocol
    def resolve(
        self,
        next_: Callable[..., Any],
        root: Any,
        info: GraphQLResolveInfo,
        **args: Any,
    ) -> Any:
        start = self._offset()
        try:
            result = next_(root, info, **args)
        except Exception:
            self._record(info, start)
            raise

        if inspect.isawaitable(result):
            return self._resolve_async(result, info, start)

        self._record(info, start)
        return result

    async def _resolve_async(
        self,
        result: Awaitable[Any],
        info: GraphQLResolveInfo,
        start: int,
    ) -> Any:
        try:
            return await result
        finally:
            self._record(info, start)

    def _record(self, info: GraphQLResolveInfo, start: int) -> None:
        self.resolvers.append(
            ResolverTrace(
                path=list(info.path.as_list()),
                parent_type=info.parent_type.name,
                field_name=info.field_name,
                return_type=str(info.return_type),
                start_offset=start,
                duration=self._offset() - start,
            )
        )

    def format(self) -> tuple[str, dict[str, Any]]:
        """Return (extension key, tracing payload)."""
        if not self.started:
            raise RuntimeError("TracingCollector.format() called before start()")
        self.end()

        payload: dict[str, Any] = {
            "version": TRACING_VERSION,
            "startTime": _iso(self.started_at),
            "endTime": _iso(self.ended_at),
            "duration": self.duration_ns,
        }
        for name, (offset, duration) in self._phases.items():
            payload[name] = {"startOffset": offset, "duration": duration}
        payload["execution"] = {
            "resolvers": [r.to_dict() for r in self.resolvers],
        }
        return self.key, payload
