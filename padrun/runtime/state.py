"""
Process-wide runtime state.

Holds the values a warm process keeps across invocations:
    - the resolved GraphQL schema
    - the proxy agent singleton

Both are written at most once. The first successful writer wins and
later requests observe the same value. All access happens on the event
loop thread, so the check-and-set sequences in SchemaResolver and
ProxyAgentManager need no lock; a multi-threaded host must add one.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from graphql import GraphQLSchema

    from padrun.proxy.agent import ProxyAgent


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProcessState:
    """Memoized state shared by every request in one warm process."""

    schema: GraphQLSchema | None = None
    agent: ProxyAgent | None = None
    started_at: datetime = field(default_factory=_utc_now)

    # In-flight schema resolution shared by concurrent first requests
    schema_task: asyncio.Task[Any] | None = field(default=None, repr=False)

    @property
    def has_schema(self) -> bool:
        return self.schema is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "schema_resolved": self.has_schema,
            "agent": self.agent.to_dict() if self.agent is not None else None,
        }

    async def teardown(self) -> None:
        """Release process resources. Called once on process shutdown."""
        if self.schema_task is not None and not self.schema_task.done():
            self.schema_task.cancel()
        if self.agent is not None:
            await self.agent.stop()
