"""
Pipeline Context for padrun.

The context carries one invocation through the request pipeline:
the incoming request, the decoded tenant context, the resolved schema,
the proxy agent, the GraphQL parameters, the trace collector and the
response payload being built.

It is created per invocation and discarded once the response is sent.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from padrun.proxy.manager import ORIGIN_URL_SECRET

if TYPE_CHECKING:
    from graphql import GraphQLSchema

    from padrun.errors import PadFault
    from padrun.proxy.agent import ProxyAgent
    from padrun.tracing import TracingCollector


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


JSON_HEADERS = {"content-type": "application/json"}


# =============================================================================
# Invocation
# =============================================================================


@dataclass
class PadRequest:
    """HTTP request as seen by the pad runtime. Header names are lowercase."""

    method: str = "POST"
    url: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "").split(";")[0].strip().lower()

    @property
    def has_body(self) -> bool:
        return self.method not in ("GET", "HEAD") and bool(self.body)

    @classmethod
    def graphql(
        cls,
        query: str,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> "PadRequest":
        """Build a JSON POST request carrying a GraphQL operation."""
        payload: dict[str, Any] = {"query": query}
        if variables is not None:
            payload["variables"] = variables
        if operation_name is not None:
            payload["operationName"] = operation_name
        return cls(
            method="POST",
            headers={**JSON_HEADERS, **(headers or {})},
            body=json.dumps(payload).encode("utf-8"),
        )


@dataclass
class Invocation:
    """
    One call from the hosting platform.

    `secrets` is the invocation-scoped secrets payload. Its `userContext`
    entry holds the JSON-encoded tenant context and `url` the public
    invocation URL.
    """

    request: PadRequest
    secrets: dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.secrets.get(ORIGIN_URL_SECRET) or self.request.url


@dataclass
class PadResponse:
    """Response handed back to the hosting platform."""

    status_code: int = 200
    body: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))

    @classmethod
    def from_fault(cls, fault: "PadFault") -> "PadResponse":
        return cls(status_code=fault.status_code, body={"error": fault.to_dict()})

    @classmethod
    def from_errors(
        cls,
        status_code: int,
        errors: list[dict[str, Any]],
        headers: dict[str, str] | None = None,
    ) -> "PadResponse":
        return cls(
            status_code=status_code,
            body={"errors": errors},
            headers={**JSON_HEADERS, **(headers or {})},
        )

    @property
    def is_fault(self) -> bool:
        return "error" in self.body


# =============================================================================
# GraphQL Parameters
# =============================================================================


@dataclass(frozen=True, slots=True)
class GraphQLParams:
    """Standard GraphQL-over-HTTP request fields."""

    query: str | None = None
    variables: dict[str, Any] | None = None
    operation_name: str | None = None


# =============================================================================
# Context
# =============================================================================


@dataclass
class PipelineContext:
    """
    Request-scoped state passed through every pipeline stage.

    Stages fill it in order: tenant_context, schema, agent, params,
    collector, payload, response.
    """

    invocation: Invocation

    # Execution identification
    execution_id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=_utc_now)

    # Stage outputs
    tenant_context: dict[str, str] = field(default_factory=dict)
    schema: GraphQLSchema | None = None
    agent: ProxyAgent | None = None
    routed: bool = False
    params: GraphQLParams | None = None
    collector: TracingCollector | None = None
    status_code: int = 200
    payload: dict[str, Any] = field(default_factory=dict)
    response: PadResponse | None = None

    # Audit trail
    stage_timings: dict[str, float] = field(default_factory=dict)

    @property
    def request(self) -> PadRequest:
        return self.invocation.request

    @property
    def headers(self) -> dict[str, str]:
        return self.invocation.request.headers

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the invocation started."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def record_timing(self, stage_name: str, duration_ms: float) -> None:
        self.stage_timings[stage_name] = duration_ms


@dataclass
class PipelineResult:
    """Result of one pipeline run."""

    context: PipelineContext
    response: PadResponse
    success: bool = True
    fault: PadFault | None = None
