"""
Request pipeline stages.

The fixed stage order for a READY pad:

    1. tenant_context  decode invocation secrets into the tenant context
    2. schema          resolve the memoized schema (first request only)
    3. proxy           ensure the engine agent and route through it
    4. body            read GraphQL parameters from the body/query string
    5. trace_start     create and start the per-request trace collector
    6. execute         parse, validate and execute the operation
    7. trace_end       finalize the trace and merge it into `extensions`
    8. emit            build the response and hand the report to the agent

Request errors answered before execution (missing query, syntax or
validation errors) leave the pipeline through PipelineExit with a
GraphQL `errors` envelope. Errors raised by resolvers stay in the
response envelope with HTTP 200.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from graphql import (
    ExecutionResult,
    GraphQLError,
    OperationType,
    execute,
    get_operation_ast,
    parse,
    validate,
)

from padrun.errors import MalformedBodyFault, MalformedSecretsFault
from padrun.proxy.agent import TraceReport
from padrun.proxy.manager import ProxyAgentManager
from padrun.runtime.assembler import ContextAssembler
from padrun.runtime.resolver import SchemaResolver
from padrun.tracing import TracingCollector

from .context import GraphQLParams, PadRequest, PadResponse, PipelineContext
from .executor import Pipeline, PipelineBuilder
from .observability import PipelineMetrics
from .stage import PipelineExit, Stage

logger = logging.getLogger(__name__)

USER_CONTEXT_SECRET = "userContext"

JSON_CONTENT_TYPES = ("", "application/json")
GRAPHQL_CONTENT_TYPE = "application/graphql"


# =============================================================================
# Helpers
# =============================================================================


def decode_tenant_context(payload: str | None) -> dict[str, str]:
    """
    Decode the `userContext` secret into a flat tenant context.

    The payload is a JSON list of {"key": ..., "value": ...} objects.
    Later entries win on duplicate keys.

    Raises:
        MalformedSecretsFault: The payload is missing or malformed
    """
    if payload is None:
        raise MalformedSecretsFault(f"Invocation secrets are missing '{USER_CONTEXT_SECRET}'")

    try:
        entries = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedSecretsFault(f"{USER_CONTEXT_SECRET} is not valid JSON: {e}") from e

    if not isinstance(entries, list):
        raise MalformedSecretsFault(f"{USER_CONTEXT_SECRET} must be a JSON list")

    tenant_context: dict[str, str] = {}
    for entry in entries:
        if not isinstance(entry, dict) or "key" not in entry:
            raise MalformedSecretsFault(
                f"{USER_CONTEXT_SECRET} entries must be objects with 'key' and 'value'"
            )
        tenant_context[str(entry["key"])] = entry.get("value")
    return tenant_context


def _is_json_content_type(content_type: str) -> bool:
    return content_type in JSON_CONTENT_TYPES or content_type.endswith("+json")


def parse_params(request: PadRequest) -> GraphQLParams:
    """
    Read GraphQL parameters from the query string and body.

    Body fields override query string fields.

    Raises:
        MalformedBodyFault: The body is not a JSON object
        PipelineExit: `query` or `operationName` is not a string, or
            `variables` is not a JSON object
    """
    data: dict[str, Any] = dict(request.query_params)

    if request.has_body:
        content_type = request.content_type
        if content_type == GRAPHQL_CONTENT_TYPE:
            data["query"] = request.body.decode("utf-8", errors="replace")
        elif _is_json_content_type(content_type):
            try:
                body = json.loads(request.body)
            except ValueError as e:
                raise MalformedBodyFault(f"POST body sent invalid JSON: {e}") from e
            if not isinstance(body, dict):
                raise MalformedBodyFault("POST body must be a JSON object")
            data.update(body)

    for key in ("query", "operationName"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise PipelineExit(
                PadResponse.from_errors(400, [{"message": f"{key} must be a string."}])
            )

    variables = data.get("variables")
    if isinstance(variables, str):
        if variables:
            try:
                variables = json.loads(variables)
            except ValueError:
                raise PipelineExit(
                    PadResponse.from_errors(400, [{"message": "Variables are invalid JSON."}])
                )
        else:
            variables = None
    if variables is not None and not isinstance(variables, dict):
        raise PipelineExit(
            PadResponse.from_errors(400, [{"message": "Variables must be an object."}])
        )

    return GraphQLParams(
        query=data.get("query") or None,
        variables=variables,
        operation_name=data.get("operationName") or None,
    )


# =============================================================================
# Stages
# =============================================================================


class TenantContextStage(Stage):
    """Stage 1: decode the tenant context from invocation secrets."""

    @property
    def name(self) -> str:
        return "tenant_context"

    async def process(self, ctx: PipelineContext) -> None:
        ctx.tenant_context = decode_tenant_context(
            ctx.invocation.secrets.get(USER_CONTEXT_SECRET)
        )


class SchemaStage(Stage):
    """Stage 2: resolve the process schema."""

    def __init__(self, resolver: SchemaResolver):
        self._resolver = resolver

    @property
    def name(self) -> str:
        return "schema"

    async def process(self, ctx: PipelineContext) -> None:
        ctx.schema = await self._resolver.resolve(ctx.tenant_context)


class ProxyStage(Stage):
    """Stage 3: start the engine agent if needed and route through it."""

    def __init__(self, manager: ProxyAgentManager):
        self._manager = manager

    @property
    def name(self) -> str:
        return "proxy"

    async def process(self, ctx: PipelineContext) -> None:
        agent = self._manager.ensure_started(ctx.tenant_context, ctx.invocation.url)
        if agent is not None:
            ctx.agent = agent
            ctx.routed = agent.route(ctx)


class BodyStage(Stage):
    """Stage 4: read the GraphQL request parameters."""

    @property
    def name(self) -> str:
        return "body"

    async def process(self, ctx: PipelineContext) -> None:
        ctx.params = parse_params(ctx.request)


class TraceStartStage(Stage):
    """Stage 5: attach a fresh trace collector to the request."""

    @property
    def name(self) -> str:
        return "trace_start"

    async def process(self, ctx: PipelineContext) -> None:
        ctx.collector = TracingCollector()
        ctx.collector.start()


class ExecuteStage(Stage):
    """Stage 6: execute the operation against the resolved schema."""

    def __init__(self, assembler: ContextAssembler):
        self._assembler = assembler

    @property
    def name(self) -> str:
        return "execute"

    async def process(self, ctx: PipelineContext) -> None:
        params = ctx.params
        collector = ctx.collector

        if params is None or not params.query:
            raise PipelineExit(
                PadResponse.from_errors(400, [{"message": "Must provide query string."}])
            )

        try:
            with collector.phase("parsing"):
                document = parse(params.query)
        except GraphQLError as e:
            raise PipelineExit(PadResponse.from_errors(400, [e.formatted]))

        with collector.phase("validation"):
            validation_errors = validate(ctx.schema, document)
        if validation_errors:
            raise PipelineExit(
                PadResponse.from_errors(400, [e.formatted for e in validation_errors])
            )

        if ctx.request.method == "GET":
            operation = get_operation_ast(document, params.operation_name)
            if operation is not None and operation.operation != OperationType.QUERY:
                raise PipelineExit(
                    PadResponse.from_errors(
                        405,
                        [{
                            "message": f"Can only perform a {operation.operation.value} "
                            "operation from a POST request."
                        }],
                        headers={"allow": "POST"},
                    )
                )

        try:
            context_value, root_value = await self._assembler.assemble(
                ctx.headers, ctx.tenant_context
            )
        except Exception as e:
            logger.error(f"Pad context/root assembly failed: {e}", exc_info=True)
            raise PipelineExit(
                PadResponse.from_errors(500, [{"message": f"{type(e).__name__}: {e}"}])
            )

        result = execute(
            ctx.schema,
            document,
            root_value=root_value,
            context_value=context_value,
            variable_values=params.variables,
            operation_name=params.operation_name,
            middleware=[collector],
        )
        if not isinstance(result, ExecutionResult):
            result = await result

        ctx.payload = {"data": result.data}
        if result.errors:
            ctx.payload["errors"] = [error.formatted for error in result.errors]
        if result.extensions:
            ctx.payload["extensions"] = dict(result.extensions)


class TraceEndStage(Stage):
    """Stage 7: finalize the trace and merge it into `extensions`."""

    @property
    def name(self) -> str:
        return "trace_end"

    async def process(self, ctx: PipelineContext) -> None:
        ctx.collector.end()
        key, payload = ctx.collector.format()
        extensions = ctx.payload.setdefault("extensions", {})
        extensions[key] = payload


class EmitStage(Stage):
    """Stage 8: build the response and report it to the agent."""

    @property
    def name(self) -> str:
        return "emit"

    async def process(self, ctx: PipelineContext) -> None:
        ctx.response = PadResponse(status_code=ctx.status_code, body=ctx.payload)
        if ctx.agent is not None and ctx.routed:
            ctx.agent.record(TraceReport.from_context(ctx, ctx.status_code))


# =============================================================================
# Factory
# =============================================================================


def build_request_pipeline(
    *,
    resolver: SchemaResolver,
    proxy_manager: ProxyAgentManager,
    assembler: ContextAssembler,
    name: str = "",
    metrics: PipelineMetrics | None = None,
) -> Pipeline:
    """Build the request pipeline for a loaded pad."""
    return (
        PipelineBuilder(name=name, metrics=metrics)
        .add(TenantContextStage())
        .add(SchemaStage(resolver))
        .add(ProxyStage(proxy_manager))
        .add(BodyStage())
        .add(TraceStartStage())
        .add(ExecuteStage(assembler))
        .add(TraceEndStage())
        .add(EmitStage())
        .build()
    )
