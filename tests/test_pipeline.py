"""
Tests for padrun pipeline execution and request parsing.

Tests Pipeline, PipelineBuilder, and stage helpers.
"""
import json

import pytest

from padrun.errors import InternalFault, MalformedBodyFault, MalformedSecretsFault
from padrun.pipeline import (
    Invocation,
    PadRequest,
    PadResponse,
    Pipeline,
    PipelineBuilder,
    PipelineContext,
    PipelineExit,
    PipelineMetrics,
    Stage,
    decode_tenant_context,
    parse_params,
)
from padrun.proxy import ORIGIN_URL_SECRET


def _ctx() -> PipelineContext:
    return PipelineContext(invocation=Invocation(request=PadRequest()))


class RespondStage(Stage):
    """Test stage that sets a response."""

    @property
    def name(self) -> str:
        return "respond"

    async def process(self, ctx: PipelineContext) -> None:
        ctx.response = PadResponse(body={"data": {"ok": True}})


class ExitStage(Stage):
    """Test stage that exits early."""

    @property
    def name(self) -> str:
        return "exit"

    async def process(self, ctx: PipelineContext) -> None:
        raise PipelineExit(PadResponse.from_errors(400, [{"message": "stop"}]))


class FaultStage(Stage):
    """Test stage that raises a request fault."""

    @property
    def name(self) -> str:
        return "fault"

    async def process(self, ctx: PipelineContext) -> None:
        raise MalformedSecretsFault("bad secrets")


class ErrorStage(Stage):
    """Test stage that raises an unexpected error."""

    @property
    def name(self) -> str:
        return "error"

    async def process(self, ctx: PipelineContext) -> None:
        raise ValueError("Test error")


class TestPipeline:
    """Tests for Pipeline execution."""

    @pytest.mark.asyncio
    async def test_pipeline_executes_stages_in_order(self):
        """Pipeline should execute stages sequentially."""
        execution_order = []

        class OrderTrackingStage(Stage):
            def __init__(self, name: str):
                self._name = name

            @property
            def name(self) -> str:
                return self._name

            async def process(self, ctx: PipelineContext) -> None:
                execution_order.append(self._name)

        pipeline = Pipeline([
            OrderTrackingStage("first"),
            OrderTrackingStage("second"),
            OrderTrackingStage("third"),
            RespondStage(),
        ])

        result = await pipeline.execute(_ctx())

        assert execution_order == ["first", "second", "third"]
        assert result.success

    @pytest.mark.asyncio
    async def test_records_stage_timings(self):
        pipeline = Pipeline([RespondStage()])

        result = await pipeline.execute(_ctx())

        assert "respond" in result.context.stage_timings

    @pytest.mark.asyncio
    async def test_early_exit(self):
        after = []

        class AfterStage(Stage):
            @property
            def name(self) -> str:
                return "after"

            async def process(self, ctx: PipelineContext) -> None:
                after.append(True)

        pipeline = Pipeline([ExitStage(), AfterStage()])

        result = await pipeline.execute(_ctx())

        assert result.success
        assert result.response.status_code == 400
        assert result.response.body == {"errors": [{"message": "stop"}]}
        assert after == []

    @pytest.mark.asyncio
    async def test_fault_becomes_response(self):
        pipeline = Pipeline([FaultStage(), RespondStage()])

        result = await pipeline.execute(_ctx())

        assert not result.success
        assert isinstance(result.fault, MalformedSecretsFault)
        assert result.response.status_code == 400
        assert result.response.body["error"]["name"] == "MalformedSecretsFault"
        assert result.response.is_fault

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_internal_fault(self):
        pipeline = Pipeline([ErrorStage()])

        result = await pipeline.execute(_ctx())

        assert isinstance(result.fault, InternalFault)
        assert result.response.status_code == 500
        assert "ValueError" in result.response.body["error"]["message"]

    @pytest.mark.asyncio
    async def test_no_response_is_internal_fault(self):
        class NoopStage(Stage):
            @property
            def name(self) -> str:
                return "noop"

            async def process(self, ctx: PipelineContext) -> None:
                return None

        result = await Pipeline([NoopStage()]).execute(_ctx())

        assert isinstance(result.fault, InternalFault)

    @pytest.mark.asyncio
    async def test_metrics_recorded(self):
        metrics = PipelineMetrics()
        pipeline = Pipeline([FaultStage()], metrics=metrics)

        await pipeline.execute(_ctx())

        assert metrics.requests_total == 1
        assert metrics.requests_faulted == 1
        assert metrics.faults == {"MalformedSecretsFault": 1}
        assert "fault" in metrics.stage_durations_ms

    def test_empty_pipeline_rejected(self):
        with pytest.raises(ValueError):
            Pipeline([])


class TestPipelineBuilder:
    """Tests for PipelineBuilder."""

    def test_builder_creates_pipeline(self):
        pipeline = PipelineBuilder(name="p").add(ExitStage()).add(RespondStage()).build()

        assert isinstance(pipeline, Pipeline)
        assert pipeline.stage_names == ["exit", "respond"]
        assert pipeline.name == "p"


class TestInvocation:
    """Tests for Invocation."""

    def test_url_from_secrets(self):
        invocation = Invocation(
            request=PadRequest(url="http://internal/"),
            secrets={ORIGIN_URL_SECRET: "https://pads.example.com/p/1"},
        )

        assert invocation.url == "https://pads.example.com/p/1"

    def test_url_falls_back_to_request(self):
        invocation = Invocation(request=PadRequest(url="http://internal/"))

        assert invocation.url == "http://internal/"


class TestDecodeTenantContext:
    """Tests for decode_tenant_context."""

    def test_decodes_entries(self):
        payload = json.dumps([{"key": "A", "value": "1"}, {"key": "B", "value": "2"}])

        assert decode_tenant_context(payload) == {"A": "1", "B": "2"}

    def test_empty_list(self):
        assert decode_tenant_context("[]") == {}

    def test_later_entries_win(self):
        payload = json.dumps([{"key": "A", "value": "1"}, {"key": "A", "value": "2"}])

        assert decode_tenant_context(payload) == {"A": "2"}

    @pytest.mark.parametrize("payload", [None, "not json", '{"key": "A"}', '[{"value": 1}]', "[1]"])
    def test_malformed(self, payload):
        with pytest.raises(MalformedSecretsFault):
            decode_tenant_context(payload)


class TestParseParams:
    """Tests for parse_params."""

    def test_json_body(self):
        request = PadRequest.graphql("{ hello }", variables={"a": 1}, operation_name="Op")

        params = parse_params(request)

        assert params.query == "{ hello }"
        assert params.variables == {"a": 1}
        assert params.operation_name == "Op"

    def test_query_string(self):
        request = PadRequest(
            method="GET",
            query_params={"query": "{ hello }", "variables": '{"a": 1}'},
        )

        params = parse_params(request)

        assert params.query == "{ hello }"
        assert params.variables == {"a": 1}

    def test_body_overrides_query_string(self):
        request = PadRequest.graphql("{ fromBody }")
        request.query_params = {"query": "{ fromQuery }"}

        assert parse_params(request).query == "{ fromBody }"

    def test_graphql_content_type(self):
        request = PadRequest(
            headers={"Content-Type": "application/graphql"},
            body=b"{ hello }",
        )

        assert parse_params(request).query == "{ hello }"

    def test_empty_request(self):
        params = parse_params(PadRequest(method="GET"))

        assert params.query is None
        assert params.variables is None

    def test_invalid_json_body(self):
        request = PadRequest(headers={"content-type": "application/json"}, body=b"{nope")

        with pytest.raises(MalformedBodyFault):
            parse_params(request)

    def test_non_object_body(self):
        request = PadRequest(headers={"content-type": "application/json"}, body=b"[1, 2]")

        with pytest.raises(MalformedBodyFault):
            parse_params(request)

    def test_invalid_variables(self):
        request = PadRequest(method="GET", query_params={"query": "{ a }", "variables": "{nope"})

        with pytest.raises(PipelineExit) as exc_info:
            parse_params(request)

        assert exc_info.value.response.status_code == 400

    def test_non_object_variables(self):
        request = PadRequest.graphql("{ a }", variables=[1, 2])

        with pytest.raises(PipelineExit):
            parse_params(request)

    @pytest.mark.parametrize(
        "body, key",
        [
            (b'{"query": 5}', "query"),
            (b'{"query": ["{ a }"]}', "query"),
            (b'{"query": "{ a }", "operationName": 1}', "operationName"),
        ],
    )
    def test_non_string_query_fields(self, body, key):
        request = PadRequest(headers={"content-type": "application/json"}, body=body)

        with pytest.raises(PipelineExit) as exc_info:
            parse_params(request)

        response = exc_info.value.response
        assert response.status_code == 400
        assert response.body == {"errors": [{"message": f"{key} must be a string."}]}
