"""
Tests for schema resolution and memoization.
"""
import asyncio

import pytest
from graphql import GraphQLSchema, build_schema

from padrun.errors import InvalidSchemaFault, SchemaResolutionFault
from padrun.runtime.exports import validate_exports
from padrun.runtime.resolver import SchemaResolver
from padrun.runtime.state import ProcessState


def tenant_schema(tenant):
    """Schema whose `tenant` field reports the tenant it was built for."""
    schema = build_schema("type Query { tenant: String }")
    schema.query_type.fields["tenant"].resolve = lambda root, info: tenant.get("TENANT")
    return schema


class TestStaticSchema:
    """Tests for pads exporting `schema`."""

    @pytest.mark.asyncio
    async def test_returns_exported_schema(self, hello_schema):
        state = ProcessState()
        resolver = SchemaResolver(validate_exports({"schema": hello_schema}), state)

        schema = await resolver.resolve({})

        assert schema is hello_schema
        assert state.schema is hello_schema
        assert resolver.calls == 0

    @pytest.mark.asyncio
    async def test_non_schema_value(self):
        resolver = SchemaResolver(validate_exports({"schema": "type Query"}), ProcessState())

        with pytest.raises(InvalidSchemaFault):
            await resolver.resolve({})

    @pytest.mark.asyncio
    async def test_invalid_schema(self):
        resolver = SchemaResolver(validate_exports({"schema": GraphQLSchema()}), ProcessState())

        with pytest.raises(InvalidSchemaFault) as exc_info:
            await resolver.resolve({})

        assert "Query root type" in exc_info.value.message


class TestSchemaFunction:
    """Tests for pads exporting `schemaFunction`."""

    @pytest.mark.asyncio
    async def test_first_tenant_wins(self):
        state = ProcessState()
        resolver = SchemaResolver(validate_exports({"schemaFunction": tenant_schema}), state)

        first = await resolver.resolve({"TENANT": "a"})
        second = await resolver.resolve({"TENANT": "b"})

        assert first is second
        assert resolver.calls == 1

    @pytest.mark.asyncio
    async def test_receives_tenant_context(self):
        received = []

        def schema_function(tenant):
            received.append(tenant)
            return tenant_schema(tenant)

        resolver = SchemaResolver(
            validate_exports({"schemaFunction": schema_function}), ProcessState()
        )
        await resolver.resolve({"TENANT": "a"})

        assert received == [{"TENANT": "a"}]

    @pytest.mark.asyncio
    async def test_async_schema_function(self):
        async def schema_function(tenant):
            await asyncio.sleep(0)
            return tenant_schema(tenant)

        resolver = SchemaResolver(
            validate_exports({"schemaFunction": schema_function}), ProcessState()
        )

        schema = await resolver.resolve({})

        assert isinstance(schema, GraphQLSchema)

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_share_one_call(self):
        calls = 0

        async def schema_function(tenant):
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return tenant_schema(tenant)

        resolver = SchemaResolver(
            validate_exports({"schemaFunction": schema_function}), ProcessState()
        )

        schemas = await asyncio.gather(*(resolver.resolve({"TENANT": str(i)}) for i in range(5)))

        assert calls == 1
        assert all(schema is schemas[0] for schema in schemas)

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        attempts = 0

        def schema_function(tenant):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("backend down")
            return tenant_schema(tenant)

        state = ProcessState()
        resolver = SchemaResolver(validate_exports({"schemaFunction": schema_function}), state)

        with pytest.raises(SchemaResolutionFault) as exc_info:
            await resolver.resolve({})

        assert "backend down" in exc_info.value.message
        assert state.schema is None
        assert state.schema_task is None

        schema = await resolver.resolve({})

        assert isinstance(schema, GraphQLSchema)
        assert resolver.calls == 2

    @pytest.mark.asyncio
    async def test_function_returning_garbage(self):
        resolver = SchemaResolver(
            validate_exports({"schemaFunction": lambda tenant: {"not": "a schema"}}),
            ProcessState(),
        )

        with pytest.raises(InvalidSchemaFault):
            await resolver.resolve({})
