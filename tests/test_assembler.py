"""
Tests for context and root value assembly.
"""
import asyncio

import pytest

from padrun.runtime.assembler import ContextAssembler, default_context
from padrun.runtime.exports import validate_exports

HEADERS = {"authorization": "Bearer x", "content-type": "application/json"}


class TestDefaultContext:
    """Tests for the context used without a `context` export."""

    def test_headers_and_tenant(self):
        ctx = default_context(HEADERS, {"API_TOKEN": "tok"})

        assert ctx == {"headers": HEADERS, "API_TOKEN": "tok"}

    def test_tenant_keys_override(self):
        ctx = default_context(HEADERS, {"headers": "from-tenant"})

        assert ctx == {"headers": "from-tenant"}

    @pytest.mark.asyncio
    async def test_used_when_not_exported(self, hello_schema, tenant):
        assembler = ContextAssembler(validate_exports({"schema": hello_schema}))

        ctx = await assembler.assemble_context(HEADERS, tenant)

        assert ctx == {"headers": HEADERS, **tenant}


class TestContextExport:
    """Tests for pads exporting `context`."""

    @pytest.mark.asyncio
    async def test_sync_context(self, hello_schema, tenant):
        def context(headers, secrets):
            return {"token": secrets["API_TOKEN"], "auth": headers["authorization"]}

        assembler = ContextAssembler(validate_exports({"schema": hello_schema, "context": context}))

        ctx = await assembler.assemble_context(HEADERS, tenant)

        assert ctx == {"token": "tok-123", "auth": "Bearer x"}

    @pytest.mark.asyncio
    async def test_async_context(self, hello_schema, tenant):
        async def context(headers, secrets):
            await asyncio.sleep(0)
            return {"region": secrets["REGION"]}

        assembler = ContextAssembler(validate_exports({"schema": hello_schema, "context": context}))

        ctx = await assembler.assemble_context(HEADERS, tenant)

        assert ctx == {"region": "eu"}

    @pytest.mark.asyncio
    async def test_context_error_propagates(self, hello_schema):
        def context(headers, secrets):
            raise ValueError("no context")

        assembler = ContextAssembler(validate_exports({"schema": hello_schema, "context": context}))

        with pytest.raises(ValueError):
            await assembler.assemble_context(HEADERS, {})


class TestRoot:
    """Tests for root value selection."""

    @pytest.mark.asyncio
    async def test_empty_root_by_default(self, hello_schema):
        assembler = ContextAssembler(validate_exports({"schema": hello_schema}))

        assert await assembler.assemble_root(HEADERS, {}) == {}

    @pytest.mark.asyncio
    async def test_root_value(self, hello_schema):
        root = {"hello": "from root"}
        assembler = ContextAssembler(validate_exports({"schema": hello_schema, "rootValue": root}))

        assert await assembler.assemble_root(HEADERS, {}) is root

    @pytest.mark.asyncio
    async def test_root_function_wins_over_root_value(self, hello_schema, tenant):
        def root_function(headers, secrets):
            return {"region": secrets["REGION"]}

        assembler = ContextAssembler(validate_exports({
            "schema": hello_schema,
            "rootValue": {"region": "static"},
            "rootFunction": root_function,
        }))

        assert await assembler.assemble_root(HEADERS, tenant) == {"region": "eu"}

    @pytest.mark.asyncio
    async def test_async_root_function(self, hello_schema):
        async def root_function(headers, secrets):
            return {"async": True}

        assembler = ContextAssembler(
            validate_exports({"schema": hello_schema, "rootFunction": root_function})
        )

        assert await assembler.assemble_root(HEADERS, {}) == {"async": True}

    @pytest.mark.asyncio
    async def test_assemble_returns_both(self, hello_schema, tenant):
        assembler = ContextAssembler(
            validate_exports({"schema": hello_schema, "rootValue": {"r": 1}})
        )

        context_value, root_value = await assembler.assemble(HEADERS, tenant)

        assert context_value["headers"] == HEADERS
        assert root_value == {"r": 1}
