"""
Context and Root Assembler.

Builds the GraphQL execution context and root value for one request
from the request headers and the tenant context.

Defaults:
    context -> {"headers": headers, **tenant_context}
    root    -> rootFunction(headers, tenant) if exported,
               else rootValue if exported,
               else {}
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

from padrun.runtime.exports import PadModule


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def default_context(headers: dict[str, str], tenant_context: dict[str, str]) -> dict[str, Any]:
    """Context used when the pad exports no `context` function."""
    return {"headers": headers, **tenant_context}


class ContextAssembler:
    """Derives per-request context and root values for a pad."""

    def __init__(self, pad: PadModule):
        self._pad = pad

    async def assemble_context(
        self,
        headers: dict[str, str],
        tenant_context: dict[str, str],
    ) -> Any:
        if self._pad.context is None:
            return default_context(headers, tenant_context)
        return await _maybe_await(self._pad.context(headers, tenant_context))

    async def assemble_root(
        self,
        headers: dict[str, str],
        tenant_context: dict[str, str],
    ) -> Any:
        if self._pad.root_function is not None:
            return await _maybe_await(self._pad.root_function(headers, tenant_context))
        if self._pad.root_value is not None:
            return self._pad.root_value
        return {}

    async def assemble(
        self,
        headers: dict[str, str],
        tenant_context: dict[str, str],
    ) -> tuple[Any, Any]:
        """Assemble context and root concurrently."""
        context_value, root_value = await asyncio.gather(
            self.assemble_context(headers, tenant_context),
            self.assemble_root(headers, tenant_context),
        )
        return context_value, root_value
