"""
Schema Resolver.

Produces the GraphQL schema a pad serves.

Resolution:
    - Static pads (`schema` export) return the schema directly.
    - Lazy pads (`schemaFunction` export) call the function with the
      first request's tenant context and await the result if needed.

Memoization:
    The resolved schema is cached on ProcessState for the life of the
    process. Later calls return the cached value without calling
    `schemaFunction` again, even under a different tenant context.
    Concurrent first requests share one in-flight task so the function
    runs once. A failed resolution is not cached; the next request
    tries again.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any

from graphql import GraphQLSchema, validate_schema

from padrun.errors import InvalidSchemaFault, PadFault, SchemaResolutionFault
from padrun.runtime.exports import PadModule
from padrun.runtime.state import ProcessState

logger = logging.getLogger(__name__)


class SchemaResolver:
    """
    Resolves and memoizes the pad schema.

    Example:
        resolver = SchemaResolver(pad, state)
        schema = await resolver.resolve({"API_TOKEN": "..."})
    """

    def __init__(self, pad: PadModule, state: ProcessState):
        self._pad = pad
        self._state = state
        self._calls = 0

    @property
    def calls(self) -> int:
        """Number of times the pad's schema function was invoked."""
        return self._calls

    async def resolve(self, tenant_context: dict[str, str]) -> GraphQLSchema:
        """
        Return the process schema, resolving it on first use.

        Args:
            tenant_context: The current invocation's tenant context

        Returns:
            The memoized GraphQLSchema

        Raises:
            SchemaResolutionFault: schemaFunction raised
            InvalidSchemaFault: the value is not a valid GraphQLSchema
        """
        if self._state.schema is not None:
            return self._state.schema

        task = self._state.schema_task
        if task is None:
            task = asyncio.ensure_future(self._resolve_once(dict(tenant_context)))
            self._state.schema_task = task

        try:
            schema = await asyncio.shield(task)
        except PadFault:
            if self._state.schema_task is task:
                self._state.schema_task = None
            raise

        if self._state.schema is None:
            self._state.schema = schema
            logger.info(f"[resolver] Schema resolved for pad '{self._pad.name}'")
        return self._state.schema

    async def _resolve_once(self, tenant_context: dict[str, str]) -> GraphQLSchema:
        if self._pad.schema is not None:
            value: Any = self._pad.schema
        else:
            self._calls += 1
            try:
                value = self._pad.schema_function(tenant_context)
                if inspect.isawaitable(value):
                    value = await value
            except Exception as e:
                logger.error(
                    f"[resolver] schemaFunction failed for pad '{self._pad.name}': {e}",
                    exc_info=True,
                )
                raise SchemaResolutionFault(
                    f"schemaFunction failed: {type(e).__name__}: {e}",
                    cause=e,
                ) from e

        return _check_schema(value)


def _check_schema(value: Any) -> GraphQLSchema:
    """Ensure a resolved value is a usable GraphQL schema."""
    if not isinstance(value, GraphQLSchema):
        raise InvalidSchemaFault(
            f"Expected a GraphQLSchema, got {type(value).__name__}"
        )

    errors = validate_schema(value)
    if errors:
        raise InvalidSchemaFault(
            "Invalid schema: " + "; ".join(error.message for error in errors)
        )
    return value
