"""
padrun - a runtime for user-authored GraphQL pads.

A pad is a Python module that exports a GraphQL schema (or a function
producing one) and, optionally, context and root value builders. padrun
loads the pad once per warm process, validates its exports, and answers
every invocation through a staged request pipeline:

- **Load Guard**: Evaluation or export errors become a terminal fault
  answered on every request
- **Schema Resolution**: Static or lazily built, memoized per process
- **Context Assembly**: Per-request context and root value
- **Tracing**: Apollo tracing data attached to every response
- **Proxy Agent**: Optional per-process engine agent, started on demand

Quick Start:
    >>> from padrun import PadHandler, PadRequest, Invocation
    >>>
    >>> handler = PadHandler.from_source(code)
    >>> request = PadRequest.graphql("{ hello }")
    >>> response = await handler.handle(Invocation(request=request, secrets=secrets))
"""

__version__ = "0.1.0"

# Core exports for convenient imports
from padrun.errors import LoadFault, PadFault, RequestFault
from padrun.handler import PadHandler
from padrun.pipeline.context import Invocation, PadRequest, PadResponse

__all__ = [
    # Version info
    "__version__",
    # Entry point
    "PadHandler",
    "Invocation",
    "PadRequest",
    "PadResponse",
    # Faults
    "PadFault",
    "LoadFault",
    "RequestFault",
]
