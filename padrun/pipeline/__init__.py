"""
padrun Request Pipeline

Every invocation flows through the same ordered stages:

    tenant_context -> schema -> proxy -> body -> trace_start
        -> execute -> trace_end -> emit

A stage either mutates the PipelineContext, exits early with a
response (PipelineExit), or raises a PadFault that the executor turns
into an error response.
"""

from .context import (
    GraphQLParams,
    Invocation,
    PadRequest,
    PadResponse,
    PipelineContext,
    PipelineResult,
)
from .executor import Pipeline, PipelineBuilder
from .observability import (
    JSONLogger,
    PipelineLogger,
    PipelineMetrics,
    configure_logging,
    get_metrics,
    reset_metrics,
)
from .stage import PipelineExit, Stage
from .stages import (
    BodyStage,
    EmitStage,
    ExecuteStage,
    ProxyStage,
    SchemaStage,
    TenantContextStage,
    TraceEndStage,
    TraceStartStage,
    build_request_pipeline,
    decode_tenant_context,
    parse_params,
)

__all__ = [
    # Context
    "Invocation",
    "PadRequest",
    "PadResponse",
    "GraphQLParams",
    "PipelineContext",
    "PipelineResult",
    # Execution
    "Stage",
    "PipelineExit",
    "Pipeline",
    "PipelineBuilder",
    # Stages
    "TenantContextStage",
    "SchemaStage",
    "ProxyStage",
    "BodyStage",
    "TraceStartStage",
    "ExecuteStage",
    "TraceEndStage",
    "EmitStage",
    "build_request_pipeline",
    "decode_tenant_context",
    "parse_params",
    # Observability
    "JSONLogger",
    "PipelineLogger",
    "PipelineMetrics",
    "configure_logging",
    "get_metrics",
    "reset_metrics",
]
