"""
padrun Runtime

Pad loading, export validation, schema resolution and per-request
context assembly. Everything here is independent of the request
pipeline and the HTTP host.
"""

from .assembler import ContextAssembler, default_context
from .exports import ALLOWED_EXPORTS, EXPORT_FIELDS, PadModule, collect_exports, validate_exports
from .loaders import (
    Faulted,
    Loaded,
    LoadResult,
    evaluate_source,
    guard_load,
    load_pad_exports,
    load_pad_file,
    load_pad_module,
    load_pad_source,
)
from .resolver import SchemaResolver
from .state import ProcessState

__all__ = [
    # Exports
    "ALLOWED_EXPORTS",
    "EXPORT_FIELDS",
    "PadModule",
    "collect_exports",
    "validate_exports",
    # Loading
    "Loaded",
    "Faulted",
    "LoadResult",
    "guard_load",
    "evaluate_source",
    "load_pad_source",
    "load_pad_file",
    "load_pad_module",
    "load_pad_exports",
    # Per-process and per-request
    "ProcessState",
    "SchemaResolver",
    "ContextAssembler",
    "default_context",
]
