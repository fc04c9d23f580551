"""
Pad Handler.

The single entry point the hosting platform calls for every invocation.

State machine:
    LOADING -> READY     pad evaluated, exports valid, pipeline built
    LOADING -> FAULTED   pad raised or exports invalid (terminal)

Loading happens in the constructor, before the handler is installed
anywhere, so no request can observe a half-loaded pad. In FAULTED state
every invocation is answered with the captured fault and no schema work
is attempted.

Usage:
    handler = PadHandler.from_source(code)
    response = await handler.handle(Invocation(request=..., secrets=...))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from padrun.errors import LoadFault
from padrun.pipeline.context import Invocation, PadResponse, PipelineContext
from padrun.pipeline.executor import Pipeline
from padrun.pipeline.observability import PipelineMetrics, get_metrics
from padrun.pipeline.stages import build_request_pipeline
from padrun.proxy.manager import ProxyAgentManager
from padrun.runtime.assembler import ContextAssembler
from padrun.runtime.loaders import (
    Faulted,
    Loaded,
    LoadResult,
    load_pad_exports,
    load_pad_file,
    load_pad_module,
    load_pad_source,
)
from padrun.runtime.resolver import SchemaResolver
from padrun.runtime.state import ProcessState

logger = logging.getLogger(__name__)


class PadHandler:
    """
    Serves one pad for the life of a warm process.

    Process-wide state (schema cache, proxy agent) lives on `state`.
    """

    def __init__(
        self,
        load_result: LoadResult,
        *,
        state: ProcessState | None = None,
        proxy_options: dict[str, Any] | None = None,
        metrics: PipelineMetrics | None = None,
    ):
        """
        Args:
            load_result: Outcome of loading the pad
            state: Process state (a fresh one by default)
            proxy_options: Keyword options for ProxyAgentManager
            metrics: Metrics sink (defaults to the global instance)
        """
        self.load_result = load_result
        self.state = state or ProcessState()
        self._metrics = metrics
        self.proxy_manager = ProxyAgentManager(self.state, **(proxy_options or {}))
        self.resolver: SchemaResolver | None = None
        self._pipeline: Pipeline | None = None

        if isinstance(load_result, Loaded):
            pad = load_result.pad
            self.resolver = SchemaResolver(pad, self.state)
            self._pipeline = build_request_pipeline(
                resolver=self.resolver,
                proxy_manager=self.proxy_manager,
                assembler=ContextAssembler(pad),
                name=pad.name,
                metrics=metrics,
            )
        else:
            self.metrics.record_fault(load_result.fault.name, load=True)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_source(cls, source: str, **kwargs: Any) -> "PadHandler":
        return cls(load_pad_source(source), **kwargs)

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> "PadHandler":
        return cls(load_pad_file(path), **kwargs)

    @classmethod
    def from_module(cls, dotted_path: str, **kwargs: Any) -> "PadHandler":
        return cls(load_pad_module(dotted_path), **kwargs)

    @classmethod
    def from_exports(cls, exports: dict[str, Any], **kwargs: Any) -> "PadHandler":
        return cls(load_pad_exports(exports), **kwargs)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics if self._metrics is not None else get_metrics()

    @property
    def ready(self) -> bool:
        return self._pipeline is not None

    @property
    def fault(self) -> LoadFault | None:
        if isinstance(self.load_result, Faulted):
            return self.load_result.fault
        return None

    @property
    def pipeline(self) -> Pipeline | None:
        return self._pipeline

    def status(self) -> dict[str, Any]:
        """Summary of the handler state for health reporting."""
        start_error = self.proxy_manager.start_error
        return {
            "state": "ready" if self.ready else "faulted",
            "pad": self.load_result.pad.name if self.ready else None,
            "fault": self.fault.to_dict() if self.fault else None,
            "process": self.state.to_dict(),
            "agent_start_error": str(start_error) if start_error else None,
        }

    # -------------------------------------------------------------------------
    # Handling
    # -------------------------------------------------------------------------

    async def handle(self, invocation: Invocation) -> PadResponse:
        """
        Answer one invocation.

        Never raises: load faults, request faults and unexpected errors
        all come back as well-formed responses.
        """
        if self._pipeline is None:
            fault = self.fault
            logger.warning(f"[handler] Pad is faulted, answering with {fault.name}")
            self.metrics.record_fault(fault.name)
            self.metrics.record_request(False, 0.0)
            return PadResponse.from_fault(fault)

        result = await self._pipeline.execute(PipelineContext(invocation=invocation))
        return result.response

    async def shutdown(self) -> None:
        """Tear down process state on host shutdown."""
        await self.proxy_manager.wait_started()
        await self.state.teardown()
