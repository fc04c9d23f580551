"""
Pipeline Executor for padrun.

The Pipeline runs request stages in a fixed order against one
PipelineContext and always produces a PadResponse.

Execution Model:
- Stages run sequentially
- PipelineExit ends the run with the response it carries
- PadFault ends the run with a fault response
- Any other exception becomes an InternalFault (500)
"""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from padrun.errors import InternalFault, PadFault

from .context import PadResponse, PipelineContext, PipelineResult
from .observability import PipelineLogger, PipelineMetrics, get_metrics
from .stage import PipelineExit

if TYPE_CHECKING:
    from .stage import Stage

logger = logging.getLogger(__name__)


class Pipeline:
    """
    Pipeline orchestrates sequential stage execution.

    Example:
        pipeline = Pipeline([
            TenantContextStage(),
            SchemaStage(resolver),
            ProxyStage(manager),
            ...
        ])

        result = await pipeline.execute(PipelineContext(invocation=invocation))
    """

    def __init__(
        self,
        stages: list["Stage"],
        *,
        name: str = "",
        metrics: PipelineMetrics | None = None,
    ):
        """
        Initialize pipeline with ordered list of stages.

        Args:
            stages: Stages in execution order
            name: Pad name, used in logs
            metrics: Metrics sink (defaults to the global instance)
        """
        if not stages:
            raise ValueError("Pipeline must have at least one stage")
        self.stages = stages
        self.name = name
        self._metrics = metrics

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics if self._metrics is not None else get_metrics()

    @property
    def stage_names(self) -> list[str]:
        """Get names of all stages in order."""
        return [s.name for s in self.stages]

    async def execute(self, ctx: PipelineContext) -> PipelineResult:
        """
        Run all stages against the context.

        Args:
            ctx: Request context

        Returns:
            PipelineResult with the response and any fault
        """
        log = PipelineLogger(request_id=str(ctx.execution_id), pad_name=self.name)
        log.request_started(method=ctx.request.method, stages=self.stage_names)

        fault: PadFault | None = None

        for stage in self.stages:
            start_time = time.perf_counter()
            try:
                await stage.process(ctx)
            except PipelineExit as exit_signal:
                log.early_exit(stage.name, exit_signal.response.status_code)
                ctx.response = exit_signal.response
                break
            except PadFault as e:
                log.stage_fault(stage.name, e.name, e.message)
                fault = e
                break
            except Exception as e:
                logger.error(f"Stage '{stage.name}' error: {e}", exc_info=True)
                fault = InternalFault.from_exception(e)
                break
            finally:
                duration_ms = (time.perf_counter() - start_time) * 1000
                ctx.record_timing(stage.name, duration_ms)
                self.metrics.record_stage(stage.name, duration_ms)
                log.stage_completed(stage.name, duration_ms)

        if fault is None and ctx.response is None:
            fault = InternalFault("Pipeline finished without a response")

        if fault is not None:
            ctx.response = PadResponse.from_fault(fault)
            self.metrics.record_fault(fault.name)

        result = PipelineResult(
            context=ctx,
            response=ctx.response,
            success=fault is None,
            fault=fault,
        )

        self.metrics.record_request(result.success, ctx.elapsed_ms)
        log.request_completed(
            status_code=result.response.status_code,
            duration_ms=ctx.elapsed_ms,
            fault=fault.name if fault else None,
        )
        return result

    def __repr__(self) -> str:
        return f"Pipeline(stages={self.stage_names})"


class PipelineBuilder:
    """
    Builder for constructing pipelines with fluent API.

    Example:
        pipeline = (
            PipelineBuilder(name="my_pad")
            .add(TenantContextStage())
            .add(SchemaStage(resolver))
            .build()
        )
    """

    def __init__(self, *, name: str = "", metrics: PipelineMetrics | None = None) -> None:
        self._stages: list["Stage"] = []
        self._name = name
        self._metrics = metrics

    def add(self, stage: "Stage") -> "PipelineBuilder":
        """Add a stage to the pipeline."""
        self._stages.append(stage)
        return self

    def build(self) -> Pipeline:
        """Build and return the pipeline."""
        return Pipeline(self._stages, name=self._name, metrics=self._metrics)
