"""
Stage abstraction for the padrun request pipeline.

Stages are single-responsibility steps that read and fill the
PipelineContext. They run in a fixed order; the executor owns timing,
fault conversion and early exit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .context import PadResponse, PipelineContext


class PipelineExit(Exception):
    """
    Raised to end the pipeline early with a finished response.

    Used for GraphQL request errors that are answered before execution,
    for example a missing query or a document that fails validation.

    Example:
        if not params.query:
            raise PipelineExit(PadResponse.from_errors(400, [...]))
    """

    def __init__(self, response: "PadResponse"):
        self.response = response
        super().__init__(f"Pipeline exit with status {response.status_code}")


class Stage(ABC):
    """
    Base class for all request pipeline stages.

    Design Principles:
    - One concern per stage
    - Communicate only through the context
    - Raise PadFault subclasses for faults, PipelineExit for early answers

    Subclasses must implement:
    - name: Unique stage identifier
    - process(): The stage logic
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this stage, used in logging and metrics."""
        ...

    @abstractmethod
    async def process(self, ctx: PipelineContext) -> None:
        """
        Run the stage against the request context.

        Raises:
            PadFault: The request must be answered with a fault response
            PipelineExit: The request is answered early
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
