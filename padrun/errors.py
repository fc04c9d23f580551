"""
Fault taxonomy for padrun.

Faults are exceptions raised where a problem is detected and converted
into a well-formed error response by the load guard or the pipeline
executor. Callers always receive a response, never a dropped connection.

Two families:
    - Load faults: raised while the pad module is evaluated or validated.
      Terminal for the process; every request receives the same fault.
    - Request faults: isolated to a single invocation. They never touch
      the process-wide schema cache or proxy agent.

GraphQL execution errors are not faults. They stay inside the GraphQL
response envelope.
"""

from __future__ import annotations

from typing import Any


# =============================================================================
# Base
# =============================================================================


class PadFault(Exception):
    """Base class for all padrun faults."""

    code: str = "pad_fault"
    status_code: int = 500

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault for the response body."""
        return {
            "name": self.name,
            "code": self.code,
            "message": self.message,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# =============================================================================
# Load Faults
# =============================================================================


class LoadFault(PadFault):
    """Raised while the pad module is being evaluated or validated."""

    code = "load_fault"


class UnknownExportFault(LoadFault):
    """The pad exports a name outside the allowed set."""

    code = "unknown_export"

    def __init__(self, export_name: str):
        super().__init__(f"Unknown export: {export_name}")
        self.export_name = export_name


class DuplicateExportFault(LoadFault):
    """The pad exports the same field under two spellings."""

    code = "duplicate_export"

    def __init__(self, field_name: str, spellings: list[str]):
        super().__init__(
            f"Export '{field_name}' is defined more than once: {', '.join(spellings)}"
        )
        self.field_name = field_name
        self.spellings = spellings


class MissingSchemaFault(LoadFault):
    """The pad exports neither `schema` nor `schemaFunction`."""

    code = "missing_schema"

    def __init__(self) -> None:
        super().__init__(
            "You need to export object with a field `schema` or a function "
            "`schemaFunction` to run a Pad."
        )


class PadEvaluationFault(LoadFault):
    """The pad raised while its module body was being evaluated."""

    code = "pad_evaluation"

    @classmethod
    def from_exception(cls, exc: BaseException) -> "PadEvaluationFault":
        return cls(f"{type(exc).__name__}: {exc}", cause=exc)


# =============================================================================
# Request Faults
# =============================================================================


class RequestFault(PadFault):
    """Fault isolated to one invocation."""

    code = "request_fault"
    status_code = 400


class MalformedSecretsFault(RequestFault):
    """The invocation secrets payload could not be decoded."""

    code = "malformed_secrets"


class MalformedBodyFault(RequestFault):
    """The request body is not valid JSON."""

    code = "malformed_body"


class SchemaResolutionFault(RequestFault):
    """`schemaFunction` raised while producing the schema."""

    code = "schema_resolution"
    status_code = 500


class InvalidSchemaFault(RequestFault):
    """The resolved schema is not a usable GraphQL schema."""

    code = "invalid_schema"
    status_code = 500


class InternalFault(RequestFault):
    """Unexpected error inside the request pipeline."""

    code = "internal_error"
    status_code = 500

    @classmethod
    def from_exception(cls, exc: BaseException) -> "InternalFault":
        return cls(f"{type(exc).__name__}: {exc}", cause=exc)


__all__ = [
    "PadFault",
    "LoadFault",
    "UnknownExportFault",
    "DuplicateExportFault",
    "MissingSchemaFault",
    "PadEvaluationFault",
    "RequestFault",
    "MalformedSecretsFault",
    "MalformedBodyFault",
    "SchemaResolutionFault",
    "InvalidSchemaFault",
    "InternalFault",
]
