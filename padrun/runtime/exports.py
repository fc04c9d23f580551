"""
Pad Export Validator.

Reads the export surface of an evaluated pad module and turns it into a
closed PadModule record.

Export Contract:
    A pad may export only these names:

        schema           GraphQLSchema
        schemaFunction   (tenant_context) -> schema | awaitable
        context          (headers, tenant_context) -> context | awaitable
        rootValue        any value
        rootFunction     (headers, tenant_context) -> root | awaitable
        default          ignored, tolerated for module-style pads

    `schema_function`, `root_value` and `root_function` are accepted as
    Python spellings of the camelCase names.

What counts as an export:
    - `__all__`, when the pad defines it
    - otherwise every public module-level name, except names bound by
      `import` / `from ... import` statements, `__future__` features, and
      modules, classes and functions defined in another module. Allowed
      export names always count, so `from .defs import schema` re-exports.

Usage:
    exports = collect_exports(module, source=code)
    pad = validate_exports(exports, name=module.__name__)
"""

from __future__ import annotations

import __future__
import ast
import inspect
from dataclasses import dataclass, fields
from types import ModuleType
from typing import Any, Callable, Iterator

from padrun.errors import DuplicateExportFault, MissingSchemaFault, UnknownExportFault

# Export name -> PadModule field
EXPORT_FIELDS: dict[str, str] = {
    "schema": "schema",
    "schemaFunction": "schema_function",
    "schema_function": "schema_function",
    "context": "context",
    "rootValue": "root_value",
    "root_value": "root_value",
    "rootFunction": "root_function",
    "root_function": "root_function",
    "default": "default",
}

ALLOWED_EXPORTS = frozenset(EXPORT_FIELDS)


@dataclass(frozen=True, slots=True)
class PadModule:
    """
    Validated export surface of a pad.

    Every member is optional. At least one of `schema` and
    `schema_function` is guaranteed to be set once validated.
    """

    schema: Any = None
    schema_function: Callable[..., Any] | None = None
    context: Callable[..., Any] | None = None
    root_value: Any = None
    root_function: Callable[..., Any] | None = None
    default: Any = None
    name: str = "pad"

    @property
    def is_lazy(self) -> bool:
        """True when the schema is produced by `schema_function`."""
        return self.schema is None and self.schema_function is not None

    def exported_fields(self) -> list[str]:
        """Names of the fields the pad actually exported."""
        return [
            f.name
            for f in fields(self)
            if f.name != "name" and getattr(self, f.name) is not None
        ]


_NESTED_SCOPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda)


def _import_nodes(node: ast.AST) -> Iterator[ast.Import | ast.ImportFrom]:
    for child in ast.iter_child_nodes(node):
        if isinstance(child, (ast.Import, ast.ImportFrom)):
            yield child
        elif not isinstance(child, _NESTED_SCOPES):
            yield from _import_nodes(child)


def imported_names(source: str) -> set[str]:
    """
    Names bound at module level by import statements in `source`.

    Imports inside functions and classes are ignored. Star imports bind
    no name that can be known here.
    """
    names: set[str] = set()
    for node in _import_nodes(ast.parse(source)):
        for alias in node.names:
            if alias.name == "*":
                continue
            if alias.asname:
                names.add(alias.asname)
            elif isinstance(node, ast.Import):
                names.add(alias.name.partition(".")[0])
            else:
                names.add(alias.name)
    return names


def _module_source(module: ModuleType) -> str | None:
    try:
        return inspect.getsource(module)
    except (OSError, TypeError):
        return None


def _is_foreign(value: Any, module_name: str) -> bool:
    """Check if value is an import rather than something the pad defined."""
    if inspect.ismodule(value) or isinstance(value, __future__._Feature):
        return True
    if inspect.isclass(value) or inspect.isroutine(value):
        return getattr(value, "__module__", module_name) != module_name
    return False


def collect_exports(module: ModuleType, *, source: str | None = None) -> dict[str, Any]:
    """
    Collect the exported names of an evaluated pad module.

    Args:
        module: The evaluated pad module
        source: The module's source text (read from the module when omitted)

    Returns:
        Mapping of export name to value, in definition order
    """
    namespace = vars(module)
    declared = namespace.get("__all__")

    if declared is not None:
        return {name: namespace[name] for name in declared if name in namespace}

    if source is None:
        source = _module_source(module)
    imports = imported_names(source) if source is not None else set()

    return {
        name: value
        for name, value in namespace.items()
        if not name.startswith("_")
        and (
            name in ALLOWED_EXPORTS
            or (name not in imports and not _is_foreign(value, module.__name__))
        )
    }


def validate_exports(exports: dict[str, Any], *, name: str = "pad") -> PadModule:
    """
    Validate a pad's exports and build its PadModule.

    Args:
        exports: Export name -> value
        name: Pad name, used in logs

    Returns:
        PadModule with the exported members set

    Raises:
        UnknownExportFault: An export is outside the allowed set
        DuplicateExportFault: A field is exported under two spellings
        MissingSchemaFault: Neither schema nor schemaFunction is exported
    """
    for export_name in exports:
        if export_name not in ALLOWED_EXPORTS:
            raise UnknownExportFault(export_name)

    values: dict[str, Any] = {}
    spellings: dict[str, list[str]] = {}

    for export_name, value in exports.items():
        field_name = EXPORT_FIELDS[export_name]
        spellings.setdefault(field_name, []).append(export_name)
        values[field_name] = value

    for field_name, names in spellings.items():
        if len(names) > 1:
            raise DuplicateExportFault(field_name, names)

    if values.get("schema") is None and values.get("schema_function") is None:
        raise MissingSchemaFault()

    return PadModule(name=name, **values)
