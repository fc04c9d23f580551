"""
Pad Loaders and Load-Failure Guard.

Evaluates pad code and converts the outcome into a LoadResult:

    Loaded(pad)      -> the pad evaluated and its exports are valid
    Faulted(fault)   -> evaluation or validation failed

The result is computed once, before any request handler is installed,
and consulted by every request afterwards. A faulted pad never crashes
the host; each request receives the captured fault instead.

Sources:
    - load_pad_source(): Python source text (the usual pad form)
    - load_pad_file(): a .py file on disk
    - load_pad_module(): an importable dotted module path
    - load_pad_exports(): an already-built export mapping

Usage:
    result = load_pad_source(code, name="my_pad")
    if isinstance(result, Faulted):
        logger.error(result.fault)
"""

from __future__ import annotations

import importlib
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Union

from padrun.errors import LoadFault, PadEvaluationFault
from padrun.runtime.exports import PadModule, collect_exports, validate_exports

logger = logging.getLogger(__name__)

DEFAULT_PAD_NAME = "__pad__"

# Hosting platform scheduling constraint, applied before the pipeline is built
CONCURRENCY_HINT = ("GOMAXPROCS", "1")


# =============================================================================
# Load Results
# =============================================================================


@dataclass(frozen=True, slots=True)
class Loaded:
    """Pad evaluated and validated successfully."""

    pad: PadModule

    @property
    def ready(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Faulted:
    """Pad evaluation or validation failed. Terminal for the process."""

    fault: LoadFault

    @property
    def ready(self) -> bool:
        return False


LoadResult = Union[Loaded, Faulted]


# =============================================================================
# Guard
# =============================================================================


def apply_concurrency_hint() -> None:
    key, value = CONCURRENCY_HINT
    os.environ[key] = value


def guard_load(evaluate: Callable[[], tuple[str, dict[str, Any]]]) -> LoadResult:
    """
    Run pad evaluation and validation, capturing any failure.

    Args:
        evaluate: Returns (pad_name, exports). May raise anything.

    Returns:
        Loaded or Faulted
    """
    try:
        name, exports = evaluate()
        pad = validate_exports(exports, name=name)
    except LoadFault as fault:
        logger.error(f"[loader] Pad rejected: {fault}")
        return Faulted(fault)
    except (Exception, SystemExit) as e:
        fault = PadEvaluationFault.from_exception(e)
        logger.error(f"[loader] Pad raised during evaluation: {fault}", exc_info=True)
        return Faulted(fault)

    apply_concurrency_hint()
    logger.info(f"[loader] Pad '{pad.name}' loaded with exports {pad.exported_fields()}")
    return Loaded(pad)


# =============================================================================
# Evaluation
# =============================================================================


def evaluate_source(
    source: str,
    *,
    name: str = DEFAULT_PAD_NAME,
    filename: str = "<pad>",
) -> ModuleType:
    """
    Evaluate pad source text into a fresh module.

    The module is registered in sys.modules while its body runs so that
    dataclasses and pickling inside the pad can find it. It is removed
    again if evaluation fails.
    """
    module = ModuleType(name)
    module.__file__ = filename

    code = compile(source, filename, "exec")
    sys.modules[name] = module
    try:
        exec(code, module.__dict__)
    except BaseException:
        sys.modules.pop(name, None)
        raise
    return module


def _module_exports(
    module: ModuleType,
    source: str | None = None,
) -> tuple[str, dict[str, Any]]:
    return module.__name__, collect_exports(module, source=source)


def load_pad_source(source: str, *, name: str = DEFAULT_PAD_NAME) -> LoadResult:
    """Evaluate and validate pad source text."""
    return guard_load(lambda: _module_exports(evaluate_source(source, name=name), source))


def load_pad_file(path: str | Path, *, name: str = DEFAULT_PAD_NAME) -> LoadResult:
    """Evaluate and validate a pad stored in a file."""
    pad_path = Path(path)

    def evaluate() -> tuple[str, dict[str, Any]]:
        source = pad_path.read_text(encoding="utf-8")
        module = evaluate_source(source, name=name, filename=str(pad_path))
        return _module_exports(module, source)

    return guard_load(evaluate)


def load_pad_module(dotted_path: str) -> LoadResult:
    """Import and validate a pad module from the Python path."""
    return guard_load(lambda: _module_exports(importlib.import_module(dotted_path)))


def load_pad_exports(exports: dict[str, Any], *, name: str = DEFAULT_PAD_NAME) -> LoadResult:
    """Validate an export mapping built in code."""
    return guard_load(lambda: (name, dict(exports)))
