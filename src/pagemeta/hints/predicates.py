"""Hint predicates: decide which bundle files receive a preload or prefetch hint."""

from __future__ import annotations

from collections.abc import Callable
from importlib import import_module

HintPredicate = Callable[[str], bool]


def always(file: str) -> bool:
    """Default predicate: every file is eligible."""

    return True


def resolve_predicate(spec: HintPredicate | str | None) -> HintPredicate:
    """Turn a configured predicate into a callable.

    Accepts ``None`` (always true), a callable, or an import path such as
    ``"myapp.hints:should_preload"`` (``module.attr`` is accepted as well).
    """

    if spec is None:
        return always
    if callable(spec):
        return spec
    if not isinstance(spec, str) or not spec.strip():
        raise ValueError(f"Unsupported hint predicate: {spec!r}")

    target = spec.strip()
    module_name, sep, attr = target.partition(":")
    if not sep:
        module_name, _, attr = target.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Hint predicate must look like 'module:function', got {spec!r}")

    try:
        module = import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"Unable to import hint predicate module {module_name!r}: {exc}") from exc

    predicate = getattr(module, attr, None)
    if not callable(predicate):
        raise ValueError(f"Hint predicate {target!r} is not callable")
    return predicate
