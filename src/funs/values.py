"""Runtime value model used by the pattern-match compiler.

Scalars, strings, tuples and lists are plain Python objects (chars are
one-character ``str``). Records and variants get their own frozen types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RecordValue:
    """An instance of a record type; fields keep declaration order."""

    type_name: str
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VariantValue:
    tag: str
    payload: tuple[Any, ...] = ()


NIL = VariantValue("Nil", ())


def just(value: Any) -> VariantValue:
    return VariantValue("Just", (value,))


def same_literal(expected: Any, actual: Any) -> bool:
    """Literal equality: same runtime type and equal value.

    ``True`` never equals ``1`` and ``1`` never equals ``1.0``.
    """
    return type(expected) is type(actual) and expected == actual
