"""Pattern-match compiler.

Turns the ordered arms of a match expression into a matching procedure.
Each pattern is flattened into a list of tests on paths into the scrutinee
plus a list of (name, path) bindings. When ``select`` runs, every distinct
(path, test) pair is evaluated at most once, so arms that share
sub-patterns share the work. Arms are still tried strictly top to bottom,
so the chosen arm and its bindings are the same as checking each pattern
in turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Union

from funs.ast_nodes import (
    BindPattern,
    ConsPattern,
    ConstructorPattern,
    ListPattern,
    LiteralPattern,
    Match,
    MatchArm,
    Pattern,
    RecordPattern,
    TuplePattern,
    WildcardPattern,
    pattern_binders,
)
from funs.errors import ParseError, ParseErrorKind
from funs.values import RecordValue, VariantValue, same_literal

logger = logging.getLogger(__name__)


# ── Paths ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Elem:
    """Component ``index`` of a tuple or list."""

    index: int


@dataclass(frozen=True)
class Head:
    pass


@dataclass(frozen=True)
class Tail:
    """The list without its first element."""


@dataclass(frozen=True)
class Field:
    name: str


@dataclass(frozen=True)
class Payload:
    index: int


Step = Union[Elem, Head, Tail, Field, Payload]
Path = tuple[Step, ...]

ROOT: Path = ()


def resolve(value: Any, path: Path) -> Any:
    """Follow ``path`` from ``value``.

    The caller guarantees the tests guarding each step already passed.
    """
    for step in path:
        match step:
            case Elem(index=i):
                value = value[i]
            case Head():
                value = value[0]
            case Tail():
                value = value[1:]
            case Field(name=name):
                value = value.fields[name]
            case Payload(index=i):
                value = value.payload[i]
    return value


# ── Tests ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IsTuple:
    arity: int

    def __call__(self, value: Any) -> bool:
        return isinstance(value, tuple) and len(value) == self.arity


@dataclass(frozen=True)
class ListLength:
    length: int

    def __call__(self, value: Any) -> bool:
        return isinstance(value, list) and len(value) == self.length


@dataclass(frozen=True)
class NonEmpty:
    def __call__(self, value: Any) -> bool:
        return isinstance(value, list) and len(value) > 0


@dataclass(frozen=True)
class Equals:
    # The type name keeps Equals(True) and Equals(1) apart when memoized.
    literal: Any
    type_name: str

    def __call__(self, value: Any) -> bool:
        return same_literal(self.literal, value)


@dataclass(frozen=True)
class HasField:
    name: str

    def __call__(self, value: Any) -> bool:
        return isinstance(value, RecordValue) and self.name in value.fields


@dataclass(frozen=True)
class IsRecord:
    def __call__(self, value: Any) -> bool:
        return isinstance(value, RecordValue)


@dataclass(frozen=True)
class HasTag:
    tag: str

    def __call__(self, value: Any) -> bool:
        return isinstance(value, VariantValue) and value.tag == self.tag


@dataclass(frozen=True)
class PayloadArity:
    arity: int

    def __call__(self, value: Any) -> bool:
        return len(value.payload) == self.arity


Test = Union[IsTuple, ListLength, NonEmpty, Equals, HasField, IsRecord, HasTag, PayloadArity]


# ── Flattening ───────────────────────────────────────────────────


@dataclass(frozen=True)
class CompiledArm:
    index: int
    tests: tuple[tuple[Path, Test], ...]
    bindings: tuple[tuple[str, Path], ...]
    body: Any


def _flatten(pattern: Pattern, path: Path,
             tests: list[tuple[Path, Test]], binds: list[tuple[str, Path]]) -> None:
    match pattern:
        case WildcardPattern():
            pass
        case BindPattern(name=name):
            binds.append((name, path))
        case LiteralPattern(literal=lit):
            tests.append((path, Equals(lit.value, type(lit.value).__name__)))
        case TuplePattern(elements=elements):
            tests.append((path, IsTuple(len(elements))))
            for i, sub in enumerate(elements):
                _flatten(sub, path + (Elem(i),), tests, binds)
        case ListPattern(elements=elements):
            tests.append((path, ListLength(len(elements))))
            for i, sub in enumerate(elements):
                _flatten(sub, path + (Elem(i),), tests, binds)
        case ConsPattern(head=head, tail=tail):
            tests.append((path, NonEmpty()))
            _flatten(head, path + (Head(),), tests, binds)
            _flatten(tail, path + (Tail(),), tests, binds)
        case RecordPattern(fields=fields):
            tests.append((path, IsRecord()))
            for fp in fields:
                tests.append((path, HasField(fp.name)))
                _flatten(fp.pattern, path + (Field(fp.name),), tests, binds)
        case ConstructorPattern(name=name, payload=payload):
            tests.append((path, HasTag(name)))
            if payload is not None:
                tests.append((path, PayloadArity(len(payload))))
                for i, sub in enumerate(payload):
                    _flatten(sub, path + (Payload(i),), tests, binds)
        case _:
            raise TypeError(f"not a pattern: {pattern!r}")


def _check_unique_binders(pattern: Pattern) -> None:
    seen: set[str] = set()
    for binder in pattern_binders(pattern):
        if binder.name in seen:
            raise ParseError(
                ParseErrorKind.DUPLICATE_PATTERN_BINDING,
                f"'{binder.name}' is bound more than once in this pattern",
                binder.span,
            )
        seen.add(binder.name)


def compile_arm(index: int, pattern: Pattern, body: Any) -> CompiledArm:
    _check_unique_binders(pattern)
    tests: list[tuple[Path, Test]] = []
    binds: list[tuple[str, Path]] = []
    _flatten(pattern, ROOT, tests, binds)
    return CompiledArm(index, tuple(tests), tuple(binds), body)


# ── Procedure ────────────────────────────────────────────────────


@dataclass(frozen=True)
class MatchOutcome:
    """The selected arm, or ``arm_index is None`` when nothing matched."""

    arm_index: int | None
    bindings: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None

    @property
    def matched(self) -> bool:
        return self.arm_index is not None


# Shared by every failed match, so its bindings are read-only.
NO_MATCH = MatchOutcome(None, MappingProxyType({}))


class MatchProcedure:
    """Selects the first arm whose pattern matches a value."""

    def __init__(self, arms: list[CompiledArm]) -> None:
        self.arms = arms
        total = sum(len(arm.tests) for arm in arms)
        self.distinct_tests = len({key for arm in arms for key in arm.tests})
        self.shared_tests = total - self.distinct_tests

    def select(self, value: Any) -> MatchOutcome:
        results: dict[tuple[Path, Test], bool] = {}
        resolved: dict[Path, Any] = {ROOT: value}

        def at(path: Path) -> Any:
            if path not in resolved:
                resolved[path] = resolve(at(path[:-1]), path[-1:])
            return resolved[path]

        for arm in self.arms:
            ok = True
            for key in arm.tests:
                outcome = results.get(key)
                if outcome is None:
                    path, test = key
                    outcome = test(at(path))
                    results[key] = outcome
                if not outcome:
                    ok = False
                    break
            if ok:
                bindings = {name: at(path) for name, path in arm.bindings}
                return MatchOutcome(arm.index, bindings, arm.body)
        return NO_MATCH

    def run(self, value: Any, evaluate: Callable[[Any, dict[str, Any]], Any]) -> Any:
        """Select an arm and hand its body and bindings to ``evaluate``.

        Returns NO_MATCH untouched when no arm applies.
        """
        outcome = self.select(value)
        if not outcome.matched:
            return outcome
        return evaluate(outcome.body, dict(outcome.bindings))


def compile_match(arms: Iterable[MatchArm] | Iterable[tuple[Pattern, Any]]) -> MatchProcedure:
    """Compile ordered arms, given as MatchArm nodes or (pattern, body) pairs."""
    compiled = []
    for index, arm in enumerate(arms):
        if isinstance(arm, MatchArm):
            compiled.append(compile_arm(index, arm.pattern, arm.body))
        else:
            pattern, body = arm
            compiled.append(compile_arm(index, pattern, body))
    procedure = MatchProcedure(compiled)
    logger.debug(
        f"compiled {len(compiled)} arms: {procedure.distinct_tests} distinct tests, "
        f"{procedure.shared_tests} shared"
    )
    return procedure


def compile_match_expr(expr: Match) -> MatchProcedure:
    return compile_match(expr.arms)


# ── Reference matcher ────────────────────────────────────────────


def match_pattern(pattern: Pattern, value: Any) -> dict[str, Any] | None:
    """Match one pattern directly, returning its bindings or None.

    Straightforward recursive reading of the matching rules, used as the
    reference the compiled procedure is checked against.
    """
    bindings: dict[str, Any] = {}
    if _match_into(pattern, value, bindings):
        return bindings
    return None


def _match_all(patterns: Iterable[Pattern], values: Iterable[Any], bindings: dict[str, Any]) -> bool:
    return all(_match_into(p, v, bindings) for p, v in zip(patterns, values))


def _match_into(pattern: Pattern, value: Any, bindings: dict[str, Any]) -> bool:
    match pattern:
        case WildcardPattern():
            return True
        case BindPattern(name=name):
            bindings[name] = value
            return True
        case LiteralPattern(literal=lit):
            return same_literal(lit.value, value)
        case TuplePattern(elements=elements):
            return (isinstance(value, tuple) and len(value) == len(elements)
                    and _match_all(elements, value, bindings))
        case ListPattern(elements=elements):
            return (isinstance(value, list) and len(value) == len(elements)
                    and _match_all(elements, value, bindings))
        case ConsPattern(head=head, tail=tail):
            return (isinstance(value, list) and len(value) > 0
                    and _match_into(head, value[0], bindings)
                    and _match_into(tail, value[1:], bindings))
        case RecordPattern(fields=fields):
            if not isinstance(value, RecordValue):
                return False
            return all(fp.name in value.fields
                       and _match_into(fp.pattern, value.fields[fp.name], bindings)
                       for fp in fields)
        case ConstructorPattern(name=name, payload=payload):
            if not isinstance(value, VariantValue) or value.tag != name:
                return False
            if payload is None:
                return True
            return len(value.payload) == len(payload) and _match_all(payload, value.payload, bindings)
    return False


def select_naive(arms: list[tuple[Pattern, Any]], value: Any) -> MatchOutcome:
    """Try each arm in order with ``match_pattern``."""
    for index, (pattern, body) in enumerate(arms):
        bindings = match_pattern(pattern, value)
        if bindings is not None:
            return MatchOutcome(index, bindings, body)
    return NO_MATCH
