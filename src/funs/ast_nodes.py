"""AST node definitions for the funs language."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from funs.source import Span

# ── Type expressions ─────────────────────────────────────────────


@dataclass(frozen=True)
class NamedType:
    name: str
    span: Span


@dataclass(frozen=True)
class GenericType:
    name: str
    args: tuple[TypeExpr, ...]
    span: Span


@dataclass(frozen=True)
class FunctionType:
    params: tuple[TypeExpr, ...]
    result: TypeExpr
    span: Span


@dataclass(frozen=True)
class ListType:
    element: TypeExpr
    span: Span


@dataclass(frozen=True)
class TupleType:
    elements: tuple[TypeExpr, ...]  # () is the unit type
    span: Span


@dataclass(frozen=True)
class OptionType:
    inner: TypeExpr
    span: Span


TypeExpr = Union[NamedType, GenericType, FunctionType, ListType, TupleType, OptionType]


# ── Literals ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class IntegerLit:
    value: int
    span: Span


@dataclass(frozen=True)
class FloatLit:
    value: float
    span: Span


@dataclass(frozen=True)
class BooleanLit:
    value: bool
    span: Span


@dataclass(frozen=True)
class StringLit:
    value: str
    span: Span


@dataclass(frozen=True)
class CharLit:
    value: str
    span: Span


Literal = Union[IntegerLit, FloatLit, BooleanLit, StringLit, CharLit]


# ── Patterns ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class WildcardPattern:
    span: Span


@dataclass(frozen=True)
class BindPattern:
    name: str
    span: Span


@dataclass(frozen=True)
class LiteralPattern:
    literal: Literal
    span: Span


@dataclass(frozen=True)
class TuplePattern:
    elements: tuple[Pattern, ...]
    span: Span


@dataclass(frozen=True)
class ListPattern:
    """Matches a list of exactly ``len(elements)`` items."""

    elements: tuple[Pattern, ...]
    span: Span


@dataclass(frozen=True)
class ConsPattern:
    head: Pattern
    tail: Pattern
    span: Span


@dataclass(frozen=True)
class FieldPattern:
    name: str
    pattern: Pattern
    span: Span


@dataclass(frozen=True)
class RecordPattern:
    """Matches records having at least the named fields."""

    fields: tuple[FieldPattern, ...]
    span: Span


@dataclass(frozen=True)
class ConstructorPattern:
    name: str
    payload: tuple[Pattern, ...] | None  # None for the bare `Name` form
    span: Span


Pattern = Union[
    WildcardPattern, BindPattern, LiteralPattern, TuplePattern,
    ListPattern, ConsPattern, RecordPattern, ConstructorPattern,
]


# ── Expressions ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Identifier:
    name: str
    span: Span


@dataclass(frozen=True)
class Param:
    name: str
    span: Span


@dataclass(frozen=True)
class Body:
    """Statements evaluated in order, then the tail expression as the result."""

    statements: tuple[Binding | FieldAssign, ...]
    result: Expr
    span: Span


@dataclass(frozen=True)
class Lambda:
    params: tuple[Param, ...]
    inherits_params: bool  # `(..)` takes the enclosing function's parameters
    body: Body
    span: Span


@dataclass(frozen=True)
class Block:
    """A multi-statement branch of an `if`."""

    body: Body
    span: Span


@dataclass(frozen=True)
class Call:
    callee: Expr
    arg: Expr
    span: Span


@dataclass(frozen=True)
class BinaryOp:
    op: str  # one of + - * / // % and or
    left: Expr
    right: Expr
    span: Span


@dataclass(frozen=True)
class UnaryOp:
    op: str  # `not` or `-`
    operand: Expr
    span: Span


@dataclass(frozen=True)
class Cons:
    head: Expr
    tail: Expr
    span: Span


@dataclass(frozen=True)
class Concat:
    left: Expr
    right: Expr
    span: Span


@dataclass(frozen=True)
class If:
    condition: Expr
    then_branch: Expr
    else_branch: Expr
    span: Span


@dataclass(frozen=True)
class MatchArm:
    pattern: Pattern
    body: Expr
    span: Span


@dataclass(frozen=True)
class Match:
    scrutinee: Expr
    arms: tuple[MatchArm, ...]
    span: Span


@dataclass(frozen=True)
class ListLit:
    elements: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True)
class TupleLit:
    elements: tuple[Expr, ...]
    span: Span


@dataclass(frozen=True)
class FieldInit:
    name: str
    value: Expr
    span: Span


@dataclass(frozen=True)
class RecordLit:
    fields: tuple[FieldInit, ...]
    span: Span


@dataclass(frozen=True)
class FieldAccess:
    base: Expr
    field: str | int  # int for tuple positions
    span: Span


Expr = Union[
    IntegerLit, FloatLit, BooleanLit, StringLit, CharLit,
    Identifier, Lambda, Block, Call, BinaryOp, UnaryOp, Cons, Concat,
    If, Match, ListLit, TupleLit, RecordLit, FieldAccess,
]


# ── Declarations ─────────────────────────────────────────────────


@dataclass(frozen=True)
class ImportName:
    name: str
    alias: str | None
    span: Span

    @property
    def local_name(self) -> str:
        return self.alias or self.name


@dataclass(frozen=True)
class ExplicitImports:
    names: tuple[ImportName, ...]


@dataclass(frozen=True)
class WildcardImport:
    span: Span


@dataclass(frozen=True)
class Import:
    """Bind names from the namespace at ``path``.

    A bare module import is a name imported from the root namespace, so
    ``imp std.list as l`` has path ``("std",)`` and binds ``list`` as ``l``.
    """

    path: tuple[str, ...]
    bindings: ExplicitImports | WildcardImport
    span: Span


@dataclass(frozen=True)
class RecordField:
    name: str
    type_expr: TypeExpr
    mutable: bool
    span: Span


@dataclass(frozen=True)
class RecordShape:
    fields: tuple[RecordField, ...]
    span: Span


@dataclass(frozen=True)
class VariantCtor:
    name: str
    payload: tuple[TypeExpr, ...]
    span: Span


@dataclass(frozen=True)
class VariantShape:
    ctors: tuple[VariantCtor, ...]
    span: Span


@dataclass(frozen=True)
class TypeDecl:
    name: str
    type_params: tuple[str, ...]
    shape: RecordShape | VariantShape
    span: Span


@dataclass(frozen=True)
class Binding:
    pattern: Pattern
    type_expr: TypeExpr | None
    value: Expr
    span: Span


@dataclass(frozen=True)
class FieldAssign:
    """`record.field = value`; mutability is checked by the evaluator."""

    target: FieldAccess
    value: Expr
    span: Span


Declaration = Union[Import, TypeDecl, Binding, FieldAssign]


@dataclass(frozen=True)
class Module:
    name: str
    declarations: tuple[Declaration, ...]
    span: Span


def pattern_binders(pattern: Pattern) -> list[BindPattern]:
    """All Bind sub-patterns of ``pattern``, left to right."""
    if isinstance(pattern, BindPattern):
        return [pattern]
    if isinstance(pattern, (TuplePattern, ListPattern)):
        return [b for p in pattern.elements for b in pattern_binders(p)]
    if isinstance(pattern, ConsPattern):
        return pattern_binders(pattern.head) + pattern_binders(pattern.tail)
    if isinstance(pattern, RecordPattern):
        return [b for f in pattern.fields for b in pattern_binders(f.pattern)]
    if isinstance(pattern, ConstructorPattern) and pattern.payload:
        return [b for p in pattern.payload for b in pattern_binders(p)]
    return []
