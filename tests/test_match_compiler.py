"""Tests for the pattern-match compiler."""

from __future__ import annotations

import pytest

from funs import match_compiler
from funs.ast_nodes import BindPattern, StringLit, TuplePattern
from funs.errors import ParseError, ParseErrorKind
from funs.match_compiler import (
    NO_MATCH,
    Elem,
    Head,
    IsTuple,
    NonEmpty,
    Tail,
    compile_match,
    compile_match_expr,
    match_pattern,
    resolve,
    select_naive,
)
from funs.values import NIL, RecordValue, VariantValue, just, same_literal
from tests.helpers import parse_match, span


def _compile(arms: str):
    return compile_match_expr(parse_match(arms))


class TestSelect:
    def test_list_arms(self):
        proc = _compile('| [] => "empty"\n| head : tail => "ne"')
        outcome = proc.select([1, 2])
        assert outcome.matched
        assert outcome.arm_index == 1
        assert outcome.bindings == {"head": 1, "tail": [2]}
        assert isinstance(outcome.body, StringLit) and outcome.body.value == "ne"

    def test_empty_list(self):
        proc = _compile('| [] => "empty"\n| head : tail => "ne"')
        assert proc.select([]).arm_index == 0

    def test_first_match_wins(self):
        proc = _compile("| x => 1\n| 5 => 2")
        assert proc.select(5).arm_index == 0

    def test_no_match(self):
        proc = _compile('| 0 => "zero"')
        outcome = proc.select(5)
        assert outcome is NO_MATCH
        assert not outcome.matched

    def test_no_match_bindings_read_only(self):
        outcome = _compile('| 0 => "zero"').select(5)
        with pytest.raises(TypeError):
            outcome.bindings["x"] = 1
        assert dict(NO_MATCH.bindings) == {}

    def test_literal_types_are_strict(self):
        proc = _compile('| 1 => "int"\n| True => "bool"\n| _ => "other"')
        assert proc.select(1).arm_index == 0
        assert proc.select(True).arm_index == 1
        assert proc.select(1.0).arm_index == 2

    def test_string_literal(self):
        proc = _compile('| "hi" => 1\n| _ => 2')
        assert proc.select("hi").arm_index == 0
        assert proc.select("ho").arm_index == 1

    def test_tuple_arity(self):
        proc = _compile("| (a, b) => 2\n| (a, b, c) => 3")
        outcome = proc.select((1, 2, 3))
        assert outcome.arm_index == 1
        assert outcome.bindings == {"a": 1, "b": 2, "c": 3}
        assert proc.select([1, 2]) is NO_MATCH

    def test_list_exact_length(self):
        proc = _compile("| [a] => 1\n| [a, b] => 2")
        assert proc.select([7, 8]).bindings == {"a": 7, "b": 8}
        assert proc.select([1, 2, 3]) is NO_MATCH

    def test_nested_cons(self):
        proc = _compile("| a : b : rest => 1")
        outcome = proc.select([1, 2, 3])
        assert outcome.bindings == {"a": 1, "b": 2, "rest": [3]}
        assert proc.select([1]) is NO_MATCH

    def test_record(self):
        proc = _compile("| {name: n, age: 3} => n\n| {name} => name")
        ann = RecordValue("Person", {"name": "ann", "age": 3})
        bob = RecordValue("Person", {"name": "bob", "age": 4})
        assert proc.select(ann).bindings == {"n": "ann"}
        outcome = proc.select(bob)
        assert outcome.arm_index == 1 and outcome.bindings == {"name": "bob"}

    def test_record_missing_field(self):
        proc = _compile("| {name} => name")
        assert proc.select(RecordValue("Point", {"x": 1})) is NO_MATCH
        assert proc.select((1, 2)) is NO_MATCH

    def test_option_variants(self):
        proc = _compile("| Nil => 0\n| Just(x) => x")
        assert proc.select(NIL).arm_index == 0
        outcome = proc.select(just(5))
        assert outcome.arm_index == 1 and outcome.bindings == {"x": 5}

    def test_bare_constructor_ignores_payload(self):
        proc = _compile("| Just => 1")
        assert proc.select(just((1, 2))).matched

    def test_payload_arity(self):
        proc = _compile("| Pair(a, b) => 1")
        assert proc.select(VariantValue("Pair", (1,))) is NO_MATCH
        assert proc.select(VariantValue("Pair", (1, 2))).bindings == {"a": 1, "b": 2}

    def test_nested_structures(self):
        proc = _compile("| Just((k, {v: v : _})) => k")
        value = just(("key", RecordValue("Entry", {"v": [10, 20]})))
        assert proc.select(value).bindings == {"k": "key", "v": 10}


class TestRun:
    def test_passes_body_and_bindings(self):
        proc = _compile("| h : t => h")
        seen = []

        def evaluate(body, bindings):
            seen.append((body, bindings))
            return bindings["h"] * 10

        assert proc.run([4, 5], evaluate) == 40
        assert seen[0][1] == {"h": 4}

    def test_fresh_bindings_per_call(self):
        proc = _compile("| x => x")
        first = proc.run(1, lambda body, b: b)
        first["x"] = 99
        assert proc.run(1, lambda body, b: b) == {"x": 1}

    def test_no_match_skips_evaluator(self):
        proc = _compile("| 0 => 0")

        def evaluate(body, bindings):
            raise AssertionError("should not be called")

        assert proc.run(1, evaluate) is NO_MATCH


class TestSharing:
    def test_shared_tests_counted(self):
        proc = _compile("| (0, x) => 1\n| (0, y) => 2")
        assert proc.shared_tests == 2

    def test_each_test_runs_once_per_select(self, monkeypatch):
        calls = []

        def counting(expected, actual):
            calls.append((expected, actual))
            return same_literal(expected, actual)

        monkeypatch.setattr(match_compiler, "same_literal", counting)
        proc = _compile("| (0, 1) => 1\n| (0, 2) => 2\n| (0, x) => 3")
        outcome = proc.select((0, 5))
        assert outcome.arm_index == 2 and outcome.bindings == {"x": 5}
        # (0 at elem 0) once, then 1 and 2 at elem 1
        assert len(calls) == 3

    def test_memo_resets_between_selects(self):
        proc = _compile("| (0, x) => 1\n| _ => 2")
        assert proc.select((0, 1)).arm_index == 0
        assert proc.select((1, 1)).arm_index == 1


class TestPaths:
    def test_resolve(self):
        value = (1, [2, 3, 4])
        assert resolve(value, (Elem(1), Tail(), Head())) == 3

    def test_flattened_tests(self):
        arm = match_compiler.compile_arm(0, parse_match("| (h : t, _) => 1").arms[0].pattern, None)
        assert arm.tests == (((), IsTuple(2)), ((Elem(0),), NonEmpty()))
        assert arm.bindings == (("h", (Elem(0), Head())), ("t", (Elem(0), Tail())))


class TestErrors:
    def test_duplicate_binder(self):
        pattern = TuplePattern((BindPattern("x", span(1, 2)), BindPattern("x", span(4, 5))), span(0, 6))
        with pytest.raises(ParseError) as exc:
            compile_match([(pattern, None)])
        assert exc.value.kind == ParseErrorKind.DUPLICATE_PATTERN_BINDING
        assert exc.value.span.start == 4
        assert exc.value.token is None


ARM_SETS = [
    '| [] => 0\n| [x] => 1\n| h : t => 2',
    '| (0, _) => 0\n| (_, 0) => 1\n| (a, b) => 2',
    '| Nil => 0\n| Just(0) => 1\n| Just(x) => 2',
    '| {a: 1} => 0\n| {a, b} => 1\n| _ => 2',
    '| True => 0\n| 1 => 1\n| "1" => 2\n| 1.0 => 3',
    '| Just((a, [b])) => 0\n| Just((a, b : c)) => 1\n| Just(_) => 2\n| Nil => 3',
    '| a : b : [] => 0\n| [a, b, c] => 1\n| _ : rest => 2',
]

VALUES = [
    0, 1, 1.0, True, False, "1", "x", (), (0, 0), (0, 1), (1, 0), (2, 3),
    [], [1], [1, 2], [1, 2, 3], [[1]],
    NIL, just(0), just(5), just((1, [2])), just((1, [2, 3])), just((1, [])),
    VariantValue("Other", ()),
    RecordValue("R", {"a": 1}), RecordValue("R", {"a": 2, "b": 3}), RecordValue("R", {"b": 1}),
]


class TestAgreesWithNaive:
    @pytest.mark.parametrize("arms", ARM_SETS)
    def test_compiled_equals_naive(self, arms):
        match = parse_match(arms)
        pairs = [(arm.pattern, arm.body) for arm in match.arms]
        proc = compile_match(pairs)
        for value in VALUES:
            assert proc.select(value) == select_naive(pairs, value), value

    def test_match_pattern_bindings(self):
        pattern = parse_match("| (a, h : _) => 1").arms[0].pattern
        assert match_pattern(pattern, (1, [2, 3])) == {"a": 1, "h": 2}
        assert match_pattern(pattern, (1, [])) is None
