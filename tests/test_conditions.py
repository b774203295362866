""" Tests for condition expression evaluation """

import logging

import pytest

from dungeonscript import conditions, predicates
from dungeonscript.state import FlagStore
from dungeonscript.standard_actions import FlagAction
from . import Flags, warnings_in

def test_comparisons():
    flags = Flags(gold=12, ratio=0.75)
    assert conditions.evaluate("gold >= 10", flags)
    assert conditions.evaluate("gold > 11", flags)
    assert not conditions.evaluate("gold < 12", flags)
    assert conditions.evaluate("gold <= 12", flags)
    assert conditions.evaluate("gold = 12", flags)
    assert conditions.evaluate("gold == 12", flags)
    assert conditions.evaluate("gold != 3", flags)
    assert conditions.evaluate("ratio > 0.5", flags)
    assert conditions.evaluate("gold>=10", flags)

    assert not conditions.evaluate("gold >= 10", Flags(gold=3))

def test_unknown_flags_read_as_zero():
    assert conditions.evaluate("missing = 0", Flags())
    assert not conditions.evaluate("missing", Flags())
    assert conditions.evaluate("!missing", Flags())
    assert conditions.evaluate("missing < 1", FlagStore())

def test_truthiness_and_negation():
    assert conditions.evaluate("door_open", Flags(door_open=1))
    assert not conditions.evaluate("!door_open", Flags(door_open=1))
    assert conditions.evaluate("!door_open", Flags(door_open=0))

def test_booleans():
    assert conditions.evaluate("lit = true", Flags(lit=1))
    assert not conditions.evaluate("lit = true", Flags(lit=0))
    assert conditions.evaluate("lit = false", Flags())
    assert conditions.evaluate("lit != false", Flags(lit=True))

def test_strings():
    flags = Flags(mood="angry")
    assert conditions.evaluate("mood = angry", flags)
    assert not conditions.evaluate("mood != angry", flags)
    assert conditions.evaluate('mood = "angry"', flags)
    assert not conditions.evaluate("mood = calm", flags)

def test_string_ordering_fails(caplog):
    with caplog.at_level(logging.WARNING):
        assert not conditions.evaluate("mood > angry", Flags(mood="angry"))
    assert len(warnings_in(caplog)) == 1

def test_comma_combinator():
    flags = Flags(a=1, b=0)
    assert not conditions.evaluate("a = 1, b = 1", flags)
    assert conditions.evaluate("a = 1, b = 1", flags, any_of=True)
    assert conditions.evaluate("a = 1, b = 0", flags)
    assert not conditions.evaluate("a = 2, b = 1", flags, any_of=True)

def test_keyword_combinators():
    assert conditions.evaluate("a = 1 or b = 2", Flags(a=0, b=2))
    assert not conditions.evaluate("a = 1 and b = 2", Flags(a=1, b=0), any_of=True)
    assert conditions.evaluate("a = 1 and b = 2", Flags(a=1, b=2))

def test_mixed_keywords_first_wins(caplog):
    expr = "a = 1 and b = 2 or c = 3"
    with caplog.at_level(logging.WARNING):
        assert conditions.evaluate(expr, Flags(a=1, b=2, c=0))
        assert not conditions.evaluate(expr, Flags(a=0, b=0, c=3))
    assert len(warnings_in(caplog)) == 2

    # "or" seen first makes everything "or"
    assert conditions.evaluate("a = 1 or b = 2 and c = 3", Flags(a=1))

def test_keywords_inside_arguments_dont_split():
    assert conditions.split_clauses("_has(a and b) and c") == (["_has(a and b)", "c"], "and")
    assert conditions.split_clauses("a, b") == (["a", "b"], None)

    registry = conditions.ConditionRegistry()
    registry.register("_has", lambda *items: " ".join(items))
    assert conditions.evaluate("_has(sword or shield)", Flags(), registry=registry)

def test_registered_conditions():
    registry = conditions.ConditionRegistry()
    registry.register("_has", lambda who, what: who == "alice" and what == "key")
    registry.register("_pair", lambda a, b: f'{a}{b}')

    assert conditions.evaluate("_has(alice, key) = true", Flags(), registry=registry)
    assert conditions.evaluate("_has(alice, key)", Flags(), registry=registry)
    assert not conditions.evaluate("_has(bob, key)", Flags(), registry=registry)
    assert conditions.evaluate("_pair(x, y) = xy", Flags(), registry=registry)
    assert conditions.evaluate("_pair(x, y) = xy, _has(alice, key)", Flags(), registry=registry)

def test_registered_condition_without_args():
    registry = conditions.ConditionRegistry()
    registry.register("level", lambda: 7)
    # registered conditions take precedence over flags of the same name
    assert conditions.evaluate("level > 5", Flags(level=1), registry=registry)

def test_failures_are_false(caplog):
    registry = conditions.ConditionRegistry()
    def boom(*args):
        raise RuntimeError("boom")
    registry.register("_boom", boom)

    with caplog.at_level(logging.WARNING):
        assert not conditions.evaluate("_boom() = 1", Flags(), registry=registry)
        assert not conditions.evaluate("_nope = 1", Flags(), registry=registry)
        assert not conditions.evaluate("gold >=", Flags(gold=1))
        assert not conditions.evaluate("gold > 1,, b", Flags(gold=2))
        assert not conditions.evaluate("what is this?", Flags())
    assert len(warnings_in(caplog)) == 5

def test_empty_expression():
    assert conditions.evaluate("", Flags())
    assert conditions.evaluate("   ", Flags(), any_of=True)

def test_dungeon_scoped_flags():
    store = FlagStore()
    store.enter("town")
    store.set_flag("crypt.keys", 2)
    store.set_flag("gold", 5)
    assert conditions.evaluate("crypt.keys = 2", store)
    assert conditions.evaluate("town.gold = 5", store)
    assert conditions.evaluate("gold = 5", store)
    assert conditions.evaluate("crypt.gold = 0", store)

def test_hyphenated_flags():
    store = FlagStore()
    store.enter("keep")
    FlagAction(store)("door-open=1, east-wing.lit=1")
    assert conditions.evaluate("door-open", store)
    assert conditions.evaluate("door-open = 1, !door-closed", store)
    assert conditions.evaluate("east-wing.lit > 0", store)
    assert not conditions.evaluate("!door-open", store)

def test_parse_builds_predicates():
    criteria = conditions.parse("a = 1, !b")
    assert isinstance(criteria, predicates.Conjunction)
    assert str(criteria) == "(a = 1.0 and !b)"

    criteria = conditions.parse("a, b, c", any_of=True)
    assert isinstance(criteria, predicates.Disjunction)

    with pytest.raises(conditions.ConditionError):
        conditions.parse("a = 1, ")

def test_evaluate_params():
    flags = Flags(a=1, b=0, c=1)
    assert conditions.evaluate_params(None, flags)
    assert conditions.evaluate_params({}, flags)
    assert conditions.evaluate_params({"sound": "x"}, flags)
    assert conditions.evaluate_params({"if": "a = 1"}, flags)
    assert not conditions.evaluate_params({"if": "b = 1"}, flags)

    # ifOr needs any of its clauses, and both keys must pass
    assert conditions.evaluate_params({"ifOr": "b = 1, c = 1"}, flags)
    assert conditions.evaluate_params({"if": "a = 1", "ifOr": "b = 1, c = 1"}, flags)
    assert not conditions.evaluate_params({"if": "a = 1", "ifOr": "b = 1, c = 0"}, flags)
    assert not conditions.evaluate_params({"if": "a = 0", "ifOr": "c = 1"}, flags)

    # literal booleans
    assert not conditions.evaluate_params({"if": False}, flags)
    assert conditions.evaluate_params({"if": True}, flags)

    # lists from action objects like {if: a = 1, c = 1}
    assert conditions.evaluate_params({"if": ["a = 1", "c = 1"]}, flags)
    assert not conditions.evaluate_params({"if": ["a = 1", "b = 1"]}, flags)

def test_evaluate_params_active():
    flags = Flags(gold=5)
    params = {"if": "gold > 0", "active": "gold >= 10"}
    assert conditions.evaluate_params(params, flags)
    assert not conditions.evaluate_params(params, flags, active=True)
    assert conditions.evaluate_params(params, Flags(gold=10), active=True)
    assert conditions.evaluate_params({"activeOr": "gold = 1, gold = 5"}, flags, active=True)

def test_registry_validation(caplog):
    registry = conditions.ConditionRegistry()
    with pytest.raises(ValueError):
        registry.register("_bad", "not callable") # type: ignore[arg-type]

    registry.register("_a", lambda: 1)
    with caplog.at_level(logging.INFO):
        registry.register("_a", lambda: 2)
    assert "overwriting" in caplog.text
    assert len(registry) == 1
