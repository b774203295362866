""" Condition Evaluator

Evaluates author-written boolean expressions over flags and registered
condition functions, e.g.

    gold >= 10, _has_item(alice, key) = true
    visited_crypt or mood = angry
    !crypt.door_open

Clauses are joined with top-level commas or the "and"/"or" keywords. Commas
mean "all of" for if{} style conditions and "any of" for ifOr{} style ones.
When an expression spells out a keyword the first keyword seen decides for
the whole expression; mixing them is not supported.

Everything fails closed: an expression that can't be parsed, a condition
function that raises or a flag nobody ever set all make the clause false
rather than interrupting playback.
"""

import re
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional, Protocol, Union

from dungeonscript import util, scanner, predicates

logger = logging.getLogger(__name__)

CLAUSE_RE = re.compile(r"^(?P<key>[A-Za-z0-9_.\-]+(?:\([^)]*\))?)\s*(?P<op>==|!=|>=|<=|>|<|=)\s*(?P<value>.*)$")
KEY_RE = re.compile(r"^(?P<name>[A-Za-z0-9_.\-]+)(?:\((?P<args>[^)]*)\))?$")
KEYWORD_RE = re.compile(r"\s+(and|or)\s+")

ORDERING_OPERATORS = frozenset((">", ">=", "<", "<="))

IF_KEYS = ("if", "ifOr")
ACTIVE_KEYS = ("active", "activeOr")

Expected = Union[bool, float, str]


class FlagLookup(Protocol):
    """ what the evaluator needs from the host's game state

    paths are "flag" for the current dungeon or "dungeon.flag" for another
    one. Flags that were never set read as 0.
    """
    def get_flag(self, path:str) -> Any: ...


class ConditionError(ValueError):
    """ an expression or clause that can't be evaluated """


class ConditionRegistry:
    """ named predicate functions extending what conditions can test

    A clause whose left side names a registered condition calls it with the
    parenthesised arguments (as stripped strings) instead of reading a flag:
    "_has_item(alice, key) = true" calls conditions["_has_item"]("alice", "key").
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.conditions:dict[str, Callable[..., Any]] = {}

    def register(self, condition_id:str, fn:Callable[..., Any]) -> None:
        if not callable(fn):
            raise ValueError(f'condition {condition_id} must be callable, got {fn!r}')
        if condition_id in self.conditions:
            self.logger.info(f'condition "{condition_id}" already exists - overwriting')
        self.conditions[condition_id] = fn

    def __contains__(self, condition_id:str) -> bool:
        return condition_id in self.conditions

    def __len__(self) -> int:
        return len(self.conditions)

    def call(self, condition_id:str, args:Sequence[str]) -> Any:
        return self.conditions[condition_id](*args)


class EvaluationContext:
    """ the universe predicates are evaluated against """

    def __init__(self, flags:FlagLookup, registry:Optional[ConditionRegistry]=None) -> None:
        self.flags = flags
        self.registry = registry if registry is not None else ConditionRegistry()

    def lookup(self, name:str, args:Optional[Sequence[str]]) -> Any:
        if name in self.registry:
            return self.registry.call(name, args or ())
        if args is not None or name.startswith("_"):
            raise ConditionError(f'condition {name} is not registered')
        value = self.flags.get_flag(name)
        if value is None:
            return 0
        return value


def parse_key(key:str) -> tuple[str, Optional[list[str]]]:
    m = KEY_RE.match(key.strip())
    if not m:
        raise ConditionError(f'invalid condition key "{key}"')
    args = m.group("args")
    if args is None:
        return m.group("name"), None
    return m.group("name"), [a.strip() for a in args.split(",") if a.strip()]

def parse_expected(raw:str) -> Expected:
    raw = raw.strip()
    if raw == "true":
        return True
    elif raw == "false":
        return False
    number = util.parse_number(raw)
    if number is not None:
        return float(number)
    return util.unquote(raw)

def equal(actual:Any, expected:Expected) -> bool:
    if isinstance(expected, bool):
        return util.truthy(actual) == expected
    elif isinstance(expected, float):
        try:
            return float(actual) == expected
        except (TypeError, ValueError):
            return False
    else:
        if isinstance(actual, bool):
            return ("true" if actual else "false") == expected
        if isinstance(actual, float) and actual.is_integer():
            actual = int(actual)
        return str(actual) == expected

def compare(actual:Any, op:str, expected:Expected) -> bool:
    if op in ("=", "=="):
        return equal(actual, expected)
    elif op == "!=":
        return not equal(actual, expected)

    if isinstance(expected, str):
        raise ConditionError(f'operator "{op}" not supported for string comparison')
    try:
        a = float(actual)
    except (TypeError, ValueError):
        return False
    b = float(expected)
    if op == ">":
        return a > b
    elif op == ">=":
        return a >= b
    elif op == "<":
        return a < b
    else:
        return a <= b


class Comparison(predicates.Criteria[EvaluationContext]):
    def __init__(self, name:str, args:Optional[list[str]], op:str, expected:Expected) -> None:
        self.name = name
        self.args = args
        self.op = op
        self.expected = expected

    def evaluate(self, universe:EvaluationContext) -> bool:
        actual = universe.lookup(self.name, self.args)
        return compare(actual, self.op, self.expected)

    def __str__(self) -> str:
        return f'{self.name} {self.op} {self.expected}'


class Truthiness(predicates.Criteria[EvaluationContext]):
    """ a bare key with no operator, true when the value is truthy """

    def __init__(self, name:str, args:Optional[list[str]]) -> None:
        self.name = name
        self.args = args

    def evaluate(self, universe:EvaluationContext) -> bool:
        return util.truthy(universe.lookup(self.name, self.args))

    def __str__(self) -> str:
        return self.name


def parse_clause(clause:str) -> predicates.Criteria[EvaluationContext]:
    clause = clause.strip()
    if not clause:
        raise ConditionError("empty clause")

    negate = False
    if clause.startswith("!") and not clause.startswith("!="):
        negate = True
        clause = clause[1:].strip()

    criteria:predicates.Criteria[EvaluationContext]
    m = CLAUSE_RE.match(clause)
    if m:
        if not m.group("value").strip():
            raise ConditionError(f'missing right operand in "{clause}"')
        name, args = parse_key(m.group("key"))
        criteria = Comparison(name, args, m.group("op"), parse_expected(m.group("value")))
    else:
        name, args = parse_key(clause)
        criteria = Truthiness(name, args)

    if negate:
        return predicates.Negation(criteria)
    return criteria

def _split_keywords(part:str) -> tuple[list[str], list[str]]:
    """ splits part on and/or keywords outside of parentheses and quotes

    returns the pieces and the keywords in the order they were seen
    """

    pieces:list[str] = []
    keywords:list[str] = []
    last = 0
    for m in KEYWORD_RE.finditer(part):
        prefix = part[:m.start()]
        if prefix.count("(") != prefix.count(")") or prefix.count('"') % 2 == 1:
            continue
        pieces.append(part[last:m.start()])
        keywords.append(m.group(1))
        last = m.end()
    pieces.append(part[last:])
    return pieces, keywords

def split_clauses(expr:str) -> tuple[list[str], Optional[str]]:
    """ splits an expression into clause strings

    Returns the clauses and the combinator keyword spelled out in the
    expression, if any.
    """

    clauses:list[str] = []
    seen:list[str] = []
    for part in scanner.split_top_level(expr, ","):
        pieces, keywords = _split_keywords(part)
        clauses.extend(pieces)
        seen.extend(keywords)

    if not seen:
        return clauses, None

    combinator = seen[0]
    if any(k != combinator for k in seen):
        logger.warning(f'condition "{expr}" mixes and/or, treating every clause as "{combinator}"')
    return clauses, combinator

def parse(expr:str, any_of:bool=False) -> predicates.Criteria[EvaluationContext]:
    """ parses expr into a predicate tree

    Raises ConditionError for malformed expressions. An empty expression is
    always true.
    """

    if not expr.strip():
        return predicates.Literal(True)

    clauses, combinator = split_clauses(expr)
    if combinator is not None:
        any_of = combinator == "or"

    criteria = [parse_clause(c) for c in clauses]
    if any_of:
        return predicates.disjoin(criteria)
    else:
        return predicates.conjoin(criteria)

def evaluate(
    expr:str,
    context:FlagLookup,
    any_of:bool=False,
    registry:Optional[ConditionRegistry]=None,
) -> bool:
    """ Evaluates a condition expression against context.

    Parameters
    ----------
    expr : str
        the condition, e.g. "gold >= 10, !door_locked"
    context : FlagLookup
        where flag values come from
    any_of : bool
        comma separated clauses need just one to pass (ifOr semantics)
        instead of all of them (if semantics)
    registry : ConditionRegistry, optional
        registered condition functions

    Returns
    -------
    out : bool
        the result, False if the expression could not be evaluated
    """

    try:
        criteria = parse(expr, any_of)
        result = criteria.evaluate(EvaluationContext(context, registry))
    except ConditionError as e:
        logger.warning(f'invalid condition "{expr}": {e}')
        return False
    except Exception as e:
        logger.warning(f'error evaluating condition "{expr}": {e!r}')
        return False

    logger.debug(f'condition "{expr}" -> {result}')
    return result

def _clause_value(value:Any) -> Optional[Union[str, bool]]:
    if isinstance(value, bool):
        return value
    elif isinstance(value, str):
        return value
    elif isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    elif isinstance(value, (int, float)):
        return util.truthy(value)
    return None

def evaluate_params(
    params:Optional[Mapping[str, Any]],
    context:FlagLookup,
    active:bool=False,
    registry:Optional[ConditionRegistry]=None,
) -> bool:
    """ evaluates the if/ifOr (or active/activeOr) clauses of params

    Missing clauses pass. When both the plain and the Or clause are present
    both must pass. Boolean clause values are taken literally.
    """

    if params is None:
        return True

    key, or_key = ACTIVE_KEYS if active else IF_KEYS
    primary = _clause_value(params.get(key))
    alternative = _clause_value(params.get(or_key))

    passes = True
    if isinstance(primary, bool):
        passes = primary
    elif isinstance(primary, str):
        passes = evaluate(primary, context, registry=registry)

    if not passes:
        return False

    if isinstance(alternative, bool):
        return alternative
    elif isinstance(alternative, str):
        return evaluate(alternative, context, any_of=True, registry=registry)
    return passes
