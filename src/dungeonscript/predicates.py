""" A boolean logic predicate library

Condition expressions are parsed into a tree of these for the duration of a
single evaluation. Nothing holds on to a tree between calls.
"""

import abc
import functools
from collections.abc import Sequence
from typing import TypeVar, Generic

T = TypeVar('T')

class Criteria(Generic[T], abc.ABC):
    @abc.abstractmethod
    def evaluate(self, universe:T) -> bool: ...

class Literal(Criteria[T]):
    def __init__(self, value:bool) -> None:
        self.value = value

    def evaluate(self, universe:T) -> bool:
        return self.value

    def __str__(self) -> str:
        return "true" if self.value else "false"

class Negation(Criteria[T]):
    def __init__(self, inner:Criteria[T]) -> None:
        self.inner = inner

    def evaluate(self, universe:T) -> bool:
        return not self.inner.evaluate(universe)

    def __str__(self) -> str:
        return f'!{self.inner}'

class Disjunction(Criteria[T]):
    def __init__(self, a:Criteria[T], b:Criteria[T]) -> None:
        self.a = a
        self.b = b

    def evaluate(self, universe:T) -> bool:
        return self.a.evaluate(universe) or self.b.evaluate(universe)

    def __str__(self) -> str:
        return f'({self.a} or {self.b})'

class Conjunction(Criteria[T]):
    def __init__(self, a:Criteria[T], b:Criteria[T]) -> None:
        self.a = a
        self.b = b

    def evaluate(self, universe:T) -> bool:
        return self.a.evaluate(universe) and self.b.evaluate(universe)

    def __str__(self) -> str:
        return f'({self.a} and {self.b})'

def conjoin(criteria:Sequence[Criteria[T]]) -> Criteria[T]:
    """ left folds criteria into nested conjunctions, true when empty """
    if len(criteria) == 0:
        return Literal(True)
    return functools.reduce(Conjunction, criteria)

def disjoin(criteria:Sequence[Criteria[T]]) -> Criteria[T]:
    """ left folds criteria into nested disjunctions, false when empty """
    if len(criteria) == 0:
        return Literal(False)
    return functools.reduce(Disjunction, criteria)
