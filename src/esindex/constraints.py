"""
esindex Constraints — Parsed Query Criteria
===========================================

Immutable representation of a query's WHERE clause as handed over by the
host repository's query engine. The compiler in ``operations`` lowers these
nodes into Elasticsearch query DSL.

Operands come in two closed families:

    DynamicOperand   resolves to a field name  (PropertyValue, NodePath, ...)
    StaticOperand    resolves to a value       (Literal, BindVariableValue)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Union


class Operator(Enum):
    EQUAL_TO = "="
    NOT_EQUAL_TO = "!="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL_TO = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL_TO = "<="
    LIKE = "LIKE"


# Dynamic operands

@dataclass(frozen=True)
class PropertyValue:
    property_name: str
    selector_name: str = ""


@dataclass(frozen=True)
class NodePath:
    selector_name: str = ""


@dataclass(frozen=True)
class NodeDepth:
    selector_name: str = ""


@dataclass(frozen=True)
class NodeName:
    selector_name: str = ""


@dataclass(frozen=True)
class NodeLocalName:
    selector_name: str = ""


@dataclass(frozen=True)
class LowerCase:
    operand: "DynamicOperand"


@dataclass(frozen=True)
class UpperCase:
    operand: "DynamicOperand"


@dataclass(frozen=True)
class Length:
    property_value: PropertyValue


DynamicOperand = Union[
    PropertyValue, NodePath, NodeDepth, NodeName, NodeLocalName,
    LowerCase, UpperCase, Length,
]


# Static operands

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class BindVariableValue:
    variable_name: str


StaticOperand = Union[Literal, BindVariableValue]


# Constraints

@dataclass(frozen=True)
class Between:
    operand: DynamicOperand
    lower_bound: StaticOperand
    upper_bound: StaticOperand
    lower_bound_included: bool = True
    upper_bound_included: bool = True


@dataclass(frozen=True)
class And:
    constraint1: "Constraint"
    constraint2: "Constraint"


@dataclass(frozen=True)
class Or:
    constraint1: "Constraint"
    constraint2: "Constraint"


@dataclass(frozen=True)
class Not:
    constraint: "Constraint"


@dataclass(frozen=True)
class Comparison:
    operand1: DynamicOperand
    operator: Operator
    operand2: StaticOperand


@dataclass(frozen=True)
class SetCriteria:
    operand: DynamicOperand
    values: Tuple[StaticOperand, ...]

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True)
class PropertyExistence:
    property_name: str
    selector_name: str = ""


@dataclass(frozen=True)
class FullTextSearch:
    expression: str
    property_name: str = ""
    selector_name: str = ""


Constraint = Union[
    Between, And, Or, Not, Comparison, SetCriteria, PropertyExistence, FullTextSearch,
]


@dataclass(frozen=True)
class IndexConstraints:
    """Constraints applicable to one index plus the query's variable bindings."""

    constraints: Tuple[Constraint, ...] = ()
    variables: Dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "constraints", tuple(self.constraints))


def _fold(kind, constraints: Iterable[Constraint]) -> Constraint:
    items: List[Constraint] = list(constraints)
    if not items:
        raise ValueError(f"Cannot build {kind.__name__} over no constraints")
    result = items[0]
    for item in items[1:]:
        result = kind(result, item)
    return result


def and_all(constraints: Sequence[Constraint]) -> Constraint:
    """Fold constraints into a left-leaning And tree."""
    return _fold(And, constraints)


def or_all(constraints: Sequence[Constraint]) -> Constraint:
    """Fold constraints into a left-leaning Or tree."""
    return _fold(Or, constraints)
