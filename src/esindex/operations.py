"""
esindex Operations — Constraint Compiler
========================================

Lowers a constraint tree into Elasticsearch query DSL. One query clause is
produced per constraint node, with the same nesting; LIKE is the only
constraint whose output shape differs from its input.

    Constraint             Query DSL
    ----------             ---------
    And(a, b)              {"bool": {"must": [a, b]}}
    Or(a, b)               {"bool": {"should": [a, b], "minimum_should_match": 1}}
    Not(a)                 {"bool": {"must_not": [a]}}
    Between                {"range": ...}
    Comparison             match / range / wildcard / query_string
    SetCriteria            {"terms": ...}
    PropertyExistence      {"exists": ...}
    FullTextSearch         {"query_string": ...}

Dispatch goes through closed tables keyed by node class; a node whose class
is not in the table is a programming error, never a silently dropped clause.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .columns import (
    LENGTH_PREFIX,
    LOWERCASE_PREFIX,
    UPPERCASE_PREFIX,
    IndexColumns,
    string_value,
    to_long,
)
from .constraints import (
    And,
    Between,
    BindVariableValue,
    Comparison,
    FullTextSearch,
    Length,
    Literal,
    LowerCase,
    NodeDepth,
    NodeLocalName,
    NodeName,
    NodePath,
    Not,
    Operator,
    Or,
    PropertyExistence,
    PropertyValue,
    SetCriteria,
    UpperCase,
)
from .exceptions import UnboundVariableError, UnsupportedConstraintError

logger = logging.getLogger(__name__)

# Well-known fields maintained by the host repository for every node
NODE_PATH_FIELD = "jcr:path"
NODE_NAME_FIELD = "jcr:name"
NODE_DEPTH_FIELD = "mode:depth"
NODE_LOCALNAME_FIELD = "mode:localName"

LIKE_WILDCARD = "%"

_COLLECTIONS = (list, tuple, set, frozenset)

Query = Dict[str, Any]


def match_all() -> Query:
    return {"match_all": {}}


def query_string(text: str) -> Query:
    return {"query_string": {"query": text}}


def and_query(left: Query, right: Query) -> Query:
    return {"bool": {"must": [left, right]}}


def or_query(left: Query, right: Query) -> Query:
    return {"bool": {"should": [left, right], "minimum_should_match": 1}}


def not_query(query: Query) -> Query:
    return {"bool": {"must_not": [query]}}


def range_query(field: str, **bounds) -> Query:
    return {"range": {field: bounds}}


class Operations:
    """
    Compiles constraints against the columns of one index.

    Example:
        ops = Operations(columns)
        query = ops.create_filter(
            [Comparison(PropertyValue("year"), Operator.GREATER_THAN, Literal("2020"))],
            {}
        )
        # {"bool": {"must": [{"range": {"year": {"gt": 2020}}}]}}
    """

    def __init__(self, columns: IndexColumns):
        self.columns = columns

        self._constraints: Dict[type, Callable[[Any, Mapping[str, Any]], Query]] = {
            Between: self._between,
            Or: self._or,
            And: self._and,
            Not: self._not,
            Comparison: self._comparison,
            SetCriteria: self._set_criteria,
            PropertyExistence: self._property_existence,
            FullTextSearch: self._full_text_search,
        }

        self._dynamic: Dict[type, Callable[[Any, Mapping[str, Any]], str]] = {
            PropertyValue: lambda op, variables: op.property_name,
            NodePath: lambda op, variables: NODE_PATH_FIELD,
            NodeDepth: lambda op, variables: NODE_DEPTH_FIELD,
            NodeName: lambda op, variables: NODE_NAME_FIELD,
            NodeLocalName: lambda op, variables: NODE_LOCALNAME_FIELD,
            LowerCase: lambda op, variables: LOWERCASE_PREFIX + self.field_name(op.operand, variables),
            UpperCase: lambda op, variables: UPPERCASE_PREFIX + self.field_name(op.operand, variables),
            Length: lambda op, variables: LENGTH_PREFIX + op.property_value.property_name,
        }

        self._static: Dict[type, Callable[[str, Any, Mapping[str, Any]], Any]] = {
            Literal: self._literal,
            BindVariableValue: self._bind_variable,
        }

    def create_filter(
        self,
        constraints: Iterable[Any],
        variables: Optional[Mapping[str, Any]] = None
    ) -> Query:
        """
        Compile a collection of constraints that must all hold.

        No constraints at all means an unconstrained scan.
        """
        constraints = list(constraints)
        if not constraints:
            return match_all()

        variables = variables or {}
        must = [self.build(c, variables) for c in constraints]
        logger.debug("Compiled %d constraint(s) into a bool query", len(must))
        return {"bool": {"must": must}}

    def build(self, constraint: Any, variables: Mapping[str, Any]) -> Query:
        """Compile a single constraint node and its children."""
        builder = self._constraints.get(type(constraint))
        if builder is None:
            raise UnsupportedConstraintError(constraint)
        return builder(constraint, variables)

    def field_name(self, operand: Any, variables: Mapping[str, Any]) -> str:
        """Resolve a dynamic operand to the physical field it reads."""
        resolver = self._dynamic.get(type(operand))
        if resolver is None:
            raise UnsupportedConstraintError(operand)
        return resolver(operand, variables)

    def value(self, field: str, operand: Any, variables: Mapping[str, Any]) -> Any:
        """Resolve a static operand to a value comparable with ``field``."""
        resolver = self._static.get(type(operand))
        if resolver is None:
            raise UnsupportedConstraintError(operand)
        return resolver(field, operand, variables)

    # Constraints

    def _between(self, between: Between, variables) -> Query:
        field = self.field_name(between.operand, variables)
        low = self.value(field, between.lower_bound, variables)
        high = self.value(field, between.upper_bound, variables)

        bounds = {
            "gte" if between.lower_bound_included else "gt": low,
            "lte" if between.upper_bound_included else "lt": high,
        }
        return range_query(field, **bounds)

    def _or(self, constraint: Or, variables) -> Query:
        return or_query(
            self.build(constraint.constraint1, variables),
            self.build(constraint.constraint2, variables)
        )

    def _and(self, constraint: And, variables) -> Query:
        return and_query(
            self.build(constraint.constraint1, variables),
            self.build(constraint.constraint2, variables)
        )

    def _not(self, constraint: Not, variables) -> Query:
        return not_query(self.build(constraint.constraint, variables))

    def _comparison(self, comp: Comparison, variables) -> Query:
        field = self.field_name(comp.operand1, variables)
        value = self.value(field, comp.operand2, variables)
        op = comp.operator

        if op is Operator.EQUAL_TO:
            if isinstance(value, list):
                return {"terms": {field: value}}
            return {"match": {field: value}}
        if op is Operator.GREATER_THAN:
            return range_query(field, gt=value)
        if op is Operator.GREATER_THAN_OR_EQUAL_TO:
            return range_query(field, gte=value)
        if op is Operator.LESS_THAN:
            return range_query(field, lt=value)
        if op is Operator.LESS_THAN_OR_EQUAL_TO:
            return range_query(field, lte=value)
        if op is Operator.NOT_EQUAL_TO:
            # negated single-point range rather than a native not-equal
            return not_query(range_query(field, gte=value, lte=value))
        if op is Operator.LIKE:
            return self._like(field, string_value(value))
        raise UnsupportedConstraintError(comp)

    def _like(self, field: str, pattern: str) -> Query:
        """
        Compile a LIKE pattern.

        The pattern is split on whitespace. Terms carrying ``%`` become
        wildcard queries on the field (``%`` -> ``*``); other terms become
        free-text queries. The term queries are ANDed left to right.
        A plain multi-word pattern such as "foo bar" is split the same way,
        giving one free-text query per word.
        """
        terms = pattern.split()
        if not terms:
            return query_string(pattern)

        queries = [
            {"wildcard": {field: {"value": term.replace(LIKE_WILDCARD, "*")}}}
            if LIKE_WILDCARD in term else query_string(term)
            for term in terms
        ]

        result = queries[0]
        for query in queries[1:]:
            result = and_query(result, query)
        return result

    def _set_criteria(self, criteria: SetCriteria, variables) -> Query:
        field = self.field_name(criteria.operand, variables)
        values: List[Any] = []

        for operand in criteria.values:
            resolved = self.value(field, operand, variables)
            if isinstance(resolved, list):
                values.extend(resolved)
            elif resolved is not None:
                values.append(resolved)

        return {"terms": {field: values}}

    def _property_existence(self, pe: PropertyExistence, variables) -> Query:
        return {"exists": {"field": pe.property_name}}

    def _full_text_search(self, fts: FullTextSearch, variables) -> Query:
        return query_string(fts.expression)

    # Static operands

    def _literal(self, field: str, literal: Literal, variables) -> Any:
        return self._convert(field, literal.value)

    def _bind_variable(self, field: str, bind: BindVariableValue, variables) -> Any:
        name = bind.variable_name
        if name not in variables:
            raise UnboundVariableError(name)

        value = variables[name]
        if type(value) in self._static:
            return self.value(field, value, variables)
        if type(value) in self._dynamic:
            return self.field_name(value, variables)
        return self._convert(field, value)

    def _convert(self, field: str, value: Any) -> Any:
        """Cast a raw value for comparison against ``field``."""
        if value is None:
            return None
        if isinstance(value, _COLLECTIONS):
            return [self._convert(field, v) for v in value]

        prefix = self.columns.prefix_of(field)
        if prefix == LENGTH_PREFIX:
            return to_long(value)
        if prefix in (LOWERCASE_PREFIX, UPPERCASE_PREFIX):
            return string_value(value)

        column = self.columns.column(field)
        if column is None:
            return value
        return column.column_value(column.cast(value))
