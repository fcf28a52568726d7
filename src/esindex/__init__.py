"""
esindex — Elasticsearch Secondary Index for Content Repositories
================================================================

Maintains a queryable copy of selected node properties in Elasticsearch
and answers structured boolean queries against it.

Key Features:
- Typed columns with length/lowercase/uppercase shadow fields
- Constraint trees compiled to Elasticsearch query DSL
- Read-your-writes: every mutation is refreshed before returning
- Paginated (key, score) results and count-only estimates

Usage:
    from esindex import EsIndex, IndexDefinition, IndexConstraints
    from esindex.constraints import Comparison, Literal, Operator, PropertyValue

    defn = IndexDefinition.of("titles", [("jcr:title", "string")])
    index = EsIndex(defn, "default")

    index.add("node-1", "jcr:title", "The Title")

    results = index.filter(IndexConstraints([
        Comparison(PropertyValue("jcr:title"), Operator.EQUAL_TO, Literal("Title"))
    ]))
    for key, score in results:
        print(key, score)

License: Apache-2.0
"""

import logging

__version__ = "0.1.0"

from .columns import IndexColumn, IndexColumns, PropertyType
from .config import ConnectionSettings
from .constraints import IndexConstraints
from .core import EsIndex
from .definition import IndexColumnDefinition, IndexDefinition
from .exceptions import (
    ColumnConflictError,
    ConnectionFailedError,
    EsIndexError,
    ProviderStateError,
    UnboundVariableError,
    UnknownColumnError,
    UnsupportedConstraintError,
)
from .operations import Operations
from .provider import ConnectionState, IndexProvider
from .results import EmptyResults, SearchResults

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ColumnConflictError",
    "ConnectionFailedError",
    "ConnectionSettings",
    "ConnectionState",
    "EmptyResults",
    "EsIndex",
    "EsIndexError",
    "IndexColumn",
    "IndexColumnDefinition",
    "IndexColumns",
    "IndexConstraints",
    "IndexDefinition",
    "IndexProvider",
    "Operations",
    "PropertyType",
    "ProviderStateError",
    "SearchResults",
    "UnboundVariableError",
    "UnknownColumnError",
    "UnsupportedConstraintError",
]
