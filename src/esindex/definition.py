"""
esindex Definition — Index Definitions
======================================

The host repository describes each index as an ordered list of
(property name, property type) pairs. That description is consumed once,
when the index is opened, to build its column registry and mapping.
"""

from dataclasses import dataclass, field
from typing import Iterable, Tuple, Union

from .columns import IndexColumn, IndexColumns, PropertyType


@dataclass(frozen=True)
class IndexColumnDefinition:
    """One indexed property."""

    property_name: str
    column_type: PropertyType = PropertyType.STRING

    def __post_init__(self):
        object.__setattr__(self, "column_type", PropertyType.value_for(self.column_type))


@dataclass(frozen=True)
class IndexDefinition:
    """
    Definition of one logical index.

    Example:
        defn = IndexDefinition.of("titles", [("jcr:title", "string"), ("year", "long")])
    """

    name: str
    columns: Tuple[IndexColumnDefinition, ...] = field(default_factory=tuple)
    description: str = ""

    @classmethod
    def of(
        cls,
        name: str,
        columns: Iterable[Union[IndexColumnDefinition, Tuple[str, Union[str, PropertyType]]]],
        description: str = ""
    ) -> "IndexDefinition":
        """Build a definition from column definitions or (name, type) pairs."""
        defs = tuple(
            c if isinstance(c, IndexColumnDefinition) else IndexColumnDefinition(*c)
            for c in columns
        )
        return cls(name=name, columns=defs, description=description)

    def __len__(self) -> int:
        return len(self.columns)

    def index_columns(self) -> IndexColumns:
        """Build the column registry for this definition."""
        return IndexColumns(*(
            IndexColumn(c.property_name, c.column_type) for c in self.columns
        ))
