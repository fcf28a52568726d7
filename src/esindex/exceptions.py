"""
esindex Exceptions
==================

Errors raised by the index adapter. Backend failures surface as the
Elasticsearch client's own ``ApiError``/``TransportError`` types; the
classes here cover contract violations on our side of the boundary.
"""


class EsIndexError(Exception):
    """Base exception for all esindex errors."""
    pass


class UnknownColumnError(EsIndexError):
    """Raised when a mutation names a property the index does not declare."""

    def __init__(self, index_name: str, property_name: str):
        self.index_name = index_name
        self.property_name = property_name
        super().__init__(
            f"Unexpected column '{property_name}' for the index '{index_name}'"
        )


class ColumnConflictError(EsIndexError):
    """Raised when two columns would share a physical field name."""
    pass


class UnsupportedConstraintError(EsIndexError):
    """Raised when the compiler meets a constraint or operand it cannot lower."""

    def __init__(self, node):
        self.node = node
        super().__init__(f"Unsupported constraint or operand: {type(node).__name__}")


class UnboundVariableError(EsIndexError):
    """Raised when a query references a bind variable with no value."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No value bound for variable '{name}'")


class ConnectionFailedError(EsIndexError):
    """Raised when the provider cannot reach a healthy cluster."""
    pass


class ProviderStateError(EsIndexError):
    """Raised when the provider is used outside the HEALTHY state."""
    pass
