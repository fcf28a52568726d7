"""
esindex Core — Elasticsearch-Backed Secondary Index
===================================================

Keeps a queryable copy of selected node properties in Elasticsearch:

    Repository node  →  one document per node key  →  raw + shadow fields

The repository stays authoritative. Whenever the copy is missing or stale it
is rebuilt from the repository, so reads treat a missing index or document
as empty rather than as an error.

Every mutation is a read-merge-write of the whole document followed by an
index refresh, so a write is visible to the next query.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from elasticsearch import (
    ApiError,
    BadRequestError,
    Elasticsearch,
    NotFoundError,
    TransportError,
)

from .columns import IndexColumn, IndexColumns
from .config import ConnectionSettings
from .constraints import IndexConstraints
from .definition import IndexDefinition
from .exceptions import UnknownColumnError
from .operations import Operations
from .results import EmptyResults, SearchResults

logger = logging.getLogger(__name__)

_MULTI = (list, tuple)


class EsIndex:
    """
    One logical index stored as one Elasticsearch index.

    The physical index name is ``<definition name>-<workspace>`` in lower
    case, so each workspace of the repository gets its own index.

    Example:
        defn = IndexDefinition.of("titles", [("jcr:title", "string")])
        index = EsIndex(defn, "default")

        index.add("node-1", "jcr:title", "The Title")
        results = index.filter(IndexConstraints([
            Comparison(PropertyValue("jcr:title"), Operator.LIKE, Literal("Tit%"))
        ]))

        # Production cluster
        index = EsIndex(
            defn, "default",
            settings=ConnectionSettings(hosts=["https://es1:9200"], api_key="...")
        )
    """

    def __init__(
        self,
        definition: IndexDefinition,
        workspace: str,
        client: Optional[Elasticsearch] = None,
        settings: Optional[ConnectionSettings] = None,
        columns: Optional[IndexColumns] = None,
        shards: int = 1,
        replicas: int = 1,
        create_if_missing: bool = True,
        recreate: bool = False
    ):
        """
        Open or create an index.

        Args:
            definition: Columns of this index
            workspace: Repository workspace the index covers
            client: Elasticsearch client (built from ``settings`` if None)
            settings: Connection settings used when no client is given
            columns: Pre-built column registry (defaults to the definition's)
            shards: Number of primary shards
            replicas: Number of replica shards
            create_if_missing: Create the index if it doesn't exist
            recreate: Drop any existing index first
        """
        self.definition = definition
        self.workspace = workspace
        self.shards = shards
        self.replicas = replicas
        self.columns = columns if columns is not None else definition.index_columns()
        self.operations = Operations(self.columns)

        owns_client = client is None
        if owns_client:
            client = Elasticsearch(**(settings or ConnectionSettings()).client_kwargs())
        self._client = client

        try:
            if recreate:
                self._delete_index()
            if create_if_missing and not self._client.indices.exists(index=self.index_name):
                self._create_index()
        except BaseException:
            # a caller-supplied client stays open
            if owns_client:
                self._client.close()
            raise

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def index_name(self) -> str:
        return f"{self.definition.name}-{self.workspace}".lower()

    def _create_index(self):
        """Create the index with one mapping entry per physical field."""
        logger.info("Creating index %s with %d column(s)", self.index_name, len(self.columns))
        try:
            self._client.indices.create(
                index=self.index_name,
                settings={
                    "number_of_shards": self.shards,
                    "number_of_replicas": self.replicas
                },
                mappings=self.columns.mapping()
            )
        except BadRequestError as e:
            # another node created it first
            if "resource_already_exists_exception" not in str(e):
                raise
        self._refresh()

    def _delete_index(self):
        try:
            self._client.indices.delete(index=self.index_name)
        except NotFoundError:
            pass

    def _refresh(self):
        self._client.indices.refresh(index=self.index_name)

    def _column(self, property_name: str) -> IndexColumn:
        column = self.columns.column(property_name)
        if column is None:
            raise UnknownColumnError(self.index_name, property_name)
        return column

    # Reads

    def get_document(self, node_key: str) -> Dict[str, Any]:
        """
        Current document for a node.

        Returns an empty dict when the node, the index or the backend is
        unavailable.
        """
        found = self._find(node_key)
        return found if found is not None else {}

    def _find(self, node_key: str) -> Optional[Dict[str, Any]]:
        try:
            response = self._client.get(index=self.index_name, id=node_key)
        except NotFoundError:
            return None
        except (ApiError, TransportError) as e:
            logger.warning("Could not read %s from %s: %s", node_key, self.index_name, e)
            return None
        return dict(response["_source"] or {})

    # Mutations

    def add(self, node_key: str, property_name: str, value: Any) -> None:
        """
        Add or replace a property value of a node.

        A list or tuple is stored as a multi-valued property.

        Args:
            node_key: Key of the node in the repository
            property_name: Declared column name
            value: Single value, or list/tuple of values
        """
        if node_key is None or property_name is None or value is None:
            raise ValueError("node_key, property_name and value are required")

        column = self._column(property_name)
        doc = self.get_document(node_key)

        if isinstance(value, _MULTI):
            doc[column.name] = column.column_values(value)
            doc.update(column.derived_values_many(value))
        else:
            doc[column.name] = column.column_value(value)
            doc.update(column.derived_values(value))

        self._write(node_key, doc)

    def remove(
        self,
        node_key: str,
        property_name: Optional[str] = None,
        value: Any = None
    ) -> None:
        """
        Remove a whole node, or one property of it.

        Removing a property drops its raw field and its shadow fields. A
        document left with no fields is deleted.

        Args:
            node_key: Key of the node in the repository
            property_name: Property to remove; None removes the node
            value: Value(s) being removed; the whole property goes regardless
        """
        if node_key is None:
            raise ValueError("node_key is required")

        if property_name is None:
            self._delete(node_key)
            return

        doc = self._find(node_key)
        if doc is None:
            return

        column = self.columns.column(property_name)
        fields = column.field_names() if column is not None else [property_name]
        for field_name in fields:
            doc.pop(field_name, None)

        try:
            if doc:
                self._write(node_key, doc)
            else:
                self._delete(node_key)
        except NotFoundError:
            logger.debug("Index %s vanished while removing %s", self.index_name, property_name)

    def _write(self, node_key: str, doc: Dict[str, Any]):
        self._client.index(index=self.index_name, id=node_key, document=doc)
        self._refresh()

    def _delete(self, node_key: str):
        try:
            self._client.delete(index=self.index_name, id=node_key)
        except NotFoundError:
            return
        self._refresh()

    def commit(self) -> None:
        """Flush pending changes to durable storage."""
        self._client.indices.flush(index=self.index_name)

    # Queries

    def filter(self, constraints: IndexConstraints):
        """
        Search for nodes matching all constraints.

        Returns:
            SearchResults, or EmptyResults if the index doesn't exist
        """
        query = self.operations.create_filter(constraints.constraints, constraints.variables)
        if not self._exists():
            return EmptyResults()
        return SearchResults(self._client, self.index_name, query)

    def estimate_cardinality(
        self,
        constraints: Sequence[Any],
        variables: Optional[Mapping[str, Any]] = None
    ) -> int:
        """Number of nodes matching all constraints; 0 if the count fails."""
        query = self.operations.create_filter(constraints, variables or {})
        return SearchResults(self._client, self.index_name, query).cardinality()

    def estimate_total_count(self) -> int:
        """Number of documents in the index; 0 if the count fails."""
        try:
            return int(self._client.count(index=self.index_name)["count"])
        except (ApiError, TransportError) as e:
            logger.debug("Count against %s failed: %s", self.index_name, e)
            return 0

    # Lifecycle

    def _exists(self) -> bool:
        try:
            return bool(self._client.indices.exists(index=self.index_name))
        except (ApiError, TransportError) as e:
            logger.warning("Could not check index %s: %s", self.index_name, e)
            return False

    def requires_reindexing(self) -> bool:
        """True if the physical index is gone and must be rebuilt."""
        return not self._exists()

    def clear_all_data(self) -> None:
        """Drop the whole index. Best effort."""
        try:
            self._client.indices.delete(index=self.index_name)
        except (ApiError, TransportError) as e:
            logger.debug("Could not delete index %s: %s", self.index_name, e)

    def shutdown(self, destroyed: bool = False) -> None:
        """
        Release the connection, deleting the index first if destroyed.

        The connection is closed even when the delete fails.
        """
        try:
            if destroyed:
                self.clear_all_data()
        finally:
            self.close()

    def close(self):
        """Close the Elasticsearch client connection."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return f"EsIndex({self.index_name!r}, columns={[c.name for c in self.columns]!r})"
