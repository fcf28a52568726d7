"""
esindex Results — Paginated Search Results
==========================================

Streams the hits of a compiled query back to the caller page by page, as
(node key, relevance score) pairs.
"""

import logging
from typing import Any, Dict, Iterator, List, Protocol, Tuple

from elasticsearch import ApiError, NotFoundError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class ResultWriter(Protocol):
    """Sink receiving one call per matching node."""

    def add(self, node_key: str, score: float) -> None:
        ...


class _ListWriter:
    def __init__(self):
        self.items: List[Tuple[str, float]] = []

    def add(self, node_key: str, score: float) -> None:
        self.items.append((node_key, score))


class SearchResults:
    """
    Results of one search request.

    The cursor is private to this instance. Once ``get_next_batch`` has
    reported that no results remain the instance is exhausted.

    Example:
        results = SearchResults(client, "titles-default", {"match_all": {}})
        for key, score in results:
            print(key, score)
    """

    def __init__(self, client, index_name: str, query: Dict[str, Any]):
        self._client = client
        self.index_name = index_name
        self.query = query
        self._pos = 0
        self._exhausted = False

    def get_next_batch(self, writer: ResultWriter, batch_size: int = DEFAULT_BATCH_SIZE) -> bool:
        """
        Fetch the next page and hand every hit to ``writer``.

        Args:
            writer: Sink with an ``add(node_key, score)`` method
            batch_size: Maximum hits per page

        Returns:
            True if more results remain after this page
        """
        if self._exhausted:
            return False

        try:
            response = self._client.search(
                index=self.index_name,
                query=self.query,
                from_=self._pos,
                size=batch_size,
                track_total_hits=True
            )
        except NotFoundError:
            logger.debug("Index %s does not exist; no results", self.index_name)
            self._exhausted = True
            return False

        hits = response["hits"]
        page = hits["hits"][:batch_size]

        for hit in page:
            writer.add(hit["_id"], hit.get("_score") or 0.0)

        self._pos += len(page)
        more = bool(page) and self._pos < _total_hits(hits)
        if not more:
            self._exhausted = True
        return more

    def cardinality(self) -> int:
        """
        Total number of hits, without paging through them.

        Count queries are best effort: any backend failure yields 0.
        """
        try:
            response = self._client.count(index=self.index_name, query=self.query)
            return int(response["count"])
        except (ApiError, TransportError) as e:
            logger.debug("Count against %s failed: %s", self.index_name, e)
            return 0

    def __iter__(self) -> Iterator[Tuple[str, float]]:
        more = True
        while more:
            writer = _ListWriter()
            more = self.get_next_batch(writer)
            yield from writer.items

    def close(self):
        """Release the cursor."""
        self._exhausted = True


class EmptyResults:
    """Results for an index that does not exist."""

    def get_next_batch(self, writer: ResultWriter, batch_size: int = DEFAULT_BATCH_SIZE) -> bool:
        return False

    def cardinality(self) -> int:
        return 0

    def __iter__(self) -> Iterator[Tuple[str, float]]:
        return iter(())

    def close(self):
        pass


def _total_hits(hits: Dict[str, Any]) -> int:
    total = hits.get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total)
