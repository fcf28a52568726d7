"""
esindex Provider — Cluster Connection Lifecycle
===============================================

Owns the connection to the Elasticsearch cluster and opens indexes on it.

The connection moves through an explicit set of states:

    DISCONNECTED → CONNECTING → HEALTHY → SHUTTING_DOWN → DISCONNECTED

``initialize()`` retries a bounded number of times; if the cluster never
reaches the required health the provider goes back to DISCONNECTED and
raises ``ConnectionFailedError``. Nothing else hands out a half-connected
client.
"""

import logging
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from elasticsearch import ApiError, Elasticsearch, TransportError

from .config import ConnectionSettings
from .core import EsIndex
from .definition import IndexDefinition
from .exceptions import ConnectionFailedError, ProviderStateError

logger = logging.getLogger(__name__)

NUMBER_OF_TRIES = 5

_STATUS_RANK = {"red": 0, "yellow": 1, "green": 2}


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HEALTHY = "healthy"
    SHUTTING_DOWN = "shutting_down"


class IndexProvider:
    """
    Elasticsearch index provider for one repository.

    Example:
        provider = IndexProvider(ConnectionSettings(hosts=["http://localhost:9200"]))
        provider.initialize()

        index = provider.get_index(defn, "default")
        ...
        provider.shutdown()
    """

    def __init__(
        self,
        settings: Optional[ConnectionSettings] = None,
        repository_name: str = "",
        wait_for_status: str = "green",
        max_attempts: int = NUMBER_OF_TRIES,
        health_timeout: str = "30s",
        retry_delay: float = 1.0,
        client_factory: Callable[..., Elasticsearch] = Elasticsearch
    ):
        """
        Initialize the provider. No connection is made until ``initialize()``.

        Args:
            settings: Connection settings for the cluster
            repository_name: Name of the repository, used in log messages
            wait_for_status: Minimum cluster health ("green", "yellow")
            max_attempts: Connection attempts before giving up
            health_timeout: How long each health request may wait
            retry_delay: Seconds to sleep between attempts
            client_factory: Builds a client from ``settings.client_kwargs()``
        """
        if wait_for_status not in _STATUS_RANK:
            raise ValueError(f"Unknown cluster status: {wait_for_status!r}")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.settings = settings or ConnectionSettings()
        self.repository_name = repository_name
        self.wait_for_status = wait_for_status
        self.max_attempts = max_attempts
        self.health_timeout = health_timeout
        self.retry_delay = retry_delay
        self._client_factory = client_factory

        self._client: Optional[Elasticsearch] = None
        self._state = ConnectionState.DISCONNECTED
        self._indexes: Dict[Tuple[str, str], EsIndex] = {}

    @property
    def state(self) -> ConnectionState:
        return self._state

    def initialize(self) -> None:
        """
        Connect and wait for the cluster to become healthy.

        Raises:
            ConnectionFailedError: the cluster never reached the required status
            ProviderStateError: called while not DISCONNECTED
        """
        if self._state is not ConnectionState.DISCONNECTED:
            raise ProviderStateError(f"Cannot initialize provider in state {self._state.value}")

        self._state = ConnectionState.CONNECTING
        status = None

        try:
            for attempt in range(1, self.max_attempts + 1):
                self._disconnect()
                self._client = self._client_factory(**self.settings.client_kwargs())

                logger.debug(
                    "Index provider for repository '%s' connecting to %s (attempt %d/%d)",
                    self.repository_name, self.settings.hosts, attempt, self.max_attempts
                )
                status = self._health_status()
                if status is not None and _STATUS_RANK.get(status, -1) >= _STATUS_RANK[self.wait_for_status]:
                    self._state = ConnectionState.HEALTHY
                    logger.info(
                        "Index provider for repository '%s' got %s light from the cluster",
                        self.repository_name, status
                    )
                    return

                if attempt < self.max_attempts and self.retry_delay > 0:
                    time.sleep(self.retry_delay)
        except BaseException:
            self._disconnect()
            self._state = ConnectionState.DISCONNECTED
            raise

        self._disconnect()
        self._state = ConnectionState.DISCONNECTED
        logger.error("Could not connect to cluster, last status: %s", status)
        raise ConnectionFailedError(
            f"Could not connect to elasticsearch cluster at {self.settings.hosts} "
            f"(last status: {status})"
        )

    def _health_status(self) -> Optional[str]:
        try:
            health = self._client.cluster.health(
                wait_for_status=self.wait_for_status,
                timeout=self.health_timeout
            )
        except (ApiError, TransportError) as e:
            logger.warning("Cluster health request failed: %s", e)
            return None
        return health["status"]

    def _disconnect(self):
        if self._client is not None:
            try:
                self._client.close()
            except TransportError as e:
                logger.debug("Error closing client: %s", e)
        self._client = None

    def _require_healthy(self):
        if self._state is not ConnectionState.HEALTHY:
            raise ProviderStateError(f"Provider is {self._state.value}, not healthy")

    def health(self) -> dict:
        """
        Get cluster health status.

        Returns:
            Dict with cluster health information
        """
        self._require_healthy()
        return self._client.cluster.health()

    def get_index(self, definition: IndexDefinition, workspace: str, **kwargs) -> EsIndex:
        """
        Open (or reuse) the index for a definition in a workspace.

        Each index gets its own client so shutting one down does not close
        the others. Extra keyword arguments go to ``EsIndex``.
        """
        self._require_healthy()

        key = (definition.name, workspace)
        index = self._indexes.get(key)
        if index is None:
            client = self._client_factory(**self.settings.client_kwargs())
            try:
                index = EsIndex(definition, workspace, client=client, **kwargs)
            except BaseException:
                client.close()
                raise
            self._indexes[key] = index
        return index

    def remove_index(self, definition: IndexDefinition, workspace: str, destroyed: bool = True) -> None:
        """Shut an index down, deleting its data when ``destroyed``."""
        index = self._indexes.pop((definition.name, workspace), None)
        if index is not None:
            index.shutdown(destroyed)

    def indexes(self) -> List[EsIndex]:
        return list(self._indexes.values())

    def shutdown(self) -> None:
        """Shut down all open indexes and close the provider's connection."""
        if self._state is ConnectionState.DISCONNECTED:
            return

        self._state = ConnectionState.SHUTTING_DOWN
        logger.debug("Shutting down the index provider in repository '%s'", self.repository_name)
        try:
            for index in self._indexes.values():
                try:
                    index.shutdown(False)
                except TransportError as e:
                    logger.warning("Error shutting down %s: %s", index.index_name, e)
            self._indexes.clear()
        finally:
            self._disconnect()
            self._state = ConnectionState.DISCONNECTED

    def __enter__(self):
        if self._state is ConnectionState.DISCONNECTED:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
