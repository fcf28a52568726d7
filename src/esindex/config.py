"""
esindex Config — Connection Settings
====================================

Connection parameters shared by the provider and every index it opens.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_HOSTS = ["http://localhost:9200"]


@dataclass(frozen=True)
class ConnectionSettings:
    """
    Elasticsearch connection parameters.

    Example:
        settings = ConnectionSettings(
            hosts=["https://es1:9200", "https://es2:9200"],
            api_key="your-api-key"
        )
        client = Elasticsearch(**settings.client_kwargs())
    """

    hosts: List[str] = field(default_factory=lambda: list(DEFAULT_HOSTS))
    api_key: Optional[str] = None
    basic_auth: Optional[Tuple[str, str]] = None
    verify_certs: bool = True
    request_timeout: Optional[float] = None

    def client_kwargs(self) -> Dict[str, Any]:
        """
        Build keyword arguments for the ``Elasticsearch`` constructor.

        An API key wins over basic auth when both are given.
        """
        conn_kwargs: Dict[str, Any] = {
            "hosts": list(self.hosts) or list(DEFAULT_HOSTS),
            "verify_certs": self.verify_certs
        }

        if self.api_key:
            conn_kwargs["api_key"] = self.api_key
        elif self.basic_auth:
            conn_kwargs["basic_auth"] = self.basic_auth

        if self.request_timeout is not None:
            conn_kwargs["request_timeout"] = self.request_timeout

        return conn_kwargs
