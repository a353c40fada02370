"""
Query transport interface.

This module defines the transport abstraction used by the query layer: a
data source accepts a GraphQL query document plus a variables object and
returns the decoded ``data`` payload. Pagination, validation and
normalization all live above this seam.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class RequestSpec:
    """
    Specification for an HTTP request.

    Attributes:
        url: Full URL to request
        method: HTTP method (GraphQL queries are POSTed)
        headers: HTTP headers as key-value pairs
        body: JSON body, ``{"query": ..., "variables": ...}`` for GraphQL
    """
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None


class DataSource(ABC):
    """
    Abstract base class for query transports.

    Subclasses talk to one remote indexed query service. ``request`` must
    return the decoded ``data`` object of the response, whose ``result`` key
    holds the list of raw records. Transport failures may raise anything;
    the query layer wraps them as service errors.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Short transport name used in logs.

        Returns:
            The name of the data source (e.g., "subgraph")
        """
        pass

    @abstractmethod
    def prepare_request(self, document: str, variables: dict[str, Any]) -> RequestSpec:
        """
        Prepare an HTTP request specification for a query.

        Args:
            document: GraphQL query document
            variables: Query variables (where, orderBy, orderDirection, first, skip)

        Returns:
            A RequestSpec with url, method, headers and body
        """
        pass

    def auth(self, initial_headers: dict[str, str] | None = None) -> dict[str, str]:
        """
        Return a copy of ``initial_headers`` with credentials added.

        The base transport is anonymous and adds nothing.

        Args:
            initial_headers: Headers to start from

        Returns:
            New headers dict
        """
        return initial_headers.copy() if initial_headers else {}

    @abstractmethod
    async def request(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        """
        Execute one query against the remote service.

        Args:
            document: GraphQL query document
            variables: Query variables

        Returns:
            Decoded response data containing a ``result`` list
        """
        pass

    async def close(self) -> None:
        """Release any held resources. Default does nothing."""
        return None
