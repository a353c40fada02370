"""Concrete query transports."""

from sf_query.datasources.subgraph import SubgraphDataSource

__all__ = ["SubgraphDataSource"]
