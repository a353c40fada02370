"""
Normalized entity records.

All records are frozen value objects. Timestamps, block numbers and log
indexes are ints; token amounts and flow rates stay decimal strings exactly
as the subgraph serves them; references to other entities are id strings.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class TokenRef:
    """Token fields embedded in other records."""

    id: str
    name: str = ""
    symbol: str = ""
    is_listed: bool = False
    underlying_address: str = ""
    created_at_timestamp: int = 0
    created_at_block_number: int = 0


@dataclass(frozen=True)
class SuperToken:
    id: str
    name: str = ""
    symbol: str = ""
    is_listed: bool = False
    underlying_address: str = ""
    created_at_timestamp: int = 0
    created_at_block_number: int = 0


@dataclass(frozen=True)
class IndexRef:
    """Index fields embedded in a subscription."""

    id: str
    index_id: str = ""
    index_value: str = "0"
    token: TokenRef | None = None


@dataclass(frozen=True)
class Index:
    id: str
    index_id: str = ""
    created_at_timestamp: int = 0
    created_at_block_number: int = 0
    updated_at_timestamp: int = 0
    updated_at_block_number: int = 0
    total_units_pending: str = "0"
    total_units_approved: str = "0"
    total_units: str = "0"
    total_amount_distributed_until_updated_at: str = "0"
    token: TokenRef | None = None
    publisher: str = ""


@dataclass(frozen=True)
class IndexSubscription:
    id: str
    created_at_timestamp: int = 0
    created_at_block_number: int = 0
    updated_at_timestamp: int = 0
    updated_at_block_number: int = 0
    subscriber: str = ""
    approved: bool = False
    units: str = "0"
    total_amount_received_until_updated_at: str = "0"
    index_value_until_updated_at: str = "0"
    index: IndexRef | None = None


@dataclass(frozen=True)
class FlowUpdatedEvent:
    """Flow update embedded in a stream record."""

    id: str
    block_number: int = 0
    timestamp: int = 0
    transaction_hash: str = ""
    flow_rate: str = "0"
    total_amount_streamed_until_timestamp: str = "0"


@dataclass(frozen=True)
class Stream:
    id: str
    created_at_timestamp: int = 0
    created_at_block_number: int = 0
    updated_at_timestamp: int = 0
    updated_at_block_number: int = 0
    current_flow_rate: str = "0"
    streamed_until_updated_at: str = "0"
    token: TokenRef | None = None
    sender: str = ""
    receiver: str = ""
    flow_updated_events: tuple[FlowUpdatedEvent, ...] = ()


@dataclass(frozen=True)
class AccountTokenSnapshot:
    """Balance snapshot of one account for one token (light variant)."""

    id: str
    updated_at_timestamp: int = 0
    updated_at_block_number: int = 0
    total_number_of_active_streams: int = 0
    total_number_of_closed_streams: int = 0
    total_subscriptions_with_units: int = 0
    total_approved_subscriptions: int = 0
    balance_until_updated_at: str = "0"
    total_net_flow_rate: str = "0"
    total_inflow_rate: str = "0"
    total_outflow_rate: str = "0"
    total_amount_streamed_until_updated_at: str = "0"
    total_amount_transferred_until_updated_at: str = "0"
    account: str = ""
    token: TokenRef | None = None


@dataclass(frozen=True)
class ProtocolEvent:
    """
    One indexed protocol event.

    The common envelope is typed; the event-specific payload (token, sender,
    flowRate, ...) is kept read-only in ``data`` under snake_case keys.
    """

    id: str
    name: str
    block_number: int = 0
    log_index: int = 0
    order: int = 0
    timestamp: int = 0
    transaction_hash: str = ""
    addresses: tuple[str, ...] = ()
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), hash=False, compare=True)
