"""Result orderings and the per-kind defaults."""

from dataclasses import dataclass
from enum import Enum


class OrderDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Ordering:
    """
    Attributes:
        order_by: Wire field name to sort by (e.g. "createdAtBlockNumber")
        order_direction: Sort direction
    """
    order_by: str
    order_direction: OrderDirection = OrderDirection.DESC

    def variables(self) -> dict[str, str]:
        return {"orderBy": self.order_by, "orderDirection": OrderDirection(self.order_direction).value}


BY_CREATED_BLOCK_DESC = Ordering("createdAtBlockNumber", OrderDirection.DESC)
BY_UPDATED_BLOCK_DESC = Ordering("updatedAtBlockNumber", OrderDirection.DESC)
BY_BLOCK_NUMBER_DESC = Ordering("blockNumber", OrderDirection.DESC)

# The event poller advances its time cursor to the last event of a batch,
# which is only correct when batches are ascending by timestamp.
BY_TIMESTAMP_ASC = Ordering("timestamp", OrderDirection.ASC)
