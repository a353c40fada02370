"""
Cursors, pages and the lookahead page construction.

Two pagination strategies are supported:

  * ``SkipCursor`` - offset based. Tolerates any ordering but can skip or
    repeat rows if the data set changes between calls.
  * ``LastIdCursor`` - seek based, resumes strictly after an entity id. Only
    correct when the listing is ordered by a unique, monotonic id.

Every fetch requests ``take + 1`` rows. The extra row is never returned; its
presence is what tells ``create_page`` that another page exists.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar, Union

from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)

DEFAULT_TAKE = 100

T = TypeVar("T")


@dataclass(frozen=True)
class SkipCursor:
    """
    Offset-based cursor.

    Attributes:
        skip: Number of rows to skip (>= 0)
        take: Page size (> 0)
    """
    skip: int = 0
    take: int = DEFAULT_TAKE

    def __post_init__(self) -> None:
        _check_take(self.take)
        if not isinstance(self.skip, int) or self.skip < 0:
            raise InvalidArgumentError(f"skip must be a non-negative integer, got {self.skip!r}")


@dataclass(frozen=True)
class LastIdCursor:
    """
    Seek-based cursor.

    Attributes:
        last_id: Resume strictly after this entity id; None starts from the beginning
        take: Page size (> 0)
    """
    last_id: str | None = None
    take: int = DEFAULT_TAKE

    def __post_init__(self) -> None:
        _check_take(self.take)


Cursor = Union[SkipCursor, LastIdCursor]


def _check_take(take: Any) -> None:
    if isinstance(take, bool) or not isinstance(take, int) or take <= 0:
        raise InvalidArgumentError(f"take must be a positive integer, got {take!r}")


def take_plus_one(cursor: Cursor) -> int:
    """Number of rows to request for a page: one more than the page size."""
    return cursor.take + 1


def cursor_kind(cursor: Cursor) -> str:
    """Short name of the cursor variant, used in logs and telemetry."""
    if isinstance(cursor, SkipCursor):
        return "skip"
    if isinstance(cursor, LastIdCursor):
        return "last_id"
    raise TypeError(f"Unknown cursor type: {type(cursor).__name__}")


def cursor_variables(cursor: Cursor) -> tuple[int | None, str | None]:
    """
    Split a cursor into the ``skip`` and ``id_gt`` request variables.

    Returns:
        (skip, id_gt); the value that does not apply to the variant is None
    """
    if isinstance(cursor, SkipCursor):
        return cursor.skip, None
    if isinstance(cursor, LastIdCursor):
        return None, cursor.last_id
    raise TypeError(f"Unknown cursor type: {type(cursor).__name__}")


def advance_cursor(cursor: Cursor, kept: Sequence[Any]) -> Cursor:
    """
    Build the cursor that resumes after the last kept row.

    Args:
        cursor: Cursor the page was fetched with
        kept: Rows returned to the caller (exactly ``cursor.take`` of them)

    Returns:
        The next cursor of the same variant
    """
    if isinstance(cursor, SkipCursor):
        return SkipCursor(skip=cursor.skip + cursor.take, take=cursor.take)
    if isinstance(cursor, LastIdCursor):
        return LastIdCursor(last_id=kept[-1].id, take=cursor.take)
    raise TypeError(f"Unknown cursor type: {type(cursor).__name__}")


@dataclass
class Page(Generic[T]):
    """
    A single page of results.

    Attributes:
        data: Normalized entity records, at most ``cursor.take`` of them
        cursor: The cursor this page was fetched with
        next_cursor: Cursor for the following page, None on the last page
    """
    data: list[T]
    cursor: Cursor
    next_cursor: Cursor | None = None

    @property
    def has_next_page(self) -> bool:
        return self.next_cursor is not None


def create_page(rows: Sequence[T], cursor: Cursor) -> Page[T]:
    """
    Build a page from a lookahead fetch of up to ``take + 1`` rows.

    If more than ``take`` rows came back the surplus is dropped and a next
    cursor is attached; otherwise every row is kept and there is no next page.
    """
    if len(rows) > cursor.take:
        kept = list(rows[:cursor.take])
        return Page(data=kept, cursor=cursor, next_cursor=advance_cursor(cursor, kept))
    return Page(data=list(rows), cursor=cursor, next_cursor=None)


LIST_ALL_TAKE = 999

PageFetch = Callable[[Cursor], Awaitable[Page[T]]]


async def list_all(page_fetch: PageFetch[T], take: int = LIST_ALL_TAKE) -> list[T]:
    """
    Drain a paged query to completion.

    Starts from a last-id cursor of ``take`` rows and follows next cursors
    until a page reports none. Pages are concatenated in the order they were
    fetched, without reordering or de-duplication. There is no upper bound on
    the number of pages.

    Args:
        page_fetch: Fetches one page for a cursor, typically a listing
            operation bound to a fixed filter and ordering
        take: Page size for every request

    Returns:
        Every row of every page
    """
    results: list[T] = []
    cursor: Cursor | None = LastIdCursor(last_id=None, take=take)
    pages = 0
    while cursor is not None:
        page = await page_fetch(cursor)
        results.extend(page.data)
        cursor = page.next_cursor
        pages += 1
    logger.debug(f"Listed {len(results)} rows across {pages} page(s)")
    return results
