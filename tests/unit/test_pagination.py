"""
Unit tests for cursors, lookahead page construction and exhaustive listing.
"""
import pytest

from sf_query.core.errors import ErrorKind, InvalidArgumentError
from sf_query.core.pagination import (
    LIST_ALL_TAKE,
    LastIdCursor,
    Page,
    SkipCursor,
    advance_cursor,
    create_page,
    cursor_kind,
    cursor_variables,
    list_all,
    take_plus_one,
)
from sf_query.entities.models import SuperToken


def tokens(n, start=0):
    return [SuperToken(id=f"0x{i:040x}") for i in range(start, start + n)]


class TestCursors:
    """Test cursor construction and helpers."""

    def test_defaults(self):
        assert SkipCursor() == SkipCursor(skip=0, take=100)
        assert LastIdCursor() == LastIdCursor(last_id=None, take=100)

    @pytest.mark.parametrize("take", [0, -1, 1.5, True, "10"])
    def test_rejects_bad_take(self, take):
        with pytest.raises(InvalidArgumentError) as exc_info:
            SkipCursor(take=take)
        assert exc_info.value.kind is ErrorKind.INVALID_ARGUMENT

        with pytest.raises(InvalidArgumentError):
            LastIdCursor(take=take)

    def test_rejects_negative_skip(self):
        with pytest.raises(InvalidArgumentError):
            SkipCursor(skip=-5)

    def test_take_plus_one(self):
        assert take_plus_one(SkipCursor(take=10)) == 11
        assert take_plus_one(LastIdCursor(take=999)) == 1000

    def test_cursor_variables(self):
        assert cursor_variables(SkipCursor(skip=20, take=10)) == (20, None)
        assert cursor_variables(LastIdCursor(last_id="0xabc", take=10)) == (None, "0xabc")
        assert cursor_variables(LastIdCursor(take=10)) == (None, None)

    def test_cursor_kind(self):
        assert cursor_kind(SkipCursor()) == "skip"
        assert cursor_kind(LastIdCursor()) == "last_id"

    def test_unknown_cursor_type(self):
        with pytest.raises(TypeError):
            cursor_kind(object())
        with pytest.raises(TypeError):
            advance_cursor(object(), [])


class TestCreatePage:
    """Test the lookahead trick."""

    @pytest.mark.parametrize("take", [1, 2, 10, 100])
    def test_lookahead_row_signals_next_page(self, take):
        rows = tokens(take + 1)
        page = create_page(rows, SkipCursor(take=take))

        assert len(page.data) == take
        assert page.data == rows[:take]
        assert page.has_next_page
        assert page.next_cursor is not None

    @pytest.mark.parametrize("returned", [0, 1, 9, 10])
    def test_short_page_is_last(self, returned):
        rows = tokens(returned)
        page = create_page(rows, SkipCursor(take=10))

        assert page.data == rows
        assert page.next_cursor is None
        assert not page.has_next_page

    def test_page_keeps_original_cursor(self):
        cursor = LastIdCursor(last_id="0x1", take=2)
        page = create_page(tokens(3), cursor)
        assert page.cursor is cursor

    def test_skip_cursor_advances_by_take(self):
        page = create_page(tokens(6), SkipCursor(skip=15, take=5))
        assert page.next_cursor == SkipCursor(skip=20, take=5)

    def test_last_id_cursor_advances_to_last_kept_row(self):
        rows = tokens(4)
        page = create_page(rows, LastIdCursor(take=3))

        # The dropped lookahead row is rows[3]; resume after rows[2]
        assert page.next_cursor == LastIdCursor(last_id=rows[2].id, take=3)

    def test_data_never_exceeds_take(self):
        page = create_page(tokens(50), SkipCursor(take=7))
        assert len(page.data) == 7


def paged(rows):
    """Page fetch over an in-memory id-sorted list, honouring both cursor kinds."""
    calls = []

    async def fetch(cursor):
        calls.append(cursor)
        if isinstance(cursor, LastIdCursor):
            remaining = [r for r in rows if cursor.last_id is None or r.id > cursor.last_id]
        else:
            remaining = rows[cursor.skip:]
        return create_page(remaining[:take_plus_one(cursor)], cursor)

    return fetch, calls


class TestListAll:
    """Test exhaustive listing."""

    @pytest.mark.parametrize("n,take", [
        (0, 1),
        (0, 5),
        (1, 1),
        (5, 1),
        (10, 5),
        (11, 5),
        (14, 5),
        (3, 999),
        (25, 7),
    ])
    async def test_concatenates_every_row_in_order(self, n, take):
        rows = tokens(n)
        fetch, calls = paged(rows)

        result = await list_all(fetch, take=take)

        assert result == rows
        # Lookahead means an exact multiple of `take` needs no trailing empty fetch
        assert len(calls) == max(1, -(-n // take))

    async def test_starts_from_last_id_cursor(self):
        fetch, calls = paged(tokens(3))
        await list_all(fetch, take=2)

        assert calls[0] == LastIdCursor(last_id=None, take=2)
        assert calls[1] == LastIdCursor(last_id=tokens(3)[1].id, take=2)

    async def test_default_page_size(self):
        fetch, calls = paged(tokens(2))
        await list_all(fetch)
        assert calls[0].take == LIST_ALL_TAKE == 999

    async def test_does_not_deduplicate(self):
        dup = SuperToken(id="0x1")
        pages = iter([
            Page(data=[dup, dup], cursor=LastIdCursor(take=2), next_cursor=LastIdCursor("0x1", take=2)),
            Page(data=[dup], cursor=LastIdCursor("0x1", take=2)),
        ])

        async def fetch(cursor):
            return next(pages)

        assert await list_all(fetch, take=2) == [dup, dup, dup]

    async def test_propagates_fetch_errors(self):
        async def fetch(cursor):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await list_all(fetch)
