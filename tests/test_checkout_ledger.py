"""Tests for the checkout ledger."""

from datetime import datetime, timedelta

import pytest

from library_circulation.database import CheckoutLedger, PaginationParams
from library_circulation.errors import AlreadyCheckedOutError, NotCheckedOutError
from library_circulation.models import CheckoutClosure

T0 = datetime(2024, 1, 10, 9, 0)


class TestCheckoutLedger:
    def test_open_and_close(self, session, book):
        ledger = CheckoutLedger(session)
        opened = ledger.open_checkout(book.id, 1001, T0)

        assert opened.is_open
        assert ledger.current_holder(book.id) == 1001
        assert ledger.open(book.id).id == opened.id

        closed = ledger.close_checkout(book.id, T0 + timedelta(days=7))

        assert closed.id == opened.id
        assert closed.closure == CheckoutClosure.RETURNED
        assert closed.returned_at == T0 + timedelta(days=7)
        assert ledger.current_holder(book.id) is None
        assert ledger.open(book.id) is None

    def test_one_open_checkout_per_asset(self, session, book):
        ledger = CheckoutLedger(session)
        ledger.open_checkout(book.id, 1001, T0)

        with pytest.raises(AlreadyCheckedOutError):
            ledger.open_checkout(book.id, 1002, T0 + timedelta(hours=1))

    def test_close_without_open_checkout(self, session, book):
        with pytest.raises(NotCheckedOutError):
            CheckoutLedger(session).close_checkout(book.id, T0)

    def test_lost_closure_has_no_return(self, session, book):
        ledger = CheckoutLedger(session)
        ledger.open_checkout(book.id, 1001, T0)

        closed = ledger.close_checkout(book.id, T0 + timedelta(days=1), CheckoutClosure.LOST)

        assert closed.returned_at is None
        assert closed.closed_at == T0 + timedelta(days=1)
        assert not closed.is_open

    def test_history_newest_first(self, session, book):
        ledger = CheckoutLedger(session)
        for day, card in enumerate((1001, 1002, 1003)):
            ledger.open_checkout(book.id, card, T0 + timedelta(days=day * 10))
            ledger.close_checkout(book.id, T0 + timedelta(days=day * 10 + 5))

        history = ledger.history(book.id)

        assert [r.library_card_id for r in history] == [1003, 1002, 1001]
        assert ledger.latest(book.id).library_card_id == 1003

    def test_history_ties_newest_id_first(self, session, book):
        ledger = CheckoutLedger(session)
        first = ledger.open_checkout(book.id, 1001, T0)
        ledger.close_checkout(book.id, T0)
        second = ledger.open_checkout(book.id, 1002, T0)

        assert [r.id for r in ledger.history(book.id)] == [second.id, first.id]

    def test_empty_history(self, session, book):
        ledger = CheckoutLedger(session)
        assert ledger.history(book.id) == []
        assert ledger.latest(book.id) is None
        assert ledger.current_holder(book.id) is None

    def test_history_is_per_asset(self, session, book, video):
        ledger = CheckoutLedger(session)
        ledger.open_checkout(book.id, 1001, T0)
        ledger.open_checkout(video.id, 1002, T0)

        assert [r.asset_id for r in ledger.history(video.id)] == [video.id]

    def test_history_page(self, session, book):
        ledger = CheckoutLedger(session)
        for i in range(5):
            ledger.open_checkout(book.id, 1001, T0 + timedelta(days=i))
            ledger.close_checkout(book.id, T0 + timedelta(days=i, hours=1))

        page = ledger.history_page(book.id, PaginationParams(page=2, page_size=2))

        assert page.total == 5
        assert page.total_pages == 3
        assert page.has_next and page.has_previous
        assert [r.checked_out_at for r in page.items] == [
            T0 + timedelta(days=2),
            T0 + timedelta(days=1),
        ]

    def test_history_page_rejects_bad_params(self, session, book):
        with pytest.raises(ValueError):
            CheckoutLedger(session).history_page(book.id, PaginationParams(page=0))
