"""Tests for delta order book reconstruction."""

import random
from decimal import Decimal

import pytest

from bittrex_connector.models import BookSide, ChangeKind, LevelChange, OrderBookDelta, OrderBookSnapshot, PriceLevel
from bittrex_connector.order_book import ApplyResult, DeltaOrderBook, DepthSide

SYMBOL = "BTC-ETH"


def change(side, kind, price, quantity="0") -> LevelChange:
    return LevelChange(side=side, kind=kind, price=Decimal(price), quantity=Decimal(quantity))


def delta(nonce, *changes) -> OrderBookDelta:
    return OrderBookDelta(symbol=SYMBOL, nonce=nonce, changes=list(changes))


def assert_sorted_and_positive(view):
    bid_prices = [level.price for level in view.bids]
    ask_prices = [level.price for level in view.asks]
    assert bid_prices == sorted(bid_prices, reverse=True)
    assert ask_prices == sorted(ask_prices)
    assert len(set(bid_prices)) == len(bid_prices)
    assert len(set(ask_prices)) == len(ask_prices)
    assert all(level.quantity > 0 for level in view.bids + view.asks)


@pytest.fixture
def book(snapshot) -> DeltaOrderBook:
    order_book = DeltaOrderBook()
    order_book.apply_snapshot(snapshot)
    return order_book


@pytest.mark.unit
class TestDepthSide:
    """Sorted price-keyed side."""

    def test_bids_descending(self):
        side = DepthSide(BookSide.BID)
        for price in ("1", "3", "2"):
            side.upsert(Decimal(price), Decimal("1"))
        assert [level.price for level in side.levels()] == [Decimal("3"), Decimal("2"), Decimal("1")]

    def test_asks_ascending(self):
        side = DepthSide(BookSide.ASK)
        for price in ("1", "3", "2"):
            side.upsert(Decimal(price), Decimal("1"))
        assert [level.price for level in side.levels()] == [Decimal("1"), Decimal("2"), Decimal("3")]

    def test_non_positive_quantity_removes(self):
        side = DepthSide(BookSide.ASK)
        side.upsert(Decimal("1"), Decimal("5"))
        side.upsert(Decimal("1"), Decimal("0"))
        side.upsert(Decimal("2"), Decimal("-1"))
        assert len(side) == 0
        assert side.best() is None

    def test_depth_limit(self):
        side = DepthSide(BookSide.BID)
        for price in range(1, 6):
            side.upsert(Decimal(price), Decimal("1"))
        assert [level.price for level in side.levels(2)] == [Decimal(5), Decimal(4)]


@pytest.mark.unit
class TestSnapshot:
    """Snapshot replaces the book wholesale."""

    def test_snapshot_sorts_sides(self, book):
        assert book.best_bid(SYMBOL) == PriceLevel(Decimal("0.072"), Decimal("2"))
        assert book.best_ask(SYMBOL) == PriceLevel(Decimal("0.073"), Decimal("2"))
        assert book.last_nonce(SYMBOL) == 10
        assert_sorted_and_positive(book.book(SYMBOL))

    def test_snapshot_drops_empty_levels(self):
        order_book = DeltaOrderBook()
        order_book.apply_snapshot(OrderBookSnapshot(
            symbol=SYMBOL, nonce=1,
            bids=[PriceLevel(Decimal("1"), Decimal("0"))],
            asks=[PriceLevel(Decimal("2"), Decimal("1"))],
        ))
        view = order_book.book(SYMBOL)
        assert view.bids == ()
        assert order_book.best_bid(SYMBOL) is None

    def test_resnapshot_replaces_state_and_clears_stale(self, book):
        book.apply_delta(delta(15, change(BookSide.BID, ChangeKind.NEW, "0.080", "1")))
        assert book.is_stale(SYMBOL)

        book.apply_snapshot(OrderBookSnapshot(symbol=SYMBOL, nonce=5, bids=[], asks=[]))
        assert not book.is_stale(SYMBOL)
        assert book.last_nonce(SYMBOL) == 5
        assert book.best_bid(SYMBOL) is None

    def test_unknown_symbol_reads(self):
        order_book = DeltaOrderBook()
        assert order_book.best_bid("BTC-XRP") is None
        assert order_book.best_ask("BTC-XRP") is None
        assert order_book.book("BTC-XRP") is None
        assert order_book.is_stale("BTC-XRP")


@pytest.mark.unit
class TestApplyDelta:
    """Nonce checks and level changes."""

    def test_contiguous_delta_applies(self, book):
        result = book.apply_delta(delta(
            11,
            change(BookSide.BID, ChangeKind.NEW, "0.0725", "4"),
            change(BookSide.ASK, ChangeKind.UPDATE, "0.073", "7"),
        ))
        assert result is ApplyResult.APPLIED
        assert book.best_bid(SYMBOL) == PriceLevel(Decimal("0.0725"), Decimal("4"))
        assert book.best_ask(SYMBOL) == PriceLevel(Decimal("0.073"), Decimal("7"))
        assert book.last_nonce(SYMBOL) == 11
        assert not book.is_stale(SYMBOL)

    def test_stale_nonce_ignored(self, book):
        before = book.book(SYMBOL)
        for nonce in (10, 3):
            result = book.apply_delta(delta(nonce, change(BookSide.BID, ChangeKind.NEW, "0.09", "1")))
            assert result is ApplyResult.STALE_IGNORED
        assert book.book(SYMBOL) == before

    def test_replay_mutates_once(self, book):
        d = delta(11, change(BookSide.ASK, ChangeKind.UPDATE, "0.073", "9"))
        assert book.apply_delta(d) is ApplyResult.APPLIED
        after_first = book.book(SYMBOL)
        assert book.apply_delta(d) is ApplyResult.STALE_IGNORED
        assert book.book(SYMBOL) == after_first
        assert book.stats['deltas_applied'] == 1
        assert book.stats['stale_ignored'] == 1

    def test_gap_is_applied_and_flagged(self, book):
        result = book.apply_delta(delta(14, change(BookSide.BID, ChangeKind.NEW, "0.0729", "1")))
        assert result is ApplyResult.GAP_DETECTED
        assert book.last_nonce(SYMBOL) == 14
        assert book.best_bid(SYMBOL).price == Decimal("0.0729")
        view = book.book(SYMBOL)
        assert view.stale

    def test_strict_contiguity_refuses_gap(self, snapshot):
        order_book = DeltaOrderBook(strict_contiguity=True)
        order_book.apply_snapshot(snapshot)
        result = order_book.apply_delta(delta(14, change(BookSide.BID, ChangeKind.NEW, "0.0729", "1")))
        assert result is ApplyResult.GAP_DETECTED
        assert order_book.last_nonce(SYMBOL) == 10
        assert order_book.best_bid(SYMBOL).price == Decimal("0.072")
        assert order_book.is_stale(SYMBOL)

    def test_delta_before_snapshot(self):
        order_book = DeltaOrderBook()
        assert order_book.apply_delta(delta(1)) is ApplyResult.GAP_DETECTED
        assert order_book.book(SYMBOL) is None

    def test_remove_ignores_carried_quantity(self, book):
        book.apply_delta(delta(11, change(BookSide.BID, ChangeKind.REMOVE, "0.072", "99")))
        assert book.best_bid(SYMBOL).price == Decimal("0.071")

    def test_remove_of_missing_level_is_harmless(self, book):
        assert book.apply_delta(delta(11, change(BookSide.ASK, ChangeKind.REMOVE, "1.5"))) is ApplyResult.APPLIED
        assert len(book.book(SYMBOL).asks) == 3

    def test_update_to_zero_drops_level(self, book):
        book.apply_delta(delta(11, change(BookSide.ASK, ChangeKind.UPDATE, "0.073", "0")))
        assert book.best_ask(SYMBOL).price == Decimal("0.074")
        assert_sorted_and_positive(book.book(SYMBOL))

    def test_changes_apply_in_given_order(self, book):
        book.apply_delta(delta(
            11,
            change(BookSide.BID, ChangeKind.NEW, "0.0728", "1"),
            change(BookSide.BID, ChangeKind.REMOVE, "0.0728"),
            change(BookSide.BID, ChangeKind.NEW, "0.0727", "2"),
            change(BookSide.BID, ChangeKind.UPDATE, "0.0727", "5"),
        ))
        assert book.best_bid(SYMBOL) == PriceLevel(Decimal("0.0727"), Decimal("5"))

    def test_invariants_hold_under_random_deltas(self, book):
        rng = random.Random(7)
        for nonce in range(11, 211):
            changes = [
                change(
                    rng.choice([BookSide.BID, BookSide.ASK]),
                    rng.choice(list(ChangeKind)),
                    f"0.07{rng.randint(0, 9)}",
                    str(rng.randint(-1, 5)),
                )
                for _ in range(rng.randint(1, 4))
            ]
            assert book.apply_delta(delta(nonce, *changes)) is ApplyResult.APPLIED
            assert_sorted_and_positive(book.book(SYMBOL))

    def test_replays_interleaved_do_not_change_result(self, snapshot):
        deltas = [
            delta(11, change(BookSide.BID, ChangeKind.NEW, "0.0721", "1")),
            delta(12, change(BookSide.ASK, ChangeKind.REMOVE, "0.073")),
            delta(13, change(BookSide.BID, ChangeKind.UPDATE, "0.0721", "3")),
        ]
        clean = DeltaOrderBook()
        clean.apply_snapshot(snapshot)
        for d in deltas:
            clean.apply_delta(d)

        noisy = DeltaOrderBook()
        noisy.apply_snapshot(snapshot)
        for d in [deltas[0], deltas[0], deltas[1], deltas[0], deltas[2], deltas[1]]:
            noisy.apply_delta(d)

        assert noisy.book(SYMBOL) == clean.book(SYMBOL)


@pytest.mark.unit
class TestResync:
    """Stale flag lifecycle."""

    def test_explicit_resync_marks_stale(self, book):
        book.request_resync(SYMBOL)
        assert book.is_stale(SYMBOL)
        assert book.best_bid(SYMBOL) is not None

    def test_discard(self, book):
        book.discard(SYMBOL)
        assert book.symbols() == []
        assert book.book(SYMBOL) is None

    def test_view_is_a_copy(self, book):
        view = book.book(SYMBOL, depth=1)
        book.apply_delta(delta(11, change(BookSide.BID, ChangeKind.REMOVE, "0.072")))
        assert view.best_bid.price == Decimal("0.072")
        assert len(view.bids) == 1
