"""
Unit Tests for the Order Cache & Reconciler

These tests verify that:
- Orders missing from an open listing are closed as fully filled
- Closed and canceled orders are never reopened
- Reconciling the same listing twice leaves the cache unchanged
- Symbol-scoped listings only close orders of that symbol

Run with:
    pytest tests/unit/test_order_cache.py -v
"""

import asyncio

import pytest

from core.order_cache import OrderCache
from core.schemas import CANCELED, CLOSED, OPEN, Order


def make_order(id: str, symbol: str = "ETH/BTC", amount: float = 10.0, price: float = 2.0, **kwargs) -> Order:
    defaults = {
        "status": OPEN,
        "side": "buy",
        "type": "limit",
        "filled": 0.0,
        "remaining": amount,
        "timestamp": 1514764800000,
    }
    defaults.update(kwargs)
    return Order(id=id, symbol=symbol, amount=amount, price=price, **defaults)


@pytest.fixture
def cache():
    return OrderCache("poloniex")


class TestReconcile:
    """Reconciliation against open-orders listings"""

    def test_missing_order_is_closed_as_filled(self, cache):
        cache.upsert(make_order("1"))

        closed = cache.reconcile([], symbol="ETH/BTC")

        order = cache.get("1")
        assert closed == [order]
        assert order.status == CLOSED
        assert order.filled == 10.0
        assert order.remaining == 0.0
        assert order.cost == 20.0

    def test_listed_order_stays_open_and_is_updated(self, cache):
        cache.upsert(make_order("1"))

        listing = [make_order("1", filled=4.0, remaining=6.0, status=None)]
        closed = cache.reconcile(listing, symbol="ETH/BTC")

        order = cache.get("1")
        assert closed == []
        assert order.status == OPEN
        assert order.filled == 4.0
        assert order.remaining == 6.0

    def test_new_listed_order_is_added(self, cache):
        cache.reconcile([make_order("7")])

        assert "7" in cache
        assert cache.get("7").status == OPEN

    def test_canceled_order_is_not_reopened(self, cache):
        cache.upsert(make_order("1"))
        cache.mark_canceled("1")

        cache.reconcile([make_order("1")])

        assert cache.get("1").status == CANCELED

    def test_closed_order_is_not_reopened(self, cache):
        cache.upsert(make_order("1"))
        cache.reconcile([])

        cache.reconcile([make_order("1")])

        assert cache.get("1").status == CLOSED

    def test_reconcile_is_idempotent(self, cache):
        cache.upsert(make_order("1"))
        cache.upsert(make_order("2"))

        cache.reconcile([make_order("2")], symbol="ETH/BTC")
        first = cache.snapshot()
        cache.reconcile([make_order("2")], symbol="ETH/BTC")

        assert cache.snapshot() == first

    def test_symbol_scoped_listing_leaves_other_symbols_open(self, cache):
        cache.upsert(make_order("1", symbol="ETH/BTC"))
        cache.upsert(make_order("2", symbol="LTC/BTC"))

        cache.reconcile([], symbol="ETH/BTC")

        assert cache.get("1").status == CLOSED
        assert cache.get("2").status == OPEN

    def test_unscoped_listing_closes_every_missing_order(self, cache):
        cache.upsert(make_order("1", symbol="ETH/BTC"))
        cache.upsert(make_order("2", symbol="LTC/BTC"))

        closed = cache.reconcile([])

        assert {order.id for order in closed} == {"1", "2"}


class TestTransitions:
    """Direct state changes"""

    def test_upsert_merges_in_place(self, cache):
        original = cache.upsert(make_order("1"))

        cache.upsert(Order(id="1", filled=3.0))

        assert original.filled == 3.0
        assert original.amount == 10.0

    def test_upsert_ignores_orders_without_id(self, cache):
        cache.upsert(Order(status=CLOSED))
        assert len(cache) == 0

    def test_mark_canceled_unknown_id(self, cache):
        assert cache.mark_canceled("404") is None

    def test_mark_canceled_leaves_closed_orders_alone(self, cache):
        cache.upsert(make_order("1"))
        cache.reconcile([])

        cache.mark_canceled("1")

        assert cache.get("1").status == CLOSED

    def test_mark_closed_without_price_keeps_cost(self, cache):
        order = cache.upsert(Order(id="1", status=OPEN, amount=5.0, cost=1.0))

        cache.mark_closed(order)

        assert order.filled == 5.0
        assert order.remaining == 0.0
        assert order.cost == 1.0


class TestView:
    """Filtering and ordering"""

    def test_view_filters_and_sorts(self, cache):
        cache.upsert(make_order("2", timestamp=2000))
        cache.upsert(make_order("1", timestamp=1000))
        cache.upsert(make_order("3", symbol="LTC/BTC", timestamp=500))
        cache.mark_canceled("2")

        assert [o.id for o in cache.view()] == ["3", "1", "2"]
        assert [o.id for o in cache.view("ETH/BTC")] == ["1", "2"]
        assert [o.id for o in cache.view(status=CANCELED)] == ["2"]

    def test_iteration_and_lock(self, cache):
        cache.upsert(make_order("1"))
        assert [order.id for order in cache] == ["1"]
        assert isinstance(cache.lock, asyncio.Lock)
