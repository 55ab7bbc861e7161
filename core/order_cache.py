"""
Order Cache & Reconciler

Some exchanges only list *open* orders: once an order fills it vanishes
from every order endpoint. To still answer "what happened to my order",
each exchange instance keeps an ``OrderCache`` of every order it has seen
(placed through it, or observed in an open-orders listing) and reconciles
it against each fresh open-orders listing:

    1. Every listed order is upserted with status "open".
    2. Every cached order that is still "open" but no longer listed is
       considered filled and moves to "closed".

Status per order id moves open -> closed or open -> canceled. Closed and
canceled are terminal: no later listing can reopen an order.

Limitations (inherent to the approach):
    - Orders that opened and closed while nobody was watching are never seen.
    - An order canceled outside this client is reported as "closed".

The cache lives as long as the exchange instance and is never persisted.
``lock`` serializes the fetch-listing-then-reconcile sequence so that two
overlapping calls do not interleave. Cancel requests hold it too: a
reconcile that starts while a cancel is in flight waits for the cancel and
sees the order already canceled.

Usage:
    async with cache.lock:
        listing = await fetch_open_orders_listing()
        cache.reconcile(listing, symbol="ETH/BTC")
    orders = cache.view("ETH/BTC")
"""

import asyncio
from typing import Dict, List, Iterable, Iterator, Optional

from core.logging import get_logger
from core.schemas import CANCELED, CLOSED, OPEN, Order

logger = get_logger(__name__)


class OrderCache:
    """
    Per-instance table of orders keyed by order id.

    Attributes:
        lock: asyncio.Lock guarding listing + reconcile sequences and cancels
    """

    def __init__(self, exchange: str = ""):
        self.exchange = exchange
        self.lock = asyncio.Lock()
        self._orders: Dict[str, Order] = {}

    def __len__(self) -> int:
        return len(self._orders)

    def __contains__(self, order_id: str) -> bool:
        return order_id in self._orders

    def __iter__(self) -> Iterator[Order]:
        return iter(list(self._orders.values()))

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def snapshot(self) -> Dict[str, dict]:
        """Plain-dict copy of the cache, used to compare states."""
        return {order_id: order.model_dump() for order_id, order in self._orders.items()}

    # ============================================
    # Transitions
    # ============================================

    def upsert(self, order: Order) -> Order:
        """
        Insert an order or merge it into the cached entry with the same id.

        Non-null fields of ``order`` overwrite the cached ones in place, so
        references handed out earlier see the update. Orders already in a
        terminal state are left untouched.

        Returns:
            The cached Order instance
        """
        if order.id is None:
            return order
        cached = self._orders.get(order.id)
        if cached is None:
            self._orders[order.id] = order
            return order
        if cached.is_terminal:
            if order.status == OPEN:
                logger.debug(
                    f"{self.exchange} order {order.id} already {cached.status}, ignoring open listing"
                )
            return cached
        for field, value in order:
            if value is not None:
                setattr(cached, field, value)
        return cached

    def mark_canceled(self, order_id: str) -> Optional[Order]:
        """Move a cached open order to canceled. Unknown ids are ignored."""
        cached = self._orders.get(order_id)
        if cached is not None and cached.status == OPEN:
            cached.status = CANCELED
        return cached

    def mark_closed(self, order: Order) -> Order:
        """
        Move an open order to closed, assuming it filled completely.

        filled becomes amount, remaining 0 and cost filled * price.
        """
        if order.status != OPEN:
            return order
        order.status = CLOSED
        if order.amount is not None:
            order.filled = order.amount
            order.remaining = 0.0
            if order.price is not None:
                order.cost = order.filled * order.price
        return order

    def reconcile(self, open_orders: Iterable[Order], symbol: Optional[str] = None) -> List[Order]:
        """
        Merge a fresh open-orders listing into the cache.

        Args:
            open_orders: Orders currently open on the exchange
            symbol: Symbol the listing was scoped to; only cached orders of
                that symbol are closed when given

        Returns:
            Orders that moved to closed during this pass
        """
        listed = set()
        for order in open_orders:
            order.status = OPEN
            self.upsert(order)
            listed.add(order.id)

        closed = []
        for order_id, cached in list(self._orders.items()):
            if order_id in listed or cached.status != OPEN:
                continue
            if symbol is not None and cached.symbol != symbol:
                continue
            self.mark_closed(cached)
            closed.append(cached)

        for order in closed:
            logger.warning(f"{self.exchange} order {order.id} ({order.symbol}) no longer open, marked closed")
        return closed

    def view(self, symbol: Optional[str] = None, status: Optional[str] = None) -> List[Order]:
        """Cached orders, optionally filtered by symbol and status, in timestamp order."""
        orders = [
            order for order in self._orders.values()
            if (symbol is None or order.symbol == symbol)
            and (status is None or order.status == status)
        ]
        return sorted(orders, key=lambda order: order.timestamp or 0)
