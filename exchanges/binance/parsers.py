"""
Binance Response Normalizers

Pure functions turning Binance payloads into the models of core.schemas.

Wire quirks handled here:
    - Market precision comes from the LOT_SIZE stepSize and PRICE_FILTER
      tickSize filters when present
    - Aggregate trades use one-letter keys ("a", "p", "q", "T", "m");
      "m" (buyer is maker) means the taker sold
    - Deposit and withdrawal history use different numeric status codes
"""

from typing import Any, Dict, List, Optional

from core.balance import build_balances
from core.markets import MarketIndex
from core.schemas import (
    OHLCV,
    Balances,
    Fee,
    Market,
    MarketLimits,
    MarketPrecision,
    MinMax,
    Order,
    OrderBook,
    Ticker,
    Trade,
    Transaction,
)
from core.utils.fields import (
    safe_float,
    safe_float2,
    safe_integer,
    safe_integer2,
    safe_string,
    safe_string2,
    safe_value,
)
from core.utils.precision import precision_from_string
from core.utils.time import milliseconds

MAKER_FEE = 0.001
TAKER_FEE = 0.001

ORDER_STATUSES = {
    "NEW": "open",
    "PARTIALLY_FILLED": "open",
    "FILLED": "closed",
    "CANCELED": "canceled",
    "PENDING_CANCEL": "canceling",
    "REJECTED": "rejected",
    "EXPIRED": "expired",
}

TRANSACTION_STATUSES = {
    "deposit": {
        "0": "pending",
        "1": "ok",
    },
    "withdrawal": {
        "0": "pending",   # email sent
        "1": "canceled",
        "2": "pending",   # awaiting approval
        "3": "failed",    # rejected
        "4": "pending",   # processing
        "5": "failed",
        "6": "ok",
    },
}


def resolve_market(index: MarketIndex, raw: Dict[str, Any], market: Optional[Market]) -> Optional[Market]:
    return index.market_by_id(safe_string(raw, "symbol")) or market


# ============================================
# Markets
# ============================================

def parse_market(raw: Dict[str, Any], index: MarketIndex) -> Market:
    """Build a Market from one exchangeInfo "symbols" entry."""
    base_id = raw["baseAsset"]
    quote_id = raw["quoteAsset"]
    base = index.common_currency_code(base_id)
    quote = index.common_currency_code(quote_id)
    filters = {f["filterType"]: f for f in raw.get("filters") or []}

    amount_precision = safe_integer(raw, "baseAssetPrecision", 8)
    price_precision = safe_integer(raw, "quotePrecision", 8)
    amount_limits = MinMax(min=10 ** -amount_precision)
    price_limits = MinMax()
    cost_limits = MinMax()

    if "PRICE_FILTER" in filters:
        price_filter = filters["PRICE_FILTER"]
        max_price = safe_float(price_filter, "maxPrice")
        price_limits = MinMax(
            min=safe_float(price_filter, "minPrice"),
            max=max_price if max_price else None,
        )
        price_precision = precision_from_string(price_filter["tickSize"])
    if "LOT_SIZE" in filters:
        lot_size = filters["LOT_SIZE"]
        amount_precision = precision_from_string(lot_size["stepSize"])
        amount_limits = MinMax(min=safe_float(lot_size, "minQty"), max=safe_float(lot_size, "maxQty"))
    if "MIN_NOTIONAL" in filters:
        cost_limits = MinMax(min=safe_float(filters["MIN_NOTIONAL"], "minNotional"))

    return Market(
        id=raw["symbol"],
        symbol=f"{base}/{quote}",
        base=base,
        quote=quote,
        base_id=base_id,
        quote_id=quote_id,
        active=raw.get("status") == "TRADING",
        precision=MarketPrecision(amount=amount_precision, price=price_precision),
        limits=MarketLimits(amount=amount_limits, price=price_limits, cost=cost_limits),
        maker=MAKER_FEE,
        taker=TAKER_FEE,
        info=raw,
    )


# ============================================
# Market Data
# ============================================

def parse_ticker(raw: Dict[str, Any], index: MarketIndex, market: Optional[Market] = None) -> Ticker:
    """24hr ticker statistics."""
    market = resolve_market(index, raw, market)
    last = safe_float(raw, "lastPrice")
    return Ticker(
        symbol=market.symbol if market is not None else None,
        timestamp=safe_integer(raw, "closeTime"),
        high=safe_float(raw, "highPrice"),
        low=safe_float(raw, "lowPrice"),
        bid=safe_float(raw, "bidPrice"),
        bid_volume=safe_float(raw, "bidQty"),
        ask=safe_float(raw, "askPrice"),
        ask_volume=safe_float(raw, "askQty"),
        vwap=safe_float(raw, "weightedAvgPrice"),
        open=safe_float(raw, "openPrice"),
        close=last,
        last=last,
        previous_close=safe_float(raw, "prevClosePrice"),
        change=safe_float(raw, "priceChange"),
        percentage=safe_float(raw, "priceChangePercent"),
        base_volume=safe_float(raw, "volume"),
        quote_volume=safe_float(raw, "quoteVolume"),
        info=raw,
    )


def parse_order_book(raw: Dict[str, Any], symbol: Optional[str] = None, limit: Optional[int] = None) -> OrderBook:
    def levels(key: str, descending: bool) -> List[List[float]]:
        rows = [[float(price), float(amount)] for price, amount in raw.get(key) or []]
        rows.sort(key=lambda row: row[0], reverse=descending)
        return rows[:limit] if limit is not None else rows

    return OrderBook(
        symbol=symbol,
        timestamp=milliseconds(),
        nonce=safe_integer(raw, "lastUpdateId"),
        bids=levels("bids", True),
        asks=levels("asks", False),
    )


def parse_ohlcv(raw: List[Any]) -> OHLCV:
    """Kline [openTime, open, high, low, close, volume, ...] -> OHLCV."""
    return [
        int(raw[0]),
        float(raw[1]),
        float(raw[2]),
        float(raw[3]),
        float(raw[4]),
        float(raw[5]),
    ]


# ============================================
# Trades & Orders
# ============================================

def parse_trade(raw: Dict[str, Any], index: MarketIndex, market: Optional[Market] = None) -> Trade:
    """
    Aggregate trade, public trade, account trade or order fill.

    Public records only say whether the buyer was the maker, so their side
    is the taker's side. Account trades carry the account's own side.
    """
    market = resolve_market(index, raw, market)
    price = safe_float2(raw, "p", "price")
    amount = safe_float2(raw, "q", "qty")

    side = None
    if "m" in raw:
        side = "sell" if raw["m"] else "buy"
    elif "isBuyerMaker" in raw:
        side = "sell" if raw["isBuyerMaker"] else "buy"
    elif "isBuyer" in raw:
        side = "buy" if raw["isBuyer"] else "sell"

    fee = None
    if "commission" in raw:
        fee = Fee(
            cost=safe_float(raw, "commission"),
            currency=index.common_currency_code(safe_string(raw, "commissionAsset")),
        )
    taker_or_maker = None
    if "isMaker" in raw:
        taker_or_maker = "maker" if raw["isMaker"] else "taker"

    return Trade(
        id=safe_string2(raw, "a", "id"),
        order_id=safe_string(raw, "orderId"),
        timestamp=safe_integer2(raw, "T", "time"),
        symbol=market.symbol if market is not None else None,
        taker_or_maker=taker_or_maker,
        side=side,
        price=price,
        amount=amount,
        cost=price * amount if price is not None and amount is not None else None,
        fee=fee,
        info=raw,
    )


def parse_trades(raws: List[Dict[str, Any]], index: MarketIndex, market: Optional[Market] = None) -> List[Trade]:
    return [parse_trade(raw, index, market) for raw in raws or []]


def parse_order(raw: Dict[str, Any], index: MarketIndex, market: Optional[Market] = None) -> Order:
    """
    Build an Order from an order reply (RESULT or FULL response type) or
    an order listing entry.

    With fills, cost and fee are summed from the fills. Market orders
    reported with price 0 get the average fill price.
    """
    market = resolve_market(index, raw, market)
    status = safe_string(raw, "status")
    timestamp = safe_integer2(raw, "time", "transactTime")
    price = safe_float(raw, "price")
    amount = safe_float(raw, "origQty")
    filled = safe_float(raw, "executedQty")
    cost = safe_float2(raw, "cummulativeQuoteQty", "cumQuote")

    remaining = None
    if filled is not None:
        if amount is not None:
            remaining = max(amount - filled, 0.0)
        if price is not None and cost is None:
            cost = price * filled

    order_type = safe_string(raw, "type")
    order_type = order_type.lower() if order_type else None
    if order_type == "market" and price == 0.0 and cost and filled:
        price = cost / filled

    fee = None
    trades = None
    fills = safe_value(raw, "fills")
    if fills is not None:
        trades = parse_trades(fills, index, market)
        if trades:
            cost = sum(trade.cost or 0.0 for trade in trades)
            fees = [trade.fee for trade in trades if trade.fee is not None]
            if fees:
                fee = Fee(currency=fees[0].currency, cost=sum(f.cost or 0.0 for f in fees))

    average = cost / filled if cost is not None and filled else None
    side = safe_string(raw, "side")

    return Order(
        id=safe_string(raw, "orderId"),
        timestamp=timestamp,
        status=ORDER_STATUSES.get(status, status),
        symbol=market.symbol if market is not None else None,
        type=order_type,
        side=side.lower() if side else None,
        price=price,
        amount=amount,
        cost=cost,
        average=average,
        filled=filled,
        remaining=remaining,
        fee=fee,
        trades=trades,
        info=raw,
    )


# ============================================
# Balances & Funding
# ============================================

def parse_balance(raw: Dict[str, Any], index: MarketIndex) -> Balances:
    """Account endpoint: free is free, locked is used."""
    accounts = {}
    for balance in raw.get("balances") or []:
        currency_id = balance["asset"]
        currency = index.currencies_by_id.get(currency_id)
        code = currency.code if currency is not None else index.common_currency_code(currency_id)
        accounts[code] = {
            "free": safe_float(balance, "free", 0.0),
            "used": safe_float(balance, "locked", 0.0),
        }
    return build_balances(accounts, info=raw)


def parse_transaction(raw: Dict[str, Any], index: MarketIndex, type: Optional[str] = None) -> Transaction:
    """
    depositList / withdrawList entry.

    Without an explicit ``type``, deposits are recognized by insertTime and
    withdrawals by applyTime.
    """
    insert_time = safe_integer(raw, "insertTime")
    apply_time = safe_integer(raw, "applyTime")
    if type is None:
        if insert_time is not None and apply_time is None:
            type = "deposit"
        elif insert_time is None and apply_time is not None:
            type = "withdrawal"
    timestamp = insert_time if type == "deposit" else apply_time

    currency_id = safe_string(raw, "asset")
    currency = index.currencies_by_id.get(currency_id) if currency_id else None
    code = currency.code if currency is not None else index.common_currency_code(currency_id)

    status = safe_string(raw, "status")
    if type in TRANSACTION_STATUSES:
        status = TRANSACTION_STATUSES[type].get(status, "pending")
    else:
        status = None

    return Transaction(
        id=safe_string(raw, "id"),
        txid=safe_string(raw, "txId"),
        timestamp=timestamp,
        currency=code,
        amount=safe_float(raw, "amount"),
        address=safe_string(raw, "address"),
        tag=safe_string(raw, "addressTag"),
        status=status,
        type=type,
        info=raw,
    )
