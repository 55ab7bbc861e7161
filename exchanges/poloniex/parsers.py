"""
Poloniex Response Normalizers

Pure functions turning Poloniex payloads into the models of core.schemas.
None of them mutates its input or the MarketIndex it reads from.

Wire quirks handled here:
    - Pair ids read QUOTE_BASE ("BTC_ETH" is ETH/BTC)
    - Ticker "baseVolume" is measured in the quote currency and
      "quoteVolume" in the base currency, so the two are swapped
    - Trade fees are charged in base for buys and in quote for sells
    - Order "amount" is the remaining amount, "startingAmount" the original
    - Withdrawal "amount" includes the fee
    - Deposit/withdrawal status reads "COMPLETE: <txid>"
"""

from typing import Any, Dict, List, Optional

from core.markets import MarketIndex
from core.schemas import (
    OHLCV,
    Balances,
    Currency,
    CurrencyLimits,
    Fee,
    LoanOffer,
    Market,
    MarketLimits,
    MinMax,
    Order,
    OrderBook,
    Ticker,
    Trade,
    Transaction,
    TransactionFee,
)
from core.balance import build_balances
from core.utils.fields import (
    safe_float,
    safe_float2,
    safe_integer,
    safe_string,
    safe_string2,
    safe_value,
)
from core.utils.precision import ROUND, decimal_to_precision
from core.utils.time import milliseconds, parse8601

MAKER_FEE = 0.001
TAKER_FEE = 0.002

AMOUNT_LIMITS = MinMax(min=0.000001, max=1000000000)
PRICE_LIMITS = MinMax(min=0.00000001, max=1000000000)

# Minimum order cost per quote currency
MIN_COST = {
    "BTC": 0.0001,
    "ETH": 0.0001,
    "XMR": 0.0001,
    "USDT": 1.0,
}

ORDER_STATUSES = {
    "Open": "open",
    "Partially filled": "open",
}

TRANSACTION_STATUSES = {
    "COMPLETE": "ok",
}

CURRENCY_PRECISION = 8


def split_pair(market_id: str):
    """Return (quote_id, base_id) for a QUOTE_BASE pair id."""
    quote_id, base_id = market_id.split("_", 1)
    return quote_id, base_id


def resolve_symbol(index: MarketIndex, market_id: Optional[str]) -> Optional[str]:
    return index.symbol_from_id(market_id, delimiter="_", quote_first=True)


# ============================================
# Markets & Currencies
# ============================================

def parse_market(market_id: str, raw: Dict[str, Any], index: MarketIndex) -> Market:
    """Build a Market from one returnTicker entry."""
    quote_id, base_id = split_pair(market_id)
    base = index.common_currency_code(base_id)
    quote = index.common_currency_code(quote_id)
    return Market(
        id=market_id,
        symbol=f"{base}/{quote}",
        base=base,
        quote=quote,
        base_id=base_id,
        quote_id=quote_id,
        active=safe_string(raw, "isFrozen") != "1",
        limits=MarketLimits(
            amount=AMOUNT_LIMITS,
            price=PRICE_LIMITS,
            cost=MinMax(min=MIN_COST.get(quote), max=1000000000),
        ),
        maker=MAKER_FEE,
        taker=TAKER_FEE,
        info=raw,
    )


def parse_currency(currency_id: str, raw: Dict[str, Any], index: MarketIndex) -> Currency:
    """Build a Currency from one returnCurrencies entry."""
    precision = CURRENCY_PRECISION
    fee = safe_float(raw, "txFee")
    return Currency(
        id=currency_id,
        code=index.common_currency_code(currency_id),
        numeric_id=safe_integer(raw, "id"),
        name=safe_string(raw, "name"),
        active=raw.get("delisted") == 0 and not raw.get("disabled"),
        fee=fee,
        precision=precision,
        limits=CurrencyLimits(
            amount=MinMax(min=10 ** -precision, max=10 ** precision),
            price=MinMax(min=10 ** -precision, max=10 ** precision),
            withdraw=MinMax(min=fee, max=10 ** precision),
        ),
        info=raw,
    )


# ============================================
# Market Data
# ============================================

def parse_ticker(raw: Dict[str, Any], symbol: Optional[str] = None, timestamp: Optional[int] = None) -> Ticker:
    """
    Build a Ticker from a returnTicker entry.

    Poloniex only reports the relative change, so open is derived as
    last / (1 + percentChange).
    """
    if timestamp is None:
        timestamp = milliseconds()
    last = safe_float(raw, "last")
    relative_change = safe_float(raw, "percentChange")
    open_ = change = average = None
    if last is not None and relative_change is not None and relative_change != -1:
        open_ = last / (1 + relative_change)
        change = last - open_
        average = (last + open_) / 2
    return Ticker(
        symbol=symbol,
        timestamp=timestamp,
        high=safe_float(raw, "high24hr"),
        low=safe_float(raw, "low24hr"),
        bid=safe_float(raw, "highestBid"),
        ask=safe_float(raw, "lowestAsk"),
        open=open_,
        close=last,
        last=last,
        change=change,
        percentage=relative_change * 100 if relative_change is not None else None,
        average=average,
        base_volume=safe_float(raw, "quoteVolume"),
        quote_volume=safe_float(raw, "baseVolume"),
        info=raw,
    )


def parse_order_book(raw: Dict[str, Any], symbol: Optional[str] = None, timestamp: Optional[int] = None) -> OrderBook:
    def levels(key: str, descending: bool) -> List[List[float]]:
        rows = [[float(price), float(amount)] for price, amount in raw.get(key) or []]
        return sorted(rows, key=lambda row: row[0], reverse=descending)

    return OrderBook(
        symbol=symbol,
        timestamp=timestamp if timestamp is not None else milliseconds(),
        nonce=safe_integer(raw, "seq"),
        bids=levels("bids", True),
        asks=levels("asks", False),
    )


def parse_ohlcv(raw: Dict[str, Any]) -> OHLCV:
    """[timestamp_ms, open, high, low, close, volume]; volume is the base-currency volume."""
    date = safe_integer(raw, "date")
    return [
        date * 1000 if date is not None else None,
        safe_float(raw, "open"),
        safe_float(raw, "high"),
        safe_float(raw, "low"),
        safe_float(raw, "close"),
        safe_float(raw, "quoteVolume"),
    ]


# ============================================
# Trades & Orders
# ============================================

def parse_trade(
    raw: Dict[str, Any],
    index: MarketIndex,
    market: Optional[Market] = None,
    fee_rounding: str = ROUND
) -> Trade:
    """
    Build a Trade from a public or private trade record.

    When the record carries a fee rate, the fee is taken out of what the
    account received: base for a buy (``filled`` shrinks), quote for a
    sell (``cost`` shrinks).
    """
    symbol = base = quote = None
    if market is None and "currencyPair" in raw:
        market_id = raw["currencyPair"]
        market = index.market_by_id(market_id)
        if market is None:
            quote_id, base_id = split_pair(market_id)
            base = index.common_currency_code(base_id)
            quote = index.common_currency_code(quote_id)
            symbol = f"{base}/{quote}"
    if market is not None:
        symbol, base, quote = market.symbol, market.base, market.quote
    digits = market.precision.price if market is not None else 8

    side = safe_string(raw, "type")
    price = safe_float(raw, "rate")
    total = safe_float(raw, "total")
    amount = safe_float(raw, "amount")
    filled = amount
    cost = total
    fee = None
    rate = safe_float(raw, "fee")
    if rate is not None:
        fee_cost = 0.0
        fee_amount = 0.0
        if side == "buy":
            currency = base
            if amount is not None:
                fee_amount = float(decimal_to_precision(amount * rate, fee_rounding, digits))
                filled = amount - fee_amount
        else:
            currency = quote
            if total is not None:
                fee_cost = float(decimal_to_precision(total * rate, fee_rounding, digits))
                cost = total - fee_cost
        fee = Fee(currency=currency, rate=rate, cost=fee_cost, amount=fee_amount)

    return Trade(
        id=safe_string(raw, "globalTradeID"),
        order_id=safe_string(raw, "orderNumber"),
        timestamp=parse8601(safe_string(raw, "date")),
        symbol=symbol,
        type="limit",
        side=side,
        price=price,
        amount=amount,
        cost=cost,
        total=total,
        filled=filled,
        fee=fee,
        info=raw,
    )


def parse_trades(raws: List[Dict[str, Any]], index: MarketIndex, market: Optional[Market] = None) -> List[Trade]:
    return [parse_trade(raw, index, market) for raw in raws or []]


def parse_resulting_trades(value: Any, index: MarketIndex, market: Optional[Market]) -> List[Trade]:
    """resultingTrades is a list for buy/sell and a {pair: [trades]} dict for moveOrder."""
    if isinstance(value, dict):
        trades = []
        for market_id, raws in value.items():
            pair_market = index.market_by_id(market_id) or market
            trades.extend(parse_trades(raws, index, pair_market))
        return trades
    return parse_trades(value, index, market)


def parse_order(raw: Dict[str, Any], index: MarketIndex, market: Optional[Market] = None) -> Order:
    """
    Build an Order from a returnOrderStatus, returnOpenOrders or buy/sell reply.

    filled is startingAmount - amount when both are known; otherwise it is
    summed from the resulting trades.
    """
    timestamp = safe_integer(raw, "timestamp")
    if not timestamp:
        timestamp = parse8601(safe_string(raw, "date"))

    market_id = safe_string(raw, "currencyPair")
    market = index.market_by_id(market_id) or market
    if market is not None:
        symbol = market.symbol
    else:
        symbol = resolve_symbol(index, market_id)

    trades = None
    if "resultingTrades" in raw:
        trades = parse_resulting_trades(raw["resultingTrades"], index, market)

    price = safe_float2(raw, "price", "rate")
    remaining = safe_float(raw, "amount")
    amount = safe_float(raw, "startingAmount", remaining)
    filled = None
    cost = 0.0
    if amount is not None and remaining is not None:
        filled = amount - remaining
        if price is not None:
            cost = filled * price
    if filled is None and trades is not None:
        filled = sum(trade.amount or 0.0 for trade in trades)
        cost = sum((trade.price or 0.0) * (trade.amount or 0.0) for trade in trades)

    status = safe_string(raw, "status")
    order_type = safe_string(raw, "type")
    side = safe_string(raw, "side", order_type)
    if order_type == side:
        order_type = None

    return Order(
        id=safe_string(raw, "orderNumber"),
        timestamp=timestamp,
        status=ORDER_STATUSES.get(status, status),
        symbol=symbol,
        type=order_type,
        side=side,
        price=price,
        amount=amount,
        filled=filled,
        remaining=remaining,
        cost=cost,
        trades=trades,
        info=raw,
    )


def parse_open_orders(raws: List[Dict[str, Any]], index: MarketIndex, market: Optional[Market] = None) -> List[Order]:
    """Open-orders records carry the side in "type"; they are limit orders at "rate"."""
    orders = []
    for raw in raws or []:
        extended = {
            **raw,
            "status": "open",
            "type": "limit",
            "side": raw.get("type"),
            "price": raw.get("rate"),
        }
        orders.append(parse_order(extended, index, market))
    return orders


# ============================================
# Balances & Funding
# ============================================

def parse_balance(raw: Dict[str, Any], index: MarketIndex) -> Balances:
    """returnCompleteBalances: available is free, onOrders is used."""
    accounts = {}
    for currency_id, balance in raw.items():
        code = index.common_currency_code(currency_id)
        accounts[code] = {
            "free": safe_float(balance, "available", 0.0),
            "used": safe_float(balance, "onOrders", 0.0),
        }
    return build_balances(accounts, info=raw)


def parse_transaction(raw: Dict[str, Any], index: MarketIndex, type: Optional[str] = None) -> Transaction:
    """
    Build a Transaction from a returnDepositsWithdrawals entry.

    ``type`` is "deposit" or "withdrawal", depending on the list the entry
    came from.
    """
    timestamp = safe_integer(raw, "timestamp")
    if timestamp is not None:
        timestamp = timestamp * 1000

    currency_id = safe_string(raw, "currency")
    currency = index.currencies_by_id.get(currency_id) if currency_id else None
    code = currency.code if currency is not None else index.common_currency_code(currency_id)

    status = safe_string(raw, "status", "pending")
    txid = safe_string(raw, "txid")
    parts = status.split(": ")
    status = parts[0]
    if len(parts) > 1 and txid is None:
        txid = parts[1]
    status = TRANSACTION_STATUSES.get(status, status.lower())
    if status not in ("pending", "ok", "failed", "canceled"):
        status = "pending"

    type = type or safe_string(raw, "type")
    amount = safe_float(raw, "amount")
    fee_cost = safe_float(raw, "fee", 0.0)
    if type == "withdrawal" and amount is not None:
        amount = amount - fee_cost

    return Transaction(
        id=safe_string2(raw, "withdrawalNumber", "depositNumber"),
        txid=txid,
        timestamp=timestamp,
        currency=code,
        amount=amount,
        address=safe_string(raw, "address"),
        status=status,
        type=type,
        fee=TransactionFee(currency=code, cost=fee_cost),
        info=raw,
    )


# ============================================
# Lending
# ============================================

def parse_loan_offer(raw: Dict[str, Any], index: MarketIndex, currency_id: Optional[str] = None) -> LoanOffer:
    """Open loan offer or active loan. ``currency_id`` is used when the record lacks one."""
    auto_renew = safe_value(raw, "autoRenew")
    return LoanOffer(
        order_id=safe_string(raw, "id"),
        symbol=index.common_currency_code(safe_string(raw, "currency", currency_id)),
        rate=safe_float(raw, "rate"),
        amount=safe_float(raw, "amount"),
        duration=safe_integer(raw, "duration"),
        auto_renew=str(auto_renew) == "1" if auto_renew is not None else None,
        timestamp=parse8601(safe_string(raw, "date")),
        info=raw,
    )


def parse_lending_history(raw: Dict[str, Any], index: MarketIndex, fee_rate: float) -> LoanOffer:
    """
    Settled loan from returnLendingHistory.

    ``earned`` is reported net of the lending fee: the fee is
    ``fee_rate`` of the reported earnings.
    """
    earned = safe_float(raw, "earned", 0.0)
    fee = earned * fee_rate
    return LoanOffer(
        order_id=safe_string(raw, "id"),
        symbol=index.common_currency_code(safe_string(raw, "currency")),
        rate=safe_float(raw, "rate"),
        amount=safe_float(raw, "amount"),
        duration=safe_integer(raw, "duration"),
        timestamp=parse8601(safe_string(raw, "close")),
        earned=earned - fee,
        fee=fee,
        info=raw,
    )
