"""
Cryptopia Response Normalizers

Pure functions turning Cryptopia payloads (the "Data" member of each
reply) into the models of core.schemas.

Wire quirks handled here:
    - Pair ids are built as BASE_QUOTE from "Symbol" and "BaseSymbol";
      payloads refer to pairs by label ("DOT/BTC") or by that id
    - Ticker "Volume" is in base, "BaseVolume" in quote
    - Trade timestamps are unix seconds ("Timestamp") or ISO strings ("TimeStamp")
    - Fees are reported as percentages ("TradeFee": 0.2 means 0.2%)
"""

from typing import Any, Dict, List, Optional

from core.balance import build_balances
from core.markets import MarketIndex
from core.schemas import (
    OHLCV,
    Balances,
    Currency,
    CurrencyLimits,
    Fee,
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
from core.utils.fields import safe_float, safe_integer, safe_string
from core.utils.time import milliseconds, parse8601

TRANSACTION_STATUSES = {
    "Confirmed": "ok",
    "Complete": "ok",
    "Pending": "pending",
}

TRANSACTION_TYPES = {
    "Withdraw": "withdrawal",
    "Deposit": "deposit",
}

CURRENCY_PRECISION = 8


def resolve_market(index: MarketIndex, market_id: Optional[str]) -> Optional[Market]:
    """Look a pair up by id ("DOT_BTC") or by label ("DOT/BTC")."""
    if market_id is None:
        return None
    return index.market_by_id(market_id) or index.market_by_id(market_id.replace("/", "_"))


def resolve_symbol(index: MarketIndex, market_id: Optional[str]) -> Optional[str]:
    if market_id is None:
        return None
    return index.symbol_from_id(market_id.replace("/", "_"), delimiter="_")


# ============================================
# Markets & Currencies
# ============================================

def parse_market(raw: Dict[str, Any], index: MarketIndex) -> Market:
    """Build a Market from one GetTradePairs entry."""
    base_id = raw["Symbol"]
    quote_id = raw["BaseSymbol"]
    base = index.common_currency_code(base_id)
    quote = index.common_currency_code(quote_id)
    fee = safe_float(raw, "TradeFee")
    return Market(
        id=f"{base_id}_{quote_id}",
        symbol=f"{base}/{quote}",
        base=base,
        quote=quote,
        base_id=base_id,
        quote_id=quote_id,
        active=raw.get("Status") == "OK",
        limits=MarketLimits(
            amount=MinMax(min=safe_float(raw, "MinimumTrade"), max=safe_float(raw, "MaximumTrade")),
            price=MinMax(min=safe_float(raw, "MinimumPrice"), max=safe_float(raw, "MaximumPrice")),
            cost=MinMax(min=safe_float(raw, "MinimumBaseTrade")),
        ),
        maker=fee / 100 if fee is not None else None,
        taker=fee / 100 if fee is not None else None,
        numeric_id=safe_integer(raw, "Id"),
        label=safe_string(raw, "Label"),
        info=raw,
    )


def parse_currency(raw: Dict[str, Any], index: MarketIndex) -> Currency:
    """Build a Currency from one GetCurrencies entry."""
    precision = CURRENCY_PRECISION
    currency_id = raw["Symbol"]
    active = raw.get("ListingStatus") == "Active" and str(raw.get("Status", "")).lower() == "ok"
    return Currency(
        id=currency_id,
        code=index.common_currency_code(currency_id),
        numeric_id=safe_integer(raw, "Id"),
        name=safe_string(raw, "Name"),
        active=active,
        fee=safe_float(raw, "WithdrawFee"),
        precision=precision,
        limits=CurrencyLimits(
            amount=MinMax(min=10 ** -precision, max=10 ** precision),
            price=MinMax(min=10 ** -precision, max=10 ** precision),
            cost=MinMax(min=safe_float(raw, "MinBaseTrade")),
            withdraw=MinMax(min=safe_float(raw, "MinWithdraw"), max=safe_float(raw, "MaxWithdraw")),
        ),
        info=raw,
    )


# ============================================
# Market Data
# ============================================

def parse_ticker(raw: Dict[str, Any], market: Optional[Market] = None, timestamp: Optional[int] = None) -> Ticker:
    if timestamp is None:
        timestamp = milliseconds()
    open_ = safe_float(raw, "Open")
    last = safe_float(raw, "LastPrice")
    base_volume = safe_float(raw, "Volume")
    quote_volume = safe_float(raw, "BaseVolume")
    vwap = None
    if base_volume and quote_volume is not None:
        vwap = quote_volume / base_volume
    both = last is not None and open_ is not None
    return Ticker(
        symbol=market.symbol if market is not None else None,
        timestamp=timestamp,
        high=safe_float(raw, "High"),
        low=safe_float(raw, "Low"),
        bid=safe_float(raw, "BidPrice"),
        ask=safe_float(raw, "AskPrice"),
        vwap=vwap,
        open=open_,
        close=last,
        last=last,
        change=last - open_ if both else None,
        percentage=safe_float(raw, "Change"),
        average=(last + open_) / 2 if both else None,
        base_volume=base_volume,
        quote_volume=quote_volume,
        info=raw,
    )


def parse_order_book(raw: Dict[str, Any], symbol: Optional[str] = None, timestamp: Optional[int] = None) -> OrderBook:
    """GetMarketOrders / GetMarketOrderGroups entry: "Buy" and "Sell" lists of {Price, Volume}."""
    def levels(key: str, descending: bool) -> List[List[float]]:
        rows = [[float(row["Price"]), float(row["Volume"])] for row in raw.get(key) or []]
        return sorted(rows, key=lambda row: row[0], reverse=descending)

    return OrderBook(
        symbol=symbol,
        timestamp=timestamp if timestamp is not None else milliseconds(),
        bids=levels("Buy", True),
        asks=levels("Sell", False),
    )


def parse_ohlcv(candle: List[Any], volume: Optional[Dict[str, Any]] = None) -> OHLCV:
    """Chart candle [timestamp_ms, open, high, low, close] plus the base volume of the period."""
    return [
        int(candle[0]),
        float(candle[1]),
        float(candle[2]),
        float(candle[3]),
        float(candle[4]),
        safe_float(volume, "basev"),
    ]


# ============================================
# Trades & Orders
# ============================================

def parse_trade(raw: Dict[str, Any], index: MarketIndex, market: Optional[Market] = None) -> Trade:
    """Public (GetMarketHistory) or private (GetTradeHistory) trade; fees are in quote."""
    if "Timestamp" in raw:
        timestamp = safe_integer(raw, "Timestamp")
        timestamp = timestamp * 1000 if timestamp is not None else None
    else:
        timestamp = parse8601(safe_string(raw, "TimeStamp"))

    symbol = None
    if market is None:
        market_id = safe_string(raw, "Market")
        market = resolve_market(index, market_id)
        if market is None:
            symbol = resolve_symbol(index, market_id)
    if market is not None:
        symbol = market.symbol

    fee = None
    fee_cost = safe_float(raw, "Fee")
    if fee_cost is not None and market is not None:
        fee = Fee(currency=market.quote, cost=fee_cost)

    side = safe_string(raw, "Type")
    return Trade(
        id=safe_string(raw, "TradeId"),
        timestamp=timestamp,
        symbol=symbol,
        type="limit",
        side=side.lower() if side else None,
        price=safe_float(raw, "Price") or safe_float(raw, "Rate"),
        amount=safe_float(raw, "Amount"),
        cost=safe_float(raw, "Total"),
        fee=fee,
        info=raw,
    )


def parse_trades(raws: List[Dict[str, Any]], index: MarketIndex, market: Optional[Market] = None) -> List[Trade]:
    return [parse_trade(raw, index, market) for raw in raws or []]


def parse_order(raw: Dict[str, Any], index: MarketIndex, market: Optional[Market] = None) -> Order:
    """GetOpenOrders entry. ``status`` is only present when set by the caller."""
    if market is None:
        market = resolve_market(index, safe_string(raw, "Market"))
    amount = safe_float(raw, "Amount")
    remaining = safe_float(raw, "Remaining")
    filled = amount - remaining if amount is not None and remaining is not None else None
    side = safe_string(raw, "Type")
    return Order(
        id=safe_string(raw, "OrderId"),
        timestamp=parse8601(safe_string(raw, "TimeStamp")),
        status=safe_string(raw, "status"),
        symbol=market.symbol if market is not None else resolve_symbol(index, safe_string(raw, "Market")),
        type="limit",
        side=side.lower() if side else None,
        price=safe_float(raw, "Rate"),
        cost=safe_float(raw, "Total"),
        amount=amount,
        filled=filled,
        remaining=remaining,
        info={key: value for key, value in raw.items() if key != "status"},
    )


# ============================================
# Balances & Funding
# ============================================

def parse_balance(raws: List[Dict[str, Any]], index: MarketIndex, info: Any = None) -> Balances:
    """GetBalance: used is Total - Available."""
    accounts = {}
    for raw in raws or []:
        code = index.common_currency_code(raw["Symbol"])
        free = safe_float(raw, "Available", 0.0)
        total = safe_float(raw, "Total", 0.0)
        accounts[code] = {"free": free, "used": total - free}
    return build_balances(accounts, info=info)


def parse_transaction(raw: Dict[str, Any], index: MarketIndex) -> Transaction:
    """GetTransactions entry (deposit or withdrawal)."""
    currency_id = safe_string(raw, "Currency")
    currency = index.currencies_by_id.get(currency_id) if currency_id else None
    code = currency.code if currency is not None else index.common_currency_code(currency_id)

    status = safe_string(raw, "Status")
    if status is not None:
        status = TRANSACTION_STATUSES.get(status, status.lower())
        if status not in ("pending", "ok", "failed", "canceled"):
            status = "pending"
    type = safe_string(raw, "Type")
    type = TRANSACTION_TYPES.get(type, type)

    return Transaction(
        id=safe_string(raw, "Id"),
        txid=safe_string(raw, "TxId"),
        timestamp=parse8601(safe_string(raw, "Timestamp")),
        currency=code,
        amount=safe_float(raw, "Amount"),
        address=safe_string(raw, "Address"),
        status=status,
        type=type if type in ("deposit", "withdrawal") else None,
        fee=TransactionFee(currency=code, cost=safe_float(raw, "Fee")),
        info=raw,
    )


def parse_deposit_address(raw: Any) -> Dict[str, Optional[str]]:
    """
    GetDepositAddress: currencies with a shared address report it as
    BaseAddress and the per-user part as Address (the tag).
    """
    address = safe_string(raw, "BaseAddress")
    tag = safe_string(raw, "Address")
    if address is None:
        address, tag = tag, None
    return {"address": address, "tag": tag}

