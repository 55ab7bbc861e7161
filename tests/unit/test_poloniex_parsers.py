"""
Unit Tests for Poloniex Response Normalizers

These tests verify that exchanges.poloniex.parsers:
- Derives the ticker open from the relative change and swaps the volumes
- Charges trade fees in base for buys and in quote for sells
- Resolves unlisted pairs through the currency remapping
- Nets withdrawal fees and extracts txids from the status text

Run with:
    pytest tests/unit/test_poloniex_parsers.py -v
"""

import pytest

from core.markets import MarketIndex
from exchanges.poloniex import PoloniexExchange
from exchanges.poloniex.parsers import (
    parse_balance,
    parse_currency,
    parse_lending_history,
    parse_loan_offer,
    parse_market,
    parse_ohlcv,
    parse_open_orders,
    parse_order,
    parse_order_book,
    parse_ticker,
    parse_trade,
    parse_transaction,
)


@pytest.fixture
def index():
    index = MarketIndex(PoloniexExchange.common_currencies)
    index.set_markets([
        parse_market("BTC_ETH", {"id": 148, "isFrozen": "0"}, index),
        parse_market("USDT_BTC", {"id": 121, "isFrozen": "0"}, index),
    ])
    return index


@pytest.fixture
def eth_btc(index):
    return index.market("ETH/BTC")


# ============================================
# Markets
# ============================================

class TestParseMarket:
    """returnTicker entries"""

    def test_pair_reads_quote_first(self, eth_btc):
        assert eth_btc.symbol == "ETH/BTC"
        assert eth_btc.base_id == "ETH"
        assert eth_btc.quote_id == "BTC"
        assert eth_btc.active is True
        assert eth_btc.maker == 0.001
        assert eth_btc.taker == 0.002

    def test_min_cost_by_quote(self, index):
        assert index.market("ETH/BTC").limits.cost.min == 0.0001
        assert index.market("BTC/USDT").limits.cost.min == 1.0

    def test_frozen_market_is_inactive(self, index):
        market = parse_market("BTC_STR", {"isFrozen": "1"}, index)
        assert market.symbol == "XLM/BTC"
        assert market.active is False

    def test_currency(self, index):
        currency = parse_currency("STR", {
            "id": 89,
            "name": "Stellar",
            "txFee": "0.01000000",
            "minConf": 1,
            "depositAddress": "GCGNWKCJ3KHRLPM3TM6N7D3W5YKDJFL6A2YCXFXNMRTZ4Q66MEMZ6FI2",
            "disabled": 0,
            "delisted": 0,
            "frozen": 0,
        }, index)
        assert currency.code == "XLM"
        assert currency.id == "STR"
        assert currency.active is True
        assert currency.fee == 0.01
        assert currency.limits.withdraw.min == 0.01


# ============================================
# Market Data
# ============================================

class TestParseTicker:
    """Derived ticker fields"""

    def test_open_is_derived_from_relative_change(self):
        ticker = parse_ticker({
            "last": "0.05",
            "lowestAsk": "0.0501",
            "highestBid": "0.0499",
            "percentChange": "0.1",
            "baseVolume": "100",
            "quoteVolume": "2000",
            "high24hr": "0.052",
            "low24hr": "0.044",
        }, "ETH/BTC", timestamp=1514764800000)

        assert ticker.symbol == "ETH/BTC"
        assert ticker.timestamp == 1514764800000
        assert ticker.open == pytest.approx(0.0454545, rel=1e-5)
        assert ticker.change == pytest.approx(0.0045455, rel=1e-4)
        assert ticker.percentage == pytest.approx(10.0)
        assert ticker.average == pytest.approx((0.05 + 0.0454545) / 2, rel=1e-5)
        assert ticker.close == ticker.last == 0.05
        assert ticker.bid == 0.0499
        assert ticker.ask == 0.0501

    def test_volumes_are_swapped(self):
        ticker = parse_ticker({"last": "0.05", "baseVolume": "100", "quoteVolume": "2000"}, "ETH/BTC")
        assert ticker.base_volume == 2000.0
        assert ticker.quote_volume == 100.0

    def test_missing_change_leaves_open_unset(self):
        ticker = parse_ticker({"last": "0.05"}, "ETH/BTC")
        assert ticker.open is None
        assert ticker.percentage is None

    def test_order_book_sorted(self):
        book = parse_order_book({
            "asks": [["0.051", 2], ["0.050", 1]],
            "bids": [["0.048", 1], ["0.049", 3]],
            "isFrozen": "0",
            "seq": 1234,
        }, "ETH/BTC", timestamp=1)

        assert book.bids == [[0.049, 3.0], [0.048, 1.0]]
        assert book.asks == [[0.050, 1.0], [0.051, 2.0]]
        assert book.nonce == 1234
        assert book.timestamp == 1

    def test_ohlcv(self):
        candle = parse_ohlcv({
            "date": 1405699200,
            "high": 0.0045388,
            "low": 0.00403001,
            "open": 0.00404545,
            "close": 0.00427592,
            "volume": 44.11655644,
            "quoteVolume": 10259.29079097,
            "weightedAverage": 0.00430015,
        })
        assert candle == [1405699200000, 0.00404545, 0.0045388, 0.00403001, 0.00427592, 10259.29079097]


# ============================================
# Trades & Orders
# ============================================

class TestParseTrade:
    """Fee currency asymmetry"""

    def test_buy_fee_is_charged_in_base(self, index, eth_btc):
        trade = parse_trade({
            "globalTradeID": 25129732,
            "tradeID": "6325758",
            "date": "2018-01-01 00:00:00",
            "rate": "0.05",
            "amount": "10",
            "total": "0.5",
            "fee": "0.00200000",
            "orderNumber": "34225313575",
            "type": "buy",
            "category": "exchange",
        }, index, eth_btc)

        assert trade.id == "25129732"
        assert trade.order_id == "34225313575"
        assert trade.timestamp == 1514764800000
        assert trade.symbol == "ETH/BTC"
        assert trade.side == "buy"
        assert trade.fee.currency == "ETH"
        assert trade.fee.amount == pytest.approx(0.02)
        assert trade.fee.cost == 0.0
        assert trade.filled == pytest.approx(9.98)
        assert trade.cost == 0.5

    def test_sell_fee_is_charged_in_quote(self, index, eth_btc):
        trade = parse_trade({
            "date": "2018-01-01 00:00:00",
            "rate": "0.05",
            "amount": "10",
            "total": "0.5",
            "fee": "0.002",
            "type": "sell",
        }, index, eth_btc)

        assert trade.fee.currency == "BTC"
        assert trade.fee.cost == pytest.approx(0.001)
        assert trade.fee.amount == 0.0
        assert trade.cost == pytest.approx(0.499)
        assert trade.filled == 10.0

    def test_public_trade_has_no_fee(self, index, eth_btc):
        trade = parse_trade({"date": "2018-01-01 00:00:00", "type": "sell", "rate": "0.05",
                             "amount": "1", "total": "0.05"}, index, eth_btc)
        assert trade.fee is None
        assert trade.cost == 0.05

    def test_unlisted_pair_is_remapped(self, index):
        trade = parse_trade({
            "currencyPair": "BTC_STR",
            "date": "2018-01-01 00:00:00",
            "rate": "0.00003",
            "amount": "1000",
            "total": "0.03",
            "fee": "0.001",
            "type": "buy",
        }, index)

        assert trade.symbol == "XLM/BTC"
        assert trade.fee.currency == "XLM"


class TestParseOrder:
    """Orders from replies and listings"""

    def test_open_orders_listing(self, index, eth_btc):
        orders = parse_open_orders([{
            "orderNumber": "120466",
            "type": "sell",
            "rate": "0.025",
            "startingAmount": "100",
            "amount": "60",
            "total": "1.5",
            "date": "2018-01-01 00:00:00",
            "margin": 0,
        }], index, eth_btc)

        order = orders[0]
        assert order.id == "120466"
        assert order.status == "open"
        assert order.type == "limit"
        assert order.side == "sell"
        assert order.price == 0.025
        assert order.amount == 100.0
        assert order.remaining == 60.0
        assert order.filled == 40.0
        assert order.cost == pytest.approx(1.0)
        assert order.timestamp == 1514764800000

    def test_order_status_reply(self, index):
        order = parse_order({
            "status": "Partially filled",
            "rate": "0.05",
            "amount": "4",
            "currencyPair": "BTC_ETH",
            "date": "2018-01-01 00:00:00",
            "total": "0.2",
            "type": "buy",
            "startingAmount": "10",
        }, index)

        assert order.status == "open"
        assert order.symbol == "ETH/BTC"
        assert order.side == "buy"
        assert order.type is None
        assert order.filled == 6.0

    def test_order_reply_with_resulting_trades(self, index, eth_btc):
        order = parse_order({
            "orderNumber": 31226040,
            "resultingTrades": [
                {"amount": "2", "date": "2018-01-01 00:00:00", "rate": "0.05", "total": "0.1",
                 "tradeID": "16164", "type": "buy"},
                {"amount": "1", "date": "2018-01-01 00:00:00", "rate": "0.04", "total": "0.04",
                 "tradeID": "16165", "type": "buy"},
            ],
        }, index, eth_btc)

        assert order.id == "31226040"
        assert len(order.trades) == 2
        assert order.filled == 3.0
        assert order.cost == pytest.approx(0.14)

    def test_move_order_trades_keyed_by_pair(self, index):
        order = parse_order({
            "orderNumber": "239574176",
            "resultingTrades": {"BTC_ETH": [
                {"amount": "1", "date": "2018-01-01 00:00:00", "rate": "0.05", "total": "0.05",
                 "tradeID": "1", "type": "sell"},
            ]},
        }, index)

        assert order.trades[0].symbol == "ETH/BTC"


# ============================================
# Balances & Funding
# ============================================

class TestParseBalance:
    def test_available_and_on_orders(self, index):
        balances = parse_balance({
            "BTC": {"available": "1.5", "onOrders": "0.5", "btcValue": "2"},
            "STR": {"available": "100", "onOrders": "0", "btcValue": "0.01"},
        }, index)

        assert balances["BTC"].free == 1.5
        assert balances["BTC"].used == 0.5
        assert balances["BTC"].total == 2.0
        assert balances["XLM"].total == 100.0


class TestParseTransaction:
    """returnDepositsWithdrawals entries"""

    def test_withdrawal_amount_is_net_of_fee(self, index):
        transaction = parse_transaction({
            "withdrawalNumber": 134933,
            "currency": "BTC",
            "address": "1N2i5n8DwTGzUq2Vmn9TUL8J1vdr1XBDFg",
            "amount": "5.00010000",
            "fee": "0.00010000",
            "timestamp": 1406112051,
            "status": "COMPLETE: 36e483efa6aff9fd53a235177579d98451c4eb237c210e66cd2b9a2d4a988f8e",
            "ipAddress": "...",
        }, index, "withdrawal")

        assert transaction.id == "134933"
        assert transaction.type == "withdrawal"
        assert transaction.amount == pytest.approx(5.0)
        assert transaction.fee.cost == pytest.approx(0.0001)
        assert transaction.status == "ok"
        assert transaction.txid == "36e483efa6aff9fd53a235177579d98451c4eb237c210e66cd2b9a2d4a988f8e"
        assert transaction.timestamp == 1406112051000

    def test_pending_deposit(self, index):
        transaction = parse_transaction({
            "currency": "STR",
            "address": "GCGNWKCJ3KHRLPM3TM6N7D3W5YKDJFL6A2YCXFXNMRTZ4Q66MEMZ6FI2",
            "amount": "10",
            "confirmations": 0,
            "txid": "abc",
            "timestamp": 1406112051,
            "status": "PENDING",
        }, index, "deposit")

        assert transaction.currency == "XLM"
        assert transaction.status == "pending"
        assert transaction.amount == 10.0
        assert transaction.txid == "abc"

    def test_unknown_status_is_pending(self, index):
        transaction = parse_transaction({"currency": "BTC", "status": "AWAITING APPROVAL"}, index, "withdrawal")
        assert transaction.status == "pending"


# ============================================
# Lending
# ============================================

class TestLending:
    def test_loan_offer(self, index):
        offer = parse_loan_offer({
            "id": 10595,
            "rate": "0.00020000",
            "amount": "3.00000000",
            "duration": 2,
            "autoRenew": 1,
            "date": "2018-01-01 00:00:00",
        }, index, "STR")

        assert offer.order_id == "10595"
        assert offer.symbol == "XLM"
        assert offer.auto_renew is True
        assert offer.duration == 2
        assert offer.timestamp == 1514764800000

    def test_lending_history_fee(self, index):
        loan = parse_lending_history({
            "id": 175589553,
            "currency": "BTC",
            "rate": "0.00057400",
            "amount": "0.04374404",
            "duration": "0.47610000",
            "interest": "0.00001196",
            "fee": "-0.00000179",
            "earned": "1.0",
            "open": "2016-09-28 06:47:26",
            "close": "2018-01-01 00:00:00",
        }, index, 0.02)

        assert loan.fee == pytest.approx(0.02)
        assert loan.earned == pytest.approx(0.98)
        assert loan.duration == 0
        assert loan.timestamp == 1514764800000
