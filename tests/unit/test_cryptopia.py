"""
Unit Tests for the Cryptopia Connector

These tests verify:
- The amx Authorization header and {"Success": false} error replies
- Normalization of pairs, tickers, order books, trades and transactions
- Order placement (immediate fills are not cached), cancel and emulated history
- Argument checks of fetch_order_books

Run with:
    pytest tests/unit/test_cryptopia.py -v
"""

import asyncio
import base64
import hashlib
import hmac

import pytest

from core.errors import (
    AuthenticationError,
    ExchangeError,
    InsufficientFunds,
    InvalidNonce,
    InvalidOrder,
    OrderNotFound,
)
from core.schemas import CANCELED, CLOSED, OPEN
from exchanges.cryptopia import CryptopiaExchange
from exchanges.cryptopia.api_client import CryptopiaAPIClient, encode_uri_component
from exchanges.cryptopia.parsers import (
    parse_balance,
    parse_deposit_address,
    parse_market,
    parse_order_book,
    parse_ticker,
    parse_trade,
    parse_transaction,
)

SECRET = base64.b64encode(b"cryptopia-secret").decode()

TRADE_PAIRS = [
    {
        "Id": 100,
        "Label": "DOT/BTC",
        "Currency": "Dotcoin",
        "Symbol": "DOT",
        "BaseCurrency": "Bitcoin",
        "BaseSymbol": "BTC",
        "Status": "OK",
        "TradeFee": 0.2,
        "MinimumTrade": 0.00000001,
        "MaximumTrade": 1000000000,
        "MinimumBaseTrade": 0.0005,
        "MaximumBaseTrade": 1000000000,
        "MinimumPrice": 0.00000001,
        "MaximumPrice": 1000000000,
    },
    {
        "Id": 101,
        "Label": "CC/BTC",
        "Symbol": "CC",
        "BaseSymbol": "BTC",
        "Status": "Paused",
        "TradeFee": 0.2,
    },
]


@pytest.fixture
def exchange():
    exchange = CryptopiaExchange(api_key="key", secret=SECRET)
    exchange.index.set_markets([parse_market(raw, exchange.index) for raw in TRADE_PAIRS])
    return exchange


@pytest.fixture
def dot_btc(exchange):
    return exchange.market("DOT/BTC")


# ============================================
# API Client
# ============================================

class TestAPIClient:

    def test_encode_uri_component(self):
        assert encode_uri_component("https://www.cryptopia.co.nz/api/GetBalance") == \
            "https%3A%2F%2Fwww.cryptopia.co.nz%2Fapi%2FGetBalance"

    def test_authorization_header(self):
        client = CryptopiaAPIClient(api_key="key", secret=SECRET, base_url="https://www.cryptopia.co.nz")
        url = "https://www.cryptopia.co.nz/api/GetBalance"
        body = "{}"

        header = client.authorization("POST", url, body, 1514764800000)

        body_hash = base64.b64encode(hashlib.md5(b"{}").digest()).decode()
        signed = "keyPOST" + encode_uri_component(url).lower() + "1514764800000" + body_hash
        signature = base64.b64encode(
            hmac.new(b"cryptopia-secret", signed.encode(), hashlib.sha256).digest()
        ).decode()
        assert header == f"amx key:{signature}:1514764800000"

    def test_nonce_is_increasing(self):
        client = CryptopiaAPIClient(api_key="key", secret=SECRET)
        first = client.nonce()
        assert client.nonce() > first

    @pytest.mark.parametrize("error,kind", [
        ("Insufficient Funds.", InsufficientFunds),
        ("Invalid trade amount, Minimum trade amount is 0.0005 BTC", InvalidOrder),
        ("No matching trades found", OrderNotFound),
        ("Order #123 does not exist", OrderNotFound),
        ("Nonce has already been used for this request.", InvalidNonce),
        ("Something unexpected", ExchangeError),
    ])
    def test_error_replies(self, error, kind):
        client = CryptopiaAPIClient(api_key="key", secret=SECRET)
        with pytest.raises(kind):
            client.handle_errors(200, "{...}", {"Success": False, "Error": error, "Data": None})

    def test_success_reply_passes(self):
        client = CryptopiaAPIClient(api_key="key", secret=SECRET)
        client.handle_errors(200, "{...}", {"Success": True, "Error": None, "Data": []})
        client.handle_errors(200, "{...}", {"Candle": []})

    @pytest.mark.asyncio
    async def test_private_requires_credentials(self):
        client = CryptopiaAPIClient(api_key="", secret="")
        with pytest.raises(AuthenticationError):
            await client.private("GetBalance")


# ============================================
# Parsers
# ============================================

class TestParsers:

    def test_market(self, exchange, dot_btc):
        assert dot_btc.id == "DOT_BTC"
        assert dot_btc.label == "DOT/BTC"
        assert dot_btc.numeric_id == 100
        assert dot_btc.maker == pytest.approx(0.002)
        assert dot_btc.limits.cost.min == 0.0005
        assert dot_btc.active is True

    def test_remapped_market(self, exchange):
        market = exchange.market("CCX/BTC")
        assert market.id == "CC_BTC"
        assert market.active is False

    def test_ticker(self, dot_btc):
        ticker = parse_ticker({
            "TradePairId": 100,
            "Label": "DOT/BTC",
            "AskPrice": 0.00000210,
            "BidPrice": 0.00000200,
            "Low": 0.00000190,
            "High": 0.00000220,
            "Volume": 1000,
            "LastPrice": 0.00000205,
            "BuyVolume": 500,
            "SellVolume": 500,
            "Change": 7.89,
            "Open": 0.00000190,
            "Close": 0.00000205,
            "BaseVolume": 0.002,
        }, dot_btc, timestamp=1)

        assert ticker.symbol == "DOT/BTC"
        assert ticker.base_volume == 1000
        assert ticker.quote_volume == 0.002
        assert ticker.vwap == pytest.approx(0.000002)
        assert ticker.percentage == 7.89
        assert ticker.change == pytest.approx(0.00000015)

    def test_order_book(self):
        book = parse_order_book({
            "Buy": [{"Price": 0.0001, "Volume": 10}, {"Price": 0.0002, "Volume": 5}],
            "Sell": [{"Price": 0.0004, "Volume": 1}, {"Price": 0.0003, "Volume": 2}],
        }, "DOT/BTC", timestamp=1)

        assert book.bids == [[0.0002, 5.0], [0.0001, 10.0]]
        assert book.asks == [[0.0003, 2.0], [0.0004, 1.0]]

    def test_public_trade_seconds_timestamp(self, exchange, dot_btc):
        trade = parse_trade({
            "TradePairId": 100,
            "Label": "DOT/BTC",
            "Type": "Sell",
            "Price": 0.00000205,
            "Amount": 100,
            "Total": 0.000205,
            "Timestamp": 1514764800,
        }, exchange.index, dot_btc)

        assert trade.timestamp == 1514764800000
        assert trade.side == "sell"
        assert trade.fee is None

    def test_private_trade_iso_timestamp(self, exchange):
        trade = parse_trade({
            "TradeId": 23467,
            "TradePairId": 100,
            "Market": "DOT/BTC",
            "Type": "Buy",
            "Rate": 0.00000034,
            "Amount": 145.98000000,
            "Total": 0.00004963,
            "Fee": 0.98760000,
            "TimeStamp": "2018-01-01T00:00:00.1234567",
        }, exchange.index)

        assert trade.id == "23467"
        assert trade.symbol == "DOT/BTC"
        assert trade.price == 0.00000034
        assert trade.timestamp == 1514764800123
        assert trade.fee.currency == "BTC"
        assert trade.fee.cost == 0.9876

    def test_balance(self, exchange):
        balances = parse_balance([
            {"CurrencyId": 1, "Symbol": "BTC", "Total": 10.5, "Available": 6.0, "Unconfirmed": 0,
             "HeldForTrades": 4.5, "PendingWithdraw": 0, "Address": "...", "Status": "OK"},
        ], exchange.index)

        assert balances["BTC"].free == 6.0
        assert balances["BTC"].used == 4.5
        assert balances["BTC"].total == 10.5

    def test_transaction(self, exchange):
        transaction = parse_transaction({
            "Id": 23467,
            "Currency": "DOT",
            "TxId": "6ddbaca454c97ba4e8a87a1cb49fa5ceace80b89eaced84b46a8f52c2b8c8ca3",
            "Type": "Withdraw",
            "Amount": 145.98000000,
            "Fee": "0.00000000",
            "Status": "Complete",
            "Confirmations": "20",
            "Timestamp": "2018-01-01T00:00:00",
            "Address": "",
        }, exchange.index)

        assert transaction.type == "withdrawal"
        assert transaction.status == "ok"
        assert transaction.timestamp == 1514764800000
        assert transaction.address is None

    def test_transaction_unknown_status_is_pending(self, exchange):
        transaction = parse_transaction({"Currency": "DOT", "Type": "Deposit", "Status": "Unconfirmed"},
                                        exchange.index)
        assert transaction.type == "deposit"
        assert transaction.status == "pending"

    def test_deposit_address_with_base_address(self):
        assert parse_deposit_address({"Currency": "XRP", "Address": "12345", "BaseAddress": "rBase"}) == \
            {"address": "rBase", "tag": "12345"}
        assert parse_deposit_address({"Currency": "BTC", "Address": "1Abc", "BaseAddress": None}) == \
            {"address": "1Abc", "tag": None}


# ============================================
# Exchange
# ============================================

class TestMarketData:

    @pytest.mark.asyncio
    async def test_fetch_tickers_rejects_unknown_pair(self, exchange, fake_api):
        fake_api(exchange.client, "public", {
            "GetMarkets": {"Success": True, "Data": [{"Label": "NEW/BTC", "LastPrice": 1}]},
        })

        with pytest.raises(ExchangeError):
            await exchange.fetch_tickers()

    @pytest.mark.asyncio
    async def test_fetch_ticker_path(self, exchange, fake_api):
        fake = fake_api(exchange.client, "public", {
            "GetMarket/DOT_BTC": {"Success": True, "Data": {"Label": "DOT/BTC", "LastPrice": 0.1, "Open": 0.08}},
        })

        ticker = await exchange.fetch_ticker("DOT/BTC")

        assert fake.commands() == ["GetMarket/DOT_BTC"]
        assert ticker.change == pytest.approx(0.02)

    @pytest.mark.asyncio
    async def test_fetch_order_books_requires_symbols(self, exchange):
        with pytest.raises(ExchangeError):
            await exchange.fetch_order_books()

    @pytest.mark.asyncio
    async def test_fetch_order_books_limit(self, exchange):
        with pytest.raises(ExchangeError):
            await exchange.fetch_order_books(["DOT/BTC"] * 6)

    @pytest.mark.asyncio
    async def test_fetch_order_books(self, exchange, fake_api):
        fake = fake_api(exchange.client, "public", {
            "GetMarketOrderGroups/DOT_BTC-CC_BTC/10": {"Success": True, "Data": [
                {"TradePairId": 100, "Market": "DOT_BTC", "Buy": [{"Price": 1, "Volume": 2}], "Sell": []},
                {"TradePairId": 101, "Market": "CC_BTC", "Buy": [], "Sell": [{"Price": 3, "Volume": 4}]},
            ]},
        })

        books = await exchange.fetch_order_books(["DOT/BTC", "CCX/BTC"], limit=10)

        assert len(fake.calls) == 1
        assert books["DOT/BTC"].bids == [[1.0, 2.0]]
        assert books["CCX/BTC"].asks == [[3.0, 4.0]]

    @pytest.mark.asyncio
    async def test_fetch_ohlcv(self, exchange, fake_api):
        fake = fake_api(exchange.client, "web", {
            "Exchange/GetTradePairChart": {
                "Candle": [[1514764800000, 1, 2, 0.5, 1.5], [1514765700000, 1.5, 2, 1, 1]],
                "Volume": [{"x": 1514764800000, "y": 1, "basev": 10}, {"x": 1514765700000, "y": 2, "basev": 20}],
            },
        })

        candles = await exchange.fetch_ohlcv("DOT/BTC", "15m")

        assert fake.params("Exchange/GetTradePairChart") == {"tradePairId": 100, "dataRange": 0, "dataGroup": 15}
        assert candles[1] == [1514765700000, 1.5, 2.0, 1.0, 1.0, 20.0]


class TestOrders:

    @pytest.mark.asyncio
    async def test_market_orders_are_rejected(self, exchange):
        with pytest.raises(InvalidOrder):
            await exchange.create_order("DOT/BTC", "market", "buy", 1.0)

    @pytest.mark.asyncio
    async def test_create_order_is_cached(self, exchange, fake_api):
        fake = fake_api(exchange.client, "private", {
            "SubmitTrade": {"Success": True, "Error": None, "Data": {"OrderId": 23467, "FilledOrders": []}},
        })

        order = await exchange.create_order("DOT/BTC", "limit", "buy", 100.0, 0.00001)

        assert fake.params("SubmitTrade") == {"Market": "DOT_BTC", "Type": "Buy", "Rate": 0.00001, "Amount": 100.0}
        assert order.id == "23467"
        assert order.status == OPEN
        assert order.remaining == 100.0
        assert "23467" in exchange.orders

    @pytest.mark.asyncio
    async def test_immediately_filled_order_is_closed(self, exchange, fake_api):
        fake_api(exchange.client, "private", {
            "SubmitTrade": {"Success": True, "Error": None, "Data": {"OrderId": None, "FilledOrders": [1, 2]}},
        })

        order = await exchange.create_order("DOT/BTC", "limit", "sell", 100.0, 0.00001)

        assert order.id is None
        assert order.status == CLOSED
        assert order.filled == 100.0
        assert order.remaining == 0.0
        assert len(exchange.orders) == 0

    @pytest.mark.asyncio
    async def test_cancel_order(self, exchange, fake_api):
        fake_api(exchange.client, "private", {
            "SubmitTrade": {"Success": True, "Data": {"OrderId": 1, "FilledOrders": []}},
            "CancelTrade": {"Success": True, "Error": None, "Data": [1]},
        })
        await exchange.create_order("DOT/BTC", "limit", "buy", 1.0, 0.1)

        order = await exchange.cancel_order("1")

        assert order.status == CANCELED

    @pytest.mark.asyncio
    async def test_history_waits_for_cancel_in_flight(self, exchange, fake_api):
        release = asyncio.Event()

        async def cancel(params):
            await release.wait()
            return {"Success": True, "Error": None, "Data": [1]}

        fake = fake_api(exchange.client, "private", {
            "SubmitTrade": {"Success": True, "Data": {"OrderId": 1, "FilledOrders": []}},
            "CancelTrade": cancel,
            "GetOpenOrders": {"Success": True, "Data": []},
        })
        await exchange.create_order("DOT/BTC", "limit", "buy", 1.0, 0.1)

        cancel_task = asyncio.create_task(exchange.cancel_order("1"))
        await asyncio.sleep(0.01)
        history_task = asyncio.create_task(exchange.fetch_orders("DOT/BTC"))
        await asyncio.sleep(0.01)
        release.set()
        await cancel_task
        orders = await history_task

        assert fake.commands() == ["SubmitTrade", "CancelTrade", "GetOpenOrders"]
        assert orders[0].status == CANCELED

    @pytest.mark.asyncio
    async def test_emulated_history(self, exchange, fake_api):
        fake = fake_api(exchange.client, "private", {
            "SubmitTrade": {"Success": True, "Data": {"OrderId": 1, "FilledOrders": []}},
            "GetOpenOrders": {"Success": True, "Data": []},
        })
        await exchange.create_order("DOT/BTC", "limit", "buy", 50.0, 0.1)

        closed = await exchange.fetch_closed_orders("DOT/BTC")

        assert fake.params("GetOpenOrders") == {"Market": "DOT_BTC"}
        assert [o.id for o in closed] == ["1"]
        assert closed[0].cost == pytest.approx(5.0)
        assert await exchange.fetch_order_status("1") == CLOSED

    @pytest.mark.asyncio
    async def test_open_orders_listing(self, exchange, fake_api):
        fake_api(exchange.client, "private", {
            "GetOpenOrders": {"Success": True, "Data": [{
                "OrderId": 23467,
                "TradePairId": 100,
                "Market": "DOT/BTC",
                "Type": "Buy",
                "Rate": 0.00000034,
                "Amount": 145.98,
                "Total": "0.00004963",
                "Remaining": 45.98,
                "TimeStamp": "2018-01-01T00:00:00",
            }]},
        })

        orders = await exchange.fetch_open_orders()

        order = orders[0]
        assert order.id == "23467"
        assert order.symbol == "DOT/BTC"
        assert order.side == "buy"
        assert order.filled == pytest.approx(100.0)
        assert order.status == OPEN


class TestFunding:

    @pytest.mark.asyncio
    async def test_fetch_deposits(self, exchange, fake_api):
        fake = fake_api(exchange.client, "private", {
            "GetTransactions": {"Success": True, "Data": [
                {"Id": 1, "Currency": "DOT", "TxId": "a", "Type": "Deposit", "Amount": 1,
                 "Status": "Confirmed", "Timestamp": "2018-01-01T00:00:00"},
                {"Id": 2, "Currency": "BTC", "TxId": "b", "Type": "Deposit", "Amount": 2,
                 "Status": "Pending", "Timestamp": "2018-01-01T00:00:01"},
            ]},
        })

        deposits = await exchange.fetch_deposits("DOT")

        assert fake.params("GetTransactions") == {"Type": "Deposit"}
        assert [d.txid for d in deposits] == ["a"]

    @pytest.mark.asyncio
    async def test_withdraw(self, exchange, fake_api):
        fake = fake_api(exchange.client, "private", {
            "SubmitWithdraw": {"Success": True, "Error": None, "Data": 9876},
        })

        receipt = await exchange.withdraw("BTC", 0.5, "1Abcdefghijk", tag="memo")

        assert fake.params("SubmitWithdraw") == {
            "Currency": "BTC", "Amount": 0.5, "Address": "1Abcdefghijk", "PaymentId": "memo",
        }
        assert receipt.id == "9876"
