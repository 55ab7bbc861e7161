"""
Unit Tests for Exchange Interface and Manager

These tests verify that:
- ExchangeInterface is properly defined as an abstract class
- Shared behaviour works for a minimal implementation: market loading,
  precision formatting, fee estimates, argument checks, order emulation
- ExchangeManager correctly manages exchange instances
- Exchange capabilities are properly declared
- Lifecycle methods work as expected

Run with:
    pytest tests/unit/test_exchange_interface.py -v
"""

import asyncio

import pytest
from typing import List

import core.exchange_manager as exchange_manager
from core.errors import (
    ArgumentsRequired,
    ExchangeNotAvailable,
    InvalidAddress,
    NotSupported,
    OrderNotCached,
)
from core.exchange_interface import ExchangeInterface
from core.exchange_manager import ExchangeManager, get_manager
from core.schemas import (
    CLOSED,
    OPEN,
    Balances,
    Market,
    MarketPrecision,
    Order,
    OrderBook,
    Ticker,
    Trade,
)
from core.transport import RestClient
from exchanges.binance import BinanceExchange
from exchanges.cryptopia import CryptopiaExchange
from exchanges.poloniex import PoloniexExchange


# ============================================
# Dummy Exchange for Testing
# ============================================

class DummyExchange(ExchangeInterface):
    """
    Minimal implementation of ExchangeInterface for testing purposes.

    Markets come from a fixed list and the open order listing from
    ``self.listing``, so the shared behaviour runs without API calls.
    """

    name = "dummy"
    capabilities = {
        "fetch_markets": True,
        "fetch_orders": "emulated",
        "fetch_loan_book": False,  # Intentionally not supported
    }

    def __init__(self):
        super().__init__()
        self.market_loads = 0
        self.listing: List[Order] = []

    async def fetch_markets(self) -> List[Market]:
        self.market_loads += 1
        await asyncio.sleep(0)
        return [
            Market(
                id="ETH_BTC", symbol="ETH/BTC", base="ETH", quote="BTC", base_id="ETH", quote_id="BTC",
                precision=MarketPrecision(amount=3, price=5), maker=0.001, taker=0.002,
            ),
        ]

    async def fetch_ticker(self, symbol: str) -> Ticker:
        return Ticker(symbol=symbol)

    async def fetch_order_book(self, symbol, limit=None) -> OrderBook:
        return OrderBook(symbol=symbol)

    async def fetch_trades(self, symbol, since=None, limit=None) -> List[Trade]:
        return []

    async def fetch_balance(self) -> Balances:
        return Balances()

    async def create_order(self, symbol, type, side, amount, price=None, params=None) -> Order:
        order = Order(id=str(len(self.orders) + 1), symbol=symbol, type=type, side=side, status=OPEN,
                      amount=amount, price=price, filled=0.0, remaining=amount, timestamp=len(self.orders))
        self.listing.append(order.model_copy())
        return self._cache_order(order)

    async def cancel_order(self, id, symbol=None) -> Order:
        return self.orders.mark_canceled(id)

    async def fetch_open_orders_listing(self, market=None) -> List[Order]:
        return [order.model_copy() for order in self.listing]


class BrokenExchange(DummyExchange):
    async def fetch_markets(self) -> List[Market]:
        raise ExchangeNotAvailable("dummy is down", exchange=self.name)


# ============================================
# Tests for ExchangeInterface
# ============================================

class TestExchangeInterface:
    """Tests for the abstract interface and its shared behaviour"""

    def test_cannot_instantiate_abstract_interface(self):
        """Verify that ExchangeInterface cannot be instantiated directly"""
        with pytest.raises(TypeError):
            ExchangeInterface()

    def test_supports_method_returns_correct_values(self):
        exchange = DummyExchange()

        assert exchange.supports("fetch_markets") is True
        assert exchange.supports("fetch_orders") is True
        assert exchange.supports("fetch_loan_book") is False
        # Non-existent feature should return False
        assert exchange.supports("nonexistent_feature") is False

    @pytest.mark.asyncio
    async def test_unsupported_method_raises_not_supported(self):
        exchange = DummyExchange()

        with pytest.raises(NotSupported, match="dummy fetch_loan_book is not supported"):
            await exchange.fetch_loan_book("BTC")

    @pytest.mark.asyncio
    async def test_markets_load_once(self):
        exchange = DummyExchange()

        await asyncio.gather(exchange.load_markets(), exchange.load_markets())
        await exchange.load_markets()
        assert exchange.market_loads == 1
        assert exchange.symbols == ["ETH/BTC"]

        await exchange.load_markets(reload=True)
        assert exchange.market_loads == 2

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await DummyExchange().health_check() is True
        assert await BrokenExchange().health_check() is False

    @pytest.mark.asyncio
    async def test_precision_formatting(self):
        exchange = DummyExchange()
        await exchange.load_markets()

        assert exchange.amount_to_precision("ETH/BTC", 1.23456) == "1.234"
        assert exchange.price_to_precision("ETH/BTC", 0.123456) == "0.12346"
        assert exchange.currency_to_precision("BTC", 0.123456789) == "0.12345678"

    @pytest.mark.asyncio
    async def test_calculate_fee(self):
        exchange = DummyExchange()
        await exchange.load_markets()

        sell = exchange.calculate_fee("ETH/BTC", "sell", 10.0, 0.05)
        assert sell.currency == "BTC"
        assert sell.rate == 0.002
        assert sell.cost == pytest.approx(0.001)

        buy = exchange.calculate_fee("ETH/BTC", "buy", 10.0, 0.05, taker_or_maker="maker")
        assert buy.currency == "ETH"
        assert buy.rate == 0.001
        assert buy.cost == pytest.approx(0.01)

    @pytest.mark.parametrize("address", [None, "aaaaaaaa", "1Abc def"])
    def test_check_address_rejects(self, address):
        with pytest.raises(InvalidAddress):
            DummyExchange().check_address(address)

    def test_check_address_accepts(self):
        assert DummyExchange().check_address("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2") == \
            "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"

    def test_check_required_symbol(self):
        with pytest.raises(ArgumentsRequired, match="dummy fetch_orders requires a symbol"):
            DummyExchange().check_required_symbol("fetch_orders", None)

    def test_repr(self):
        assert repr(DummyExchange()) == "<DummyExchange(name='dummy')>"


class TestOrderEmulation:
    """Tests for the cached-order emulation built on the open listing"""

    @pytest.mark.asyncio
    async def test_order_leaving_listing_is_closed(self):
        exchange = DummyExchange()
        await exchange.load_markets()
        await exchange.create_order("ETH/BTC", "limit", "buy", 2.0, 0.05)
        await exchange.create_order("ETH/BTC", "limit", "sell", 1.0, 0.06)
        exchange.listing = [order for order in exchange.listing if order.id == "2"]

        closed = await exchange.fetch_closed_orders("ETH/BTC")
        opened = await exchange.fetch_open_orders("ETH/BTC")

        assert [order.id for order in closed] == ["1"]
        assert closed[0].filled == 2.0
        assert closed[0].cost == pytest.approx(0.1)
        assert [order.id for order in opened] == ["2"]
        assert await exchange.fetch_order_status("1") == CLOSED

    @pytest.mark.asyncio
    async def test_unknown_order_is_not_cached(self):
        exchange = DummyExchange()
        with pytest.raises(OrderNotCached):
            await exchange.fetch_order("999")

    @pytest.mark.asyncio
    async def test_emulation_needs_a_listing(self):
        class NoListing(DummyExchange):
            fetch_open_orders_listing = ExchangeInterface.fetch_open_orders_listing

        with pytest.raises(NotSupported):
            await NoListing().fetch_orders()


class TestLifecycle:
    """Tests for initialize/shutdown of the HTTP session"""

    @pytest.mark.asyncio
    async def test_without_client(self):
        exchange = DummyExchange()
        await exchange.initialize()
        await exchange.shutdown()

    @pytest.mark.asyncio
    async def test_async_with_opens_and_closes_session(self):
        exchange = DummyExchange()
        exchange.client = RestClient("dummy", "https://example.com/")
        assert exchange.client.base_url == "https://example.com"

        async with exchange:
            assert exchange.client.session is not None
            assert not exchange.client.session.closed

        assert exchange.client.session is None


# ============================================
# Tests for Concrete Exchanges
# ============================================

class TestConnectors:
    """Tests for the declarations of the shipped connectors"""

    @pytest.mark.parametrize("cls", [PoloniexExchange, CryptopiaExchange, BinanceExchange])
    def test_connector_implements_interface(self, cls):
        exchange = cls()
        assert isinstance(exchange, ExchangeInterface)
        assert exchange.name == cls.__name__.replace("Exchange", "").lower()
        assert exchange.client is not None
        assert exchange.client.exchange == exchange.name

    def test_order_history_is_emulated_where_missing(self):
        assert PoloniexExchange.capabilities["fetch_orders"] == "emulated"
        assert CryptopiaExchange.capabilities["fetch_orders"] == "emulated"
        assert BinanceExchange.capabilities["fetch_orders"] is True

    def test_common_currencies_override_defaults(self):
        assert PoloniexExchange().common_currency_code("STR") == "XLM"
        assert CryptopiaExchange().common_currency_code("BCC") == "BCH"
        assert BinanceExchange().common_currency_code("BCC") == "BCC"
        assert BinanceExchange(common_currencies={"BCC": "BCH"}).common_currency_code("BCC") == "BCH"


# ============================================
# Tests for ExchangeManager
# ============================================

class TestExchangeManager:
    """Tests for ExchangeManager"""

    def test_manager_initializes_with_enabled_exchanges(self, monkeypatch):
        from core.config import settings

        monkeypatch.setattr(settings, "enabled_exchanges", "poloniex,cryptopia,binance")
        manager = ExchangeManager()
        assert manager.list_exchanges() == ["poloniex", "cryptopia", "binance"]
        assert len(manager) == 3

    def test_manager_with_explicit_names(self):
        manager = ExchangeManager(["Binance"])
        assert manager.list_exchanges() == ["binance"]
        assert isinstance(manager.get_exchange("BINANCE"), BinanceExchange)

    def test_manager_rejects_unknown_exchange(self):
        with pytest.raises(ValueError, match="Exchange 'kraken' is not supported"):
            ExchangeManager(["poloniex", "kraken"])

    def test_manager_get_exchange_raises_for_unknown(self):
        manager = ExchangeManager(["poloniex"])
        with pytest.raises(ValueError, match="not supported"):
            manager.get_exchange("binance")

    def test_manager_has_exchange_returns_correct_values(self):
        manager = ExchangeManager(["poloniex", "binance"])
        assert manager.has_exchange("poloniex") is True
        assert manager.has_exchange("Binance") is True
        assert manager.has_exchange("cryptopia") is False

    def test_manager_get_exchanges_with_feature(self):
        manager = ExchangeManager(["poloniex", "cryptopia", "binance"])

        assert manager.get_exchanges_with_feature("fetch_loan_book") == ["poloniex"]
        assert manager.get_exchanges_with_feature("fetch_orders") == ["poloniex", "cryptopia", "binance"]
        assert manager.get_exchanges_with_feature("nonexistent_feature") == []

    def test_manager_get_exchange_capabilities_returns_copy(self):
        manager = ExchangeManager(["cryptopia"])

        capabilities = manager.get_exchange_capabilities("cryptopia")
        capabilities["fetch_orders"] = False

        assert CryptopiaExchange.capabilities["fetch_orders"] == "emulated"

    def test_manager_repr_includes_exchange_names(self):
        manager = ExchangeManager(["poloniex", "binance"])
        assert repr(manager) == "<ExchangeManager(exchanges=['poloniex', 'binance'])>"

    @pytest.mark.asyncio
    async def test_manager_lifecycle(self):
        manager = ExchangeManager(["poloniex", "binance"])

        await manager.initialize_all()
        assert manager.get_exchange("binance").client.session is not None

        await manager.shutdown_all()
        assert manager.get_exchange("binance").client.session is None

    @pytest.mark.asyncio
    async def test_manager_initialize_all_continues_past_failures(self, monkeypatch):
        manager = ExchangeManager(["poloniex", "binance"])

        async def broken():
            raise RuntimeError("boom")

        monkeypatch.setattr(manager.get_exchange("poloniex"), "initialize", broken)
        await manager.initialize_all()

        assert manager.get_exchange("binance").client.session is not None
        await manager.shutdown_all()

    @pytest.mark.asyncio
    async def test_manager_health_check_all(self, monkeypatch):
        manager = ExchangeManager(["poloniex", "cryptopia", "binance"])

        async def healthy():
            return True

        async def unhealthy():
            return False

        async def crashing():
            raise RuntimeError("unexpected")

        monkeypatch.setattr(manager.get_exchange("poloniex"), "health_check", healthy)
        monkeypatch.setattr(manager.get_exchange("cryptopia"), "health_check", unhealthy)
        monkeypatch.setattr(manager.get_exchange("binance"), "health_check", crashing)

        assert await manager.health_check_all() == {"poloniex": True, "cryptopia": False, "binance": False}
        assert await manager.health_check_exchange("poloniex") is True

    def test_multiple_managers_create_separate_instances(self):
        """Verify creating multiple managers works independently"""
        manager1 = ExchangeManager(["binance"])
        manager2 = ExchangeManager(["binance"])

        assert manager1.get_exchange("binance") is not manager2.get_exchange("binance")

    def test_get_manager_returns_singleton(self, monkeypatch):
        monkeypatch.setattr(exchange_manager, "_manager", None)

        assert get_manager() is get_manager()
