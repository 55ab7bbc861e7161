"""
Market Index

Holds the markets and currencies loaded from an exchange and answers the
lookups every connector needs:

- symbol -> Market, exchange id -> Market
- currency code -> Currency, exchange currency id -> Currency
- exchange currency id -> unified currency code (``common_currency_code``)
- exchange pair id -> unified symbol, even for pairs that are not listed
  (delisted markets still show up in trade and order history)

Each exchange may rename some of its currency ids to avoid clashes with
better known assets using the same ticker; those renames are supplied as
``common_currencies`` and layered over a small default table.

Usage:
    index = MarketIndex({"STR": "XLM"})
    index.set_markets(markets)
    market = index.market("ETH/BTC")
    symbol = index.symbol_from_id("BTC_STR", quote_first=True)   # "XLM/BTC"
"""

from typing import Dict, Iterable, Mapping, Optional

from core.errors import BadSymbol
from core.schemas import Currency, Market

DEFAULT_COMMON_CURRENCIES: Dict[str, str] = {
    "XBT": "BTC",
    "BCC": "BCH",
    "DRK": "DASH",
}


class MarketIndex:
    """
    Markets and currencies of one exchange instance.

    Attributes:
        common_currencies: Exchange currency id -> unified code renames
        markets: symbol -> Market
        markets_by_id: exchange pair id -> Market
        currencies: unified code -> Currency
        currencies_by_id: exchange currency id -> Currency
    """

    def __init__(self, common_currencies: Optional[Mapping[str, str]] = None):
        self.common_currencies: Dict[str, str] = {
            **DEFAULT_COMMON_CURRENCIES,
            **(common_currencies or {}),
        }
        self.markets: Dict[str, Market] = {}
        self.markets_by_id: Dict[str, Market] = {}
        self.currencies: Dict[str, Currency] = {}
        self.currencies_by_id: Dict[str, Currency] = {}

    @property
    def loaded(self) -> bool:
        return bool(self.markets)

    @property
    def symbols(self):
        return sorted(self.markets)

    def set_markets(self, markets: Iterable[Market]) -> None:
        self.markets = {market.symbol: market for market in markets}
        self.markets_by_id = {market.id: market for market in self.markets.values()}

    def set_currencies(self, currencies: Iterable[Currency]) -> None:
        self.currencies = {currency.code: currency for currency in currencies}
        self.currencies_by_id = {currency.id: currency for currency in self.currencies.values()}

    # ============================================
    # Currency Codes
    # ============================================

    def common_currency_code(self, currency_id: Optional[str]) -> Optional[str]:
        """
        Translate an exchange currency id into the unified code.

        Example:
            >>> MarketIndex({"STR": "XLM"}).common_currency_code("STR")
            'XLM'
            >>> MarketIndex().common_currency_code("XBT")
            'BTC'
        """
        if currency_id is None:
            return None
        return self.common_currencies.get(currency_id, currency_id)

    def currency_id(self, code: str) -> str:
        """Inverse of ``common_currency_code``: the exchange id for a unified code."""
        if code in self.currencies:
            return self.currencies[code].id
        for currency_id, common in self.common_currencies.items():
            if common == code:
                return currency_id
        return code

    def currency(self, code: str) -> Currency:
        """
        Return the Currency for a unified code.

        When currencies were not loaded (or the code is not listed) a minimal
        Currency is returned so callers can still address the asset by id.
        """
        if code in self.currencies:
            return self.currencies[code]
        return Currency(id=self.currency_id(code), code=code)

    # ============================================
    # Markets
    # ============================================

    def market(self, symbol: str) -> Market:
        """
        Raises:
            BadSymbol: If no market is loaded for the symbol
        """
        market = self.markets.get(symbol)
        if market is None:
            raise BadSymbol(f"No market symbol {symbol}")
        return market

    def market_id(self, symbol: str) -> str:
        return self.market(symbol).id

    def market_by_id(self, market_id: Optional[str]) -> Optional[Market]:
        if market_id is None:
            return None
        return self.markets_by_id.get(market_id)

    def symbol_from_id(
        self,
        market_id: Optional[str],
        delimiter: str = "_",
        quote_first: bool = False
    ) -> Optional[str]:
        """
        Resolve an exchange pair id into a unified symbol.

        Listed pairs use the loaded market. Unlisted pairs are split on
        ``delimiter`` and rebuilt from the remapped currency codes.

        Args:
            market_id: Exchange pair id (e.g., "BTC_ETH")
            delimiter: Separator between the two currency ids
            quote_first: True when the id reads QUOTE_BASE (Poloniex)

        Returns:
            "BASE/QUOTE", or the raw id when it cannot be split

        Example:
            >>> MarketIndex({"STR": "XLM"}).symbol_from_id("BTC_STR", quote_first=True)
            'XLM/BTC'
        """
        if market_id is None:
            return None
        market = self.markets_by_id.get(market_id)
        if market is not None:
            return market.symbol
        if delimiter not in market_id:
            return market_id
        first, second = market_id.split(delimiter, 1)
        base_id, quote_id = (second, first) if quote_first else (first, second)
        base = self.common_currency_code(base_id)
        quote = self.common_currency_code(quote_id)
        return f"{base}/{quote}"
