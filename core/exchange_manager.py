"""
Exchange Manager: Central Registry for Exchange Connectors

This module provides a centralized manager for the exchange connectors.
The ExchangeManager acts as a registry and factory for exchange instances:
it builds one connector per enabled exchange (see ``ENABLED_EXCHANGES`` in
core.config) and manages their lifecycle.

Architecture Pattern:
    This is a Registry/Factory pattern where:
    - ExchangeManager maintains a registry of exchange instances
    - Callers request exchanges by name
    - Manager returns the appropriate exchange instance
    - All exchanges conform to ExchangeInterface

Example Usage:
    manager = ExchangeManager()
    await manager.initialize_all()

    poloniex = manager.get_exchange("poloniex")
    ticker = await poloniex.fetch_ticker("ETH/BTC")

    await manager.shutdown_all()
"""

from typing import Callable, Dict, List, Optional, Union

from core.exchange_interface import ExchangeInterface
from core.logging import logger


def _connector_factories() -> Dict[str, Callable[[], ExchangeInterface]]:
    # Import here to avoid circular imports
    # Each exchange module imports from core, so we can't import at module level
    from exchanges.binance import BinanceExchange
    from exchanges.cryptopia import CryptopiaExchange
    from exchanges.poloniex import PoloniexExchange

    return {
        "poloniex": PoloniexExchange,
        "cryptopia": CryptopiaExchange,
        "binance": BinanceExchange,
    }


class ExchangeManager:
    """
    Central Manager for Exchange Connectors

    Attributes:
        exchanges: Dictionary mapping exchange names to exchange instances
                  Example: {"poloniex": PoloniexExchange(), "binance": BinanceExchange()}

    Example:
        >>> manager = ExchangeManager(["poloniex", "binance"])
        >>> await manager.initialize_all()
        >>> manager.list_exchanges()
        ['poloniex', 'binance']
        >>> manager.get_exchanges_with_feature("fetch_loan_book")
        ['poloniex']
        >>> await manager.shutdown_all()
    """

    def __init__(self, names: Optional[List[str]] = None):
        """
        Create a connector for each enabled exchange.

        Args:
            names: Exchanges to register (defaults to settings.enabled_exchanges_list)

        Raises:
            ValueError: If a name is not a known exchange

        Note:
            Exchange instances are created but not initialized here.
            Call initialize_all() or initialize_exchange() to open their sessions.
        """
        if names is None:
            from core.config import settings
            names = settings.enabled_exchanges_list

        factories = _connector_factories()
        self.exchanges: Dict[str, ExchangeInterface] = {}
        for name in names:
            name = name.lower()
            if name not in factories:
                raise ValueError(
                    f"Exchange '{name}' is not supported. "
                    f"Available exchanges: {', '.join(factories)}"
                )
            self.exchanges[name] = factories[name]()

        logger.info(f"ExchangeManager initialized with {len(self.exchanges)} exchange(s): {', '.join(self.exchanges.keys())}")

    # ============================================
    # Exchange Retrieval Methods
    # ============================================

    def get_exchange(self, name: str) -> ExchangeInterface:
        """
        Get an exchange connector by name.

        Args:
            name: Exchange name (case-insensitive, e.g., "poloniex")

        Raises:
            ValueError: If the exchange is not registered
        """
        name = name.lower()

        if name not in self.exchanges:
            available = ", ".join(self.exchanges.keys())
            logger.error(f"Exchange '{name}' not found. Available: {available}")
            raise ValueError(
                f"Exchange '{name}' is not supported. "
                f"Available exchanges: {available}"
            )

        return self.exchanges[name]

    def has_exchange(self, name: str) -> bool:
        return name.lower() in self.exchanges

    def list_exchanges(self) -> List[str]:
        return list(self.exchanges.keys())

    # ============================================
    # Lifecycle Management
    # ============================================

    async def initialize_all(self) -> None:
        """
        Open the HTTP session of every registered exchange.

        A failing exchange is logged and skipped; the others still initialize.
        """
        logger.info("Initializing all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.initialize()
                logger.info(f"✓ {name.capitalize()} initialized successfully")
            except Exception as e:
                logger.error(f"✗ Failed to initialize {name}: {e}")

        logger.info("All exchanges initialized")

    async def initialize_exchange(self, name: str) -> None:
        exchange = self.get_exchange(name)
        await exchange.initialize()
        logger.info(f"{name.capitalize()} initialized successfully")

    async def shutdown_all(self) -> None:
        """Close every exchange session, continuing past failures."""
        logger.info("Shutting down all exchanges...")

        for name, exchange in self.exchanges.items():
            try:
                await exchange.shutdown()
                logger.info(f"✓ {name.capitalize()} shut down successfully")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name}: {e}")

        logger.info("All exchanges shut down")

    async def shutdown_exchange(self, name: str) -> None:
        exchange = self.get_exchange(name)
        await exchange.shutdown()
        logger.info(f"{name.capitalize()} shut down successfully")

    # ============================================
    # Health Check Methods
    # ============================================

    async def health_check_all(self) -> Dict[str, bool]:
        """
        Check health status of all exchanges.

        Returns:
            Dict[str, bool]: Exchange name -> True if its markets load

        Example:
            >>> health = await manager.health_check_all()
            >>> health
            {'poloniex': True, 'cryptopia': False, 'binance': True}
        """
        health_status = {}
        for name, exchange in self.exchanges.items():
            try:
                health_status[name] = await exchange.health_check()
            except Exception as e:
                logger.error(f"Health check failed for {name}: {e}")
                health_status[name] = False
            logger.debug(f"{name}: {'healthy' if health_status[name] else 'unhealthy'}")

        return health_status

    async def health_check_exchange(self, name: str) -> bool:
        exchange = self.get_exchange(name)
        return await exchange.health_check()

    # ============================================
    # Capability Queries
    # ============================================

    def get_exchanges_with_feature(self, feature: str) -> List[str]:
        """
        Get the exchanges supporting a feature, natively or emulated.

        Example:
            >>> manager.get_exchanges_with_feature("withdraw")
            ['poloniex', 'cryptopia', 'binance']
        """
        supporting_exchanges = [
            name for name, exchange in self.exchanges.items()
            if exchange.supports(feature)
        ]

        logger.debug(f"Feature '{feature}' supported by: {', '.join(supporting_exchanges) or 'none'}")
        return supporting_exchanges

    def get_exchange_capabilities(self, name: str) -> Dict[str, Union[bool, str]]:
        """
        Raises:
            ValueError: If the exchange is not registered
        """
        exchange = self.get_exchange(name)
        return exchange.capabilities.copy()

    # ============================================
    # Utility Methods
    # ============================================

    def __repr__(self) -> str:
        return f"<ExchangeManager(exchanges={list(self.exchanges.keys())})>"

    def __len__(self) -> int:
        return len(self.exchanges)


# ============================================
# Global Manager Instance
# ============================================

_manager: Optional[ExchangeManager] = None


def get_manager() -> ExchangeManager:
    """
    Get the global ExchangeManager instance, created on first call.

    Example:
        >>> from core.exchange_manager import get_manager
        >>> poloniex = get_manager().get_exchange("poloniex")
    """
    global _manager
    if _manager is None:
        _manager = ExchangeManager()
        logger.debug("Created global ExchangeManager instance")
    return _manager
