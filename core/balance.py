"""
Balance Aggregation

Two views of an account:

- ``Balances``: one free/used/total triple per asset, built by
  ``build_balances`` from per-asset (free, used) pairs.
- Wallet balances: available/on_orders/total per asset *per wallet*
  (exchange, margin, lending). Exchanges spread this information across
  several endpoints, so ``WalletBalanceAggregator`` accumulates partial
  amounts from each source and derives totals once everything is in.

Usage:
    aggregator = WalletBalanceAggregator()
    aggregator.add_available("BTC", "exchange", 1.0)
    aggregator.add_on_orders("BTC", "exchange", 0.5)
    aggregator.add_on_orders("BTC", "lending", 2.0)
    wallets = aggregator.finalize()
    wallets["BTC"]["exchange"].total   # 1.5
"""

from typing import Any, Dict, Mapping, Optional

from core.logging import get_logger
from core.schemas import Balance, Balances, WALLET_TYPES, WalletBalance

logger = get_logger(__name__)


def build_balances(accounts: Mapping[str, Mapping[str, Optional[float]]], info: Any = None) -> Balances:
    """
    Build Balances from {code: {"free": x, "used": y}}.

    Each Balance derives ``total = free + used`` itself.
    """
    return Balances(
        balances={code: Balance(**dict(account)) for code, account in accounts.items()},
        info=info
    )


class WalletBalanceAggregator:
    """
    Accumulates per-asset, per-wallet amounts from several sources.

    Entries are created lazily on the first amount reported for an
    (asset, wallet) pair; assets nobody reports stay absent.
    """

    def __init__(self):
        self._entries: Dict[str, Dict[str, Dict[str, float]]] = {}

    def _entry(self, code: str, wallet: str) -> Optional[Dict[str, float]]:
        if wallet not in WALLET_TYPES:
            logger.warning(f"Ignoring balance for unknown wallet type '{wallet}' ({code})")
            return None
        wallets = self._entries.setdefault(code, {})
        return wallets.setdefault(wallet, {"available": 0.0, "on_orders": 0.0})

    def add_available(self, code: str, wallet: str, amount: float) -> None:
        entry = self._entry(code, wallet)
        if entry is not None:
            entry["available"] += amount

    def add_on_orders(self, code: str, wallet: str, amount: float) -> None:
        entry = self._entry(code, wallet)
        if entry is not None:
            entry["on_orders"] += amount

    def finalize(self) -> Dict[str, Dict[str, WalletBalance]]:
        """Return {code: {wallet: WalletBalance}} with totals derived in one pass."""
        return {
            code: {wallet: WalletBalance(**amounts) for wallet, amounts in wallets.items()}
            for code, wallets in self._entries.items()
        }
