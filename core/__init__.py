"""
Core Package

Contains the exchange-agnostic core logic including:
- ExchangeInterface: Abstract base class defining the contract for all exchanges
- ExchangeManager: Registry that builds and manages the enabled connectors
- Schemas: Pydantic models for normalized data (Market, Ticker, Order, Balances, ...)
- Errors: The exception taxonomy and the message-to-error classifier
- OrderCache / WalletBalanceAggregator: Shared order and balance bookkeeping

This layer ensures all exchanges follow the same interface, making the system modular and scalable.
"""
