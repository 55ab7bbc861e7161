"""
Exchange Connectors Package

This package contains individual exchange connector modules.
Each exchange (Poloniex, Cryptopia, Binance) has its own subfolder with:
- api_client.py: REST transport, request signing and error classification
- parsers.py: Normalizers from raw payloads to core.schemas models
- __init__.py: The exchange class implementing ExchangeInterface

The modular design allows adding new exchanges without modifying existing code.
"""
