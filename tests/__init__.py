"""
Test Suite

Structure:
- tests/unit/: Connector, normalizer, order cache and configuration tests
  with the exchange APIs replaced by canned payloads (see tests/unit/conftest.py)

Uses pytest with pytest-asyncio for testing async functionality.
"""
