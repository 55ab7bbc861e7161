"""
Shared fixtures for the connector tests.

``fake_api`` replaces an API client method (``public``/``private``/``web``)
with a recorder that answers from a table keyed by command or path.
"""

import asyncio
import copy
from typing import Any, Dict, List, Tuple

import pytest

HTTP_METHODS = ("GET", "POST", "DELETE", "PUT")


class FakeAPI:
    """
    Stand-in for an API client call.

    Table values may be a payload (returned as a deep copy), an exception
    instance (raised), or a plain / async function of the request params.

    Attributes:
        calls: (command, params) tuples in call order
    """

    def __init__(self, responses: Dict[str, Any]):
        self.responses = responses
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def __call__(self, *args, **kwargs):
        # Binance private(method, path, params) carries the HTTP method first
        if args[0] in HTTP_METHODS:
            args = args[1:]
        command = args[0]
        params = args[1] if len(args) > 1 else kwargs.get("params")
        params = dict(params or {})
        self.calls.append((command, params))
        response = self.responses[command]
        if isinstance(response, BaseException):
            raise response
        if asyncio.iscoroutinefunction(response):
            return await response(params)
        if callable(response):
            return response(params)
        return copy.deepcopy(response)

    def commands(self) -> List[str]:
        return [command for command, _ in self.calls]

    def params(self, command: str) -> Dict[str, Any]:
        """Params of the last call to ``command``."""
        for called, params in reversed(self.calls):
            if called == command:
                return params
        raise AssertionError(f"{command} was not called")


@pytest.fixture
def fake_api(monkeypatch):
    """Patch ``obj.<method>`` with a FakeAPI answering from ``responses``."""
    def install(obj, method: str, responses: Dict[str, Any]) -> FakeAPI:
        fake = FakeAPI(responses)
        monkeypatch.setattr(obj, method, fake)
        return fake
    return install
