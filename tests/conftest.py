import json
import os
from collections.abc import Callable
from datetime import datetime

import httpx
import pytest

from httpstages import EngineSettings, FixedClock, HttpxTransport
from httpstages_models import TestDefinition

Handler = Callable[[httpx.Request], httpx.Response]


class MockServer:
    """Routes requests of an ``httpx.MockTransport`` by method and path, recording every call."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Handler] = {}
        self.calls: list[httpx.Request] = []

    def add(self, method: str, path: str, json_data=None, status: int = 200, headers: dict | None = None, content: bytes | None = None):
        def _respond(request: httpx.Request) -> httpx.Response:
            if content is not None:
                return httpx.Response(status, content=content, headers=headers)
            return httpx.Response(status, json=json_data, headers=headers)

        self.routes[(method.upper(), path)] = _respond

    def add_handler(self, method: str, path: str, handler: Handler):
        self.routes[(method.upper(), path)] = handler

    def add_sequence(self, method: str, path: str, responses: list[httpx.Response]):
        remaining = list(responses)
        self.routes[(method.upper(), path)] = lambda request: remaining.pop(0) if len(remaining) > 1 else remaining[0]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"error": f"no route for {request.method} {request.url.path}"})
        return responder(request)

    def transport(self) -> HttpxTransport:
        return HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(self.handle)))

    def requested(self) -> list[str]:
        return [f"{call.method} {call.url.path}" for call in self.calls]

    def body_of(self, index: int):
        return json.loads(self.calls[index].content)


@pytest.fixture
def server():
    return MockServer()


@pytest.fixture
def fixed_clock():
    return FixedClock(datetime(2024, 1, 31, 12, 30, 0), utc_offset_hours=2)


@pytest.fixture
def make_settings(monkeypatch):
    """Settings isolated from HTTPSTAGES_* variables of the environment running the tests."""
    for name in list(os.environ):
        if name.upper().startswith("HTTPSTAGES_"):
            monkeypatch.delenv(name)

    def _make_settings(**overrides) -> EngineSettings:
        overrides.setdefault("seed", 1234)
        overrides.setdefault("continue_on_failure", True)
        return EngineSettings(**overrides)

    return _make_settings


@pytest.fixture
def make_definition():
    def _make_definition(document: dict) -> TestDefinition:
        return TestDefinition.model_validate(document)

    return _make_definition
