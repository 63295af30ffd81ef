import asyncio
import json
from typing import Any, Dict, List

import pytest

from reqchain.config import RequestSpec, RunConfig
from reqchain.transport import HttpRequest, HttpResponse

BASE_URL = "http://api.test"


class FakeClient:
    """
    In-memory HttpClient. Outcomes are looked up by URL; an outcome is a
    (status, body) tuple, an exception instance to raise, or a callable taking the request.
    """

    def __init__(self, responses: Dict[str, Any] = None, default: Any = (200, {}), delay: float = 0.0):
        self.responses = dict(responses or {})
        self.default = default
        self.delay = delay
        self.timeout = None
        self.calls: List[HttpRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def set_timeout(self, timeout: float) -> None:
        self.timeout = timeout

    @property
    def urls(self) -> List[str]:
        return [c.url for c in self.calls]

    async def do(self, request: HttpRequest) -> HttpResponse:
        self.calls.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1

        outcome = self.responses.get(request.url, self.default)
        if callable(outcome):
            outcome = outcome(request)
        if isinstance(outcome, BaseException):
            raise outcome
        status, body = outcome
        if isinstance(body, str):
            content = body.encode()
        elif isinstance(body, bytes):
            content = body
        else:
            content = json.dumps(body).encode()
        return HttpResponse.from_bytes(status, content, {"Content-Type": "application/json"})


class Collected:
    """Result collector that only records its arguments."""

    def __init__(self):
        self.calls = []

    def __call__(self, name, method, url, status_code, error, duration, variables=None):
        self.calls.append({
            "name": name,
            "method": method,
            "url": url,
            "status_code": status_code,
            "error": error,
            "duration": duration,
            "variables": variables,
        })

    @property
    def names(self):
        return [c["name"] for c in self.calls]


@pytest.fixture
def fake_client():
    def _make(*args, **kwargs) -> FakeClient:
        return FakeClient(*args, **kwargs)
    return _make


@pytest.fixture
def collector() -> Collected:
    return Collected()


@pytest.fixture
def make_config():
    def _make(requests: List[Dict[str, Any]], **kwargs) -> RunConfig:
        return RunConfig(base_url=BASE_URL, requests=[RequestSpec(**r) for r in requests], **kwargs)
    return _make
