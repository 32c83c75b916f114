import json
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", content_type: str = "application/json") -> None:
        self.status_code = status_code
        self.text = text
        self.content = text.encode("utf-8")
        self.headers = {"Content-Type": content_type}

    def json(self) -> Any:
        return json.loads(self.text)


Handler = Callable[[str, Optional[dict]], FakeResponse]


class FakeSession:
    """Stands in for requests.Session; answers are routed by URL."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, params: Optional[dict] = None, timeout=None) -> FakeResponse:
        self.calls.append({"method": "GET", "url": url, "params": dict(params or {}), "timeout": timeout})
        resp = self.handler(url, params)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def post(self, url: str, json=None, timeout=None) -> FakeResponse:
        self.calls.append({"method": "POST", "url": url, "json": json, "timeout": timeout})
        resp = self.handler(url, json)
        if isinstance(resp, Exception):
            raise resp
        return resp


@pytest.fixture
def fake_session() -> Callable[[Handler], FakeSession]:
    return FakeSession


@pytest.fixture
def respond() -> Callable[..., FakeResponse]:
    return FakeResponse


@pytest.fixture
def connection_error() -> requests.ConnectionError:
    return requests.ConnectionError("connection refused")
