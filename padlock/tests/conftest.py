"""
Shared fixtures for the Padlock test-suite.

Provider HTTP calls are served by ``FakeAsyncClient``, patched in place of
``httpx.AsyncClient``; routes are keyed by ``(method, url)``.
"""

import json
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import patch
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from padlock import (
    Padlock,
    PadlockConfig,
    ProviderConfig,
    SessionConfig,
    create_auth_router,
)


BASE_URL = "http://testserver"
SESSION_SECRET = "test-session-secret-1234567890abcdef"


# ============================================================================
# Fake HTTP transport
# ============================================================================

class FakeAsyncClient:
    """Stands in for ``httpx.AsyncClient`` inside provider code."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def add(self, method: str, url: str, response: Any) -> None:
        self.routes[(method, url)] = response

    async def __aenter__(self) -> "FakeAsyncClient":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return self._dispatch("GET", url, kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return self._dispatch("POST", url, kwargs)

    def _dispatch(self, method: str, url: str, kwargs: Dict[str, Any]) -> httpx.Response:
        self.calls.append((method, url, kwargs))
        try:
            response = self.routes[(method, url)]
        except KeyError:
            raise httpx.ConnectError(f"no route for {method} {url}")
        if isinstance(response, Exception):
            raise response
        return response

    def called(self, method: str, url: str) -> bool:
        return any(m == method and u == url for m, u, _ in self.calls)


@pytest.fixture
def fake_http():
    client = FakeAsyncClient()
    with patch("httpx.AsyncClient", return_value=client):
        yield client


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def make_access_token(claims: Dict[str, Any]) -> str:
    """A JWT-shaped access token; signature is irrelevant to the provider code."""
    return jwt.encode(claims, "provider-signing-key-not-checked-0000", algorithm="HS256")


# ============================================================================
# Requests
# ============================================================================

def make_request(
    method: str = "GET",
    path: str = "/auth",
    query: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    cookies: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode()))

    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "root_path": "",
        "query_string": urlencode(query or {}).encode(),
        "headers": raw_headers,
        "server": ("testserver", 80),
        "client": ("testclient", 50000),
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


def query_of(location: str) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(location).query).items()}


def state_token_of(location: str) -> str:
    return json.loads(query_of(location)["state"])["state"]


# ============================================================================
# Configuration
# ============================================================================

@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(secret=SESSION_SECRET)


@pytest.fixture
def github_config() -> ProviderConfig:
    return ProviderConfig(client_id="gh-client", client_secret="gh-secret")


@pytest.fixture
def microsoft_config() -> ProviderConfig:
    return ProviderConfig(client_id="ms-client", client_secret="ms-secret")


@pytest.fixture
def padlock(github_config, microsoft_config, session_config) -> Padlock:
    return Padlock(PadlockConfig(
        base_url=BASE_URL,
        providers={"github": github_config, "microsoft": microsoft_config},
        session=session_config,
    ))


def build_client(padlock: Padlock) -> TestClient:
    app = FastAPI()
    app.include_router(create_auth_router(padlock))
    return TestClient(app)


@pytest.fixture
def client(padlock) -> TestClient:
    return build_client(padlock)
