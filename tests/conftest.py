"""
Test Configuration

Pytest configuration and fixtures for the test suite.
"""

import json
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple, Union

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from aireviewmate.config import Settings, get_settings
from aireviewmate.main import create_app
from aireviewmate.routes.deps import get_http_transport, get_review_engine

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeReviewEngine:
    """Stands in for ReviewEngine; returns a canned result or raises."""

    def __init__(self):
        self.result: Any = {
            "errors": [],
            "warnings": [],
            "suggestions": [],
            "verdict": "Clean enough to rest in peace.",
            "curseLevel": 0,
        }
        self.error: Optional[Exception] = None
        self.calls: List[Tuple[str, str]] = []

    async def review_code(self, code: str, language: str) -> Any:
        self.calls.append((code, language))
        if self.error is not None:
            raise self.error
        return self.result


class FakeGitHub:
    """
    In-memory GitHub, served through httpx.MockTransport.

    Register responses with add(method, path, response); unregistered
    requests answer 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Responder] = {}
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handle)

    def add(self, method: str, path: str, response: Responder) -> None:
        self.routes[(method.upper(), path)] = response

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(responder):
            return responder(request)
        return responder

    def paths(self) -> List[Tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]

    @staticmethod
    def body(request: httpx.Request) -> Dict[str, Any]:
        return json.loads(request.content)


@pytest.fixture
def settings() -> Settings:
    """Settings with every credential present."""
    return Settings(
        _env_file=None,
        gemini_api_key="test-gemini-key",
        gemini_model="gemini-2.0-flash",
        github_client_id="test-client-id",
        github_client_secret="test-client-secret",
        github_redirect_uri="http://localhost:3000/api/github/callback",
        client_url="http://localhost:5173",
        environment="test",
        log_json_format=False,
    )


@pytest.fixture
def fake_engine() -> FakeReviewEngine:
    return FakeReviewEngine()


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def app(settings: Settings, fake_engine: FakeReviewEngine, fake_github: FakeGitHub) -> FastAPI:
    application = create_app(settings)
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_review_engine] = lambda: fake_engine
    application.dependency_overrides[get_http_transport] = lambda: fake_github.transport
    return application


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a test client for synchronous tests."""
    with TestClient(app) as test_client:
        yield test_client
