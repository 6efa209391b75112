"""Shared fixtures: a controllable clock and a fully wired app context."""

from __future__ import annotations

import secrets
from collections.abc import Callable

import httpx
import pytest
from starlette.applications import Starlette

from social_mcp.auth.bearer import CallContext
from social_mcp.auth.models import AuthorizeRequest, LoginMethod, Principal
from social_mcp.auth.pkce import s256_challenge
from social_mcp.config import Settings
from social_mcp.server import AppContext, build_context, create_app

TEST_SERVER_URL = "http://testserver"
REDIRECT_URI = "http://localhost:3000/callback"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        server_url=TEST_SERVER_URL,
        identity_secret="test-identity-secret",
        demo_user_id="user-123",
        demo_user_name="Ada Lovelace",
        demo_user_email="ada@example.com",
        keepalive_interval=0.05,
    )


@pytest.fixture
def context(settings: Settings, clock: FakeClock) -> AppContext:
    return build_context(settings, clock=clock)


@pytest.fixture
def principal() -> Principal:
    return Principal(
        id="user-123",
        display_name="Ada Lovelace",
        login_method=LoginMethod.GITHUB,
        email="ada@example.com",
    )


@pytest.fixture
def call_context(principal: Principal) -> CallContext:
    return CallContext(principal=principal, scope=frozenset({"mcp:tools"}), client_id="test-client")


@pytest.fixture
def pkce_pair() -> tuple[str, str]:
    """(code_verifier, code_challenge)"""
    verifier = secrets.token_urlsafe(48)
    return verifier, s256_challenge(verifier)


@pytest.fixture
def issue_code(context: AppContext, principal: Principal) -> Callable[..., str]:
    """Mint a code directly, bypassing the identity redirects. Returns the code."""

    def _issue(code_challenge: str | None = None, state: str | None = None) -> str:
        redirect = context.flow.issue_code(
            AuthorizeRequest(
                client_id="test-client",
                redirect_uri=REDIRECT_URI,
                scope=frozenset({"mcp:tools"}),
                state=state,
                code_challenge=code_challenge,
                code_challenge_method="S256" if code_challenge else None,
            ),
            principal,
        )
        return redirect.split("code=", 1)[1].split("&", 1)[0]

    return _issue


@pytest.fixture
def access_token(context: AppContext, issue_code: Callable[..., str]) -> str:
    tokens = context.flow.exchange(grant_type="authorization_code", code=issue_code())
    return tokens["access_token"]


@pytest.fixture
def app(context: AppContext) -> Starlette:
    return create_app(context)


@pytest.fixture
def http_client(app: Starlette) -> httpx.AsyncClient:
    """Unauthenticated async HTTP client against the ASGI app."""
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    return httpx.AsyncClient(transport=transport, base_url=TEST_SERVER_URL)
