"""Identity collaborator contract and the built-in demo provider.

The authorization flow hands the user agent to an identity provider and
waits for a callback carrying an established principal. Real social
providers plug in behind the same two-method contract.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Protocol
from urllib.parse import urlencode

import jwt
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from social_mcp.auth.models import Principal

logger = logging.getLogger(__name__)

ASSERTION_TTL = 120
ASSERTION_AUDIENCE = "social-mcp:callback"


class IdentityError(Exception):
    """The callback did not carry a usable identity assertion."""


class IdentityProvider(Protocol):
    def login_url(self, transaction_id: str) -> str:
        """Where to send the user agent to authenticate."""
        ...

    def resolve_callback(self, params: Mapping[str, str]) -> tuple[str, Principal]:
        """Return ``(transaction_id, principal)`` from callback parameters."""
        ...


class DemoIdentityProvider:
    """Logs everyone in as one configured principal.

    The login endpoint signs a short-lived assertion naming the principal
    and the transaction, then redirects to the server's callback, which
    verifies it. This exercises the same redirect and callback contract a
    social provider would.
    """

    def __init__(
        self,
        server_url: str,
        secret: str,
        principal: Principal,
        assertion_ttl: int = ASSERTION_TTL,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self._secret = secret
        self.principal = principal
        self.assertion_ttl = assertion_ttl

    def login_url(self, transaction_id: str) -> str:
        return f"{self.server_url}/oauth/login/demo?{urlencode({'txn': transaction_id})}"

    def sign_assertion(self, transaction_id: str, principal: Principal) -> str:
        now = int(time.time())
        return jwt.encode(
            {
                "sub": principal.id,
                "txn": transaction_id,
                "principal": principal.to_claims(),
                "aud": ASSERTION_AUDIENCE,
                "iss": self.server_url,
                "iat": now,
                "exp": now + self.assertion_ttl,
            },
            self._secret,
            algorithm="HS256",
        )

    def resolve_callback(self, params: Mapping[str, str]) -> tuple[str, Principal]:
        assertion = params.get("assertion", "")
        if not assertion:
            raise IdentityError("Missing identity assertion")
        try:
            claims = jwt.decode(
                assertion,
                self._secret,
                algorithms=["HS256"],
                audience=ASSERTION_AUDIENCE,
                issuer=self.server_url,
                options={"require": ["exp", "sub", "txn"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise IdentityError("Identity assertion expired") from e
        except jwt.InvalidTokenError as e:
            raise IdentityError(f"Invalid identity assertion: {e}") from e

        try:
            principal = Principal.from_claims(claims["principal"])
        except (KeyError, TypeError, ValueError) as e:
            raise IdentityError("Identity assertion carries no principal") from e
        return str(claims["txn"]), principal

    async def login(self, request: Request) -> Response:
        """Demo login endpoint: assert the configured principal."""
        transaction_id = request.query_params.get("txn", "")
        if not transaction_id:
            return JSONResponse(
                {"error": "invalid_request", "error_description": "Missing txn"},
                status_code=400,
            )
        assertion = self.sign_assertion(transaction_id, self.principal)
        logger.info("Demo login asserted principal %s", self.principal.id)
        return RedirectResponse(
            f"{self.server_url}/oauth/callback?{urlencode({'assertion': assertion})}",
            status_code=302,
        )
