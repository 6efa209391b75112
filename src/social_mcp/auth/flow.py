"""Authorization-code flow with PKCE.

Per authorization attempt::

    START -> PENDING_IDENTITY -> CODE_ISSUED -> TOKEN_ISSUED | FAILED

``authorize`` validates the request and parks it while the identity
collaborator authenticates the user. ``complete_authorization`` mints the
code once a principal comes back. ``exchange`` redeems the code exactly
once for a session.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

from social_mcp.auth.clients import ClientRegistry
from social_mcp.auth.identity import IdentityProvider
from social_mcp.auth.models import (
    AuthorizationCode,
    AuthorizeRequest,
    OAuthError,
    PendingAuthorization,
    Principal,
    Session,
    format_scope,
    parse_scope,
)
from social_mcp.auth.pkce import S256, SUPPORTED_METHODS, verify_pkce
from social_mcp.auth.store import ExpiringStore

logger = logging.getLogger(__name__)

CODE_TTL = 600  # 10 minutes
ACCESS_TOKEN_TTL = 3600  # 1 hour
PENDING_TTL = 600

SCOPES_SUPPORTED = ["openid", "profile", "email", "mcp:tools"]
DEFAULT_SCOPE = "openid profile mcp:tools"


def _new_secret() -> str:
    # 32 random bytes, well above the 128-bit floor for codes and tokens
    return secrets.token_urlsafe(32)


def _append_query(url: str, params: dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


class AuthorizationFlow:
    """Issues codes and redeems them for bearer sessions."""

    def __init__(
        self,
        identity: IdentityProvider,
        codes: ExpiringStore[AuthorizationCode],
        sessions: ExpiringStore[Session],
        pending: ExpiringStore[PendingAuthorization],
        refresh_index: ExpiringStore[str],
        clients: ClientRegistry | None = None,
        code_ttl: int = CODE_TTL,
        access_token_ttl: int = ACCESS_TOKEN_TTL,
        pending_ttl: int = PENDING_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.identity = identity
        self.codes = codes
        self.sessions = sessions
        self.pending = pending
        self.refresh_index = refresh_index
        self.clients = clients or ClientRegistry()
        self.code_ttl = code_ttl
        self.access_token_ttl = access_token_ttl
        self.pending_ttl = pending_ttl
        self._clock = clock

    # -- Authorization --

    def authorize(
        self,
        client_id: str | None,
        redirect_uri: str | None,
        response_type: str | None,
        scope: str | None = None,
        state: str | None = None,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> str:
        """Validate an authorize request and return the identity login URL."""
        request = self.validate_authorize_request(
            client_id=client_id,
            redirect_uri=redirect_uri,
            response_type=response_type,
            scope=scope,
            state=state,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        )
        transaction_id = _new_secret()
        self.pending.put(
            transaction_id,
            PendingAuthorization(
                transaction_id=transaction_id,
                request=request,
                expires_at=self._clock() + self.pending_ttl,
            ),
            self.pending_ttl,
        )
        logger.info("Authorization pending identity for client %s", request.client_id)
        return self.identity.login_url(transaction_id)

    def validate_authorize_request(
        self,
        client_id: str | None,
        redirect_uri: str | None,
        response_type: str | None,
        scope: str | None = None,
        state: str | None = None,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> AuthorizeRequest:
        if not client_id:
            raise OAuthError("invalid_request", "client_id is required")
        if not redirect_uri:
            raise OAuthError("invalid_request", "redirect_uri is required")
        if response_type != "code":
            raise OAuthError("invalid_request", "response_type must be 'code'")
        if code_challenge_method and not code_challenge:
            raise OAuthError("invalid_request", "code_challenge_method without code_challenge")
        if code_challenge and (code_challenge_method or S256) not in SUPPORTED_METHODS:
            raise OAuthError("invalid_request", "Only S256 is supported")
        self.clients.check_redirect_uri(client_id, redirect_uri)

        return AuthorizeRequest(
            client_id=client_id,
            redirect_uri=redirect_uri,
            scope=parse_scope(scope or DEFAULT_SCOPE),
            state=state or None,
            code_challenge=code_challenge or None,
            code_challenge_method=(code_challenge_method or S256) if code_challenge else None,
        )

    def complete_authorization(self, transaction_id: str, principal: Principal) -> str:
        """Mint a code for a pending request and build the client redirect."""
        pending = self.pending.take(transaction_id)
        if pending is None:
            raise OAuthError("invalid_request", "Unknown or expired authorization transaction")
        return self.issue_code(pending.request, principal)

    def issue_code(self, request: AuthorizeRequest, principal: Principal) -> str:
        code = AuthorizationCode(
            code=_new_secret(),
            client_id=request.client_id,
            redirect_uri=request.redirect_uri,
            scope=request.scope,
            principal=principal,
            expires_at=self._clock() + self.code_ttl,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method,
        )
        self.codes.put(code.code, code, self.code_ttl)
        logger.info(
            "Issued authorization code for %s (client %s, pkce=%s)",
            principal.id,
            request.client_id,
            bool(request.code_challenge),
        )

        params = {"code": code.code}
        if request.state is not None:
            params["state"] = request.state
        return _append_query(request.redirect_uri, params)

    # -- Token exchange --

    def exchange(
        self,
        grant_type: str | None,
        code: str | None,
        redirect_uri: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        code_verifier: str | None = None,
    ) -> dict[str, Any]:
        """Redeem an authorization code. The code is consumed even on failure."""
        if grant_type != "authorization_code":
            raise OAuthError("unsupported_grant_type", f"Unsupported grant_type: {grant_type}")
        if not code:
            raise OAuthError("invalid_request", "code is required")

        stored = self.codes.take(code)
        if stored is None:
            logger.warning("Rejected exchange: unknown, expired or reused code")
            raise OAuthError("invalid_grant", "Invalid or expired authorization code")

        if client_id and client_id != stored.client_id:
            raise OAuthError("invalid_grant", "client_id does not match the authorization code")
        self.clients.authenticate(stored.client_id, client_secret)
        if redirect_uri and redirect_uri != stored.redirect_uri:
            raise OAuthError("invalid_grant", "redirect_uri does not match the authorization code")
        if not verify_pkce(stored.code_challenge, stored.code_challenge_method, code_verifier):
            logger.warning("Rejected exchange for client %s: PKCE failed", stored.client_id)
            raise OAuthError("invalid_grant", "PKCE verification failed")

        session = self._issue_session(stored)
        return {
            "access_token": session.access_token,
            "refresh_token": session.refresh_token,
            "token_type": "Bearer",
            "expires_in": self.access_token_ttl,
            "scope": format_scope(session.scope),
        }

    def _issue_session(self, code: AuthorizationCode) -> Session:
        session = Session(
            access_token=_new_secret(),
            refresh_token=_new_secret(),
            principal=code.principal,
            scope=code.scope,
            client_id=code.client_id,
            expires_at=self._clock() + self.access_token_ttl,
        )
        self.sessions.put(session.access_token, session, self.access_token_ttl)
        self.refresh_index.put(session.refresh_token, session.access_token, self.access_token_ttl)
        logger.info("Issued access token for %s (client %s)", code.principal.id, code.client_id)
        return session

    # -- Revocation --

    def revoke(self, token: str) -> bool:
        """Delete the session named by an access or refresh token."""
        session = self.sessions.take(token)
        if session is not None:
            self.refresh_index.delete(session.refresh_token)
            logger.info("Revoked session for %s", session.principal.id)
            return True
        access_token = self.refresh_index.take(token)
        if access_token is not None:
            self.sessions.delete(access_token)
            logger.info("Revoked session by refresh token")
            return True
        return False
