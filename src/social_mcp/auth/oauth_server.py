"""OAuth 2.1 Authorization Server endpoints.

The server is both the Authorization Server (issuing codes and tokens) and
the Resource Server (validating bearer tokens on MCP calls). User
authentication is delegated to an identity collaborator:

1. Client registers (optional, RFC 7591)
2. Client starts authorization with PKCE at ``/oauth/authorize``
3. User agent is sent to the identity provider's login
4. Provider calls back to ``/oauth/callback`` with the principal
5. Server redirects to the client with a single-use code
6. Client exchanges the code at ``/oauth/token``
"""

from __future__ import annotations

import logging
from typing import Any

import orjson
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.routing import Route

from social_mcp.auth.bearer import AuthenticationError, BearerAuthenticator
from social_mcp.auth.flow import SCOPES_SUPPORTED, AuthorizationFlow
from social_mcp.auth.identity import DemoIdentityProvider, IdentityError
from social_mcp.auth.models import OAuthError
from social_mcp.responses import ORJSONResponse, unauthorized

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _oauth_error(exc: OAuthError) -> Response:
    return ORJSONResponse(exc.to_dict(), status_code=exc.status_code, headers=NO_STORE)


async def _read_body(request: Request) -> dict[str, Any]:
    """Token endpoint bodies may be form-encoded or JSON."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = orjson.loads(await request.body())
        except orjson.JSONDecodeError as e:
            raise OAuthError("invalid_request", "Malformed JSON body") from e
        if not isinstance(body, dict):
            raise OAuthError("invalid_request", "Body must be a JSON object")
        return {key: str(value) for key, value in body.items() if value is not None}
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


class OAuthServer:
    """HTTP surface of the authorization flow."""

    def __init__(
        self,
        flow: AuthorizationFlow,
        authenticator: BearerAuthenticator,
        server_url: str = "http://localhost:3001",
    ) -> None:
        self.flow = flow
        self.authenticator = authenticator
        self.server_url = server_url.rstrip("/")

    # -- Metadata endpoints --

    async def protected_resource_metadata(self, request: Request) -> Response:
        """RFC 9728: Protected Resource Metadata."""
        return ORJSONResponse({
            "resource": self.server_url,
            "authorization_servers": [self.server_url],
            "scopes_supported": SCOPES_SUPPORTED,
            "bearer_methods_supported": ["header"],
        })

    async def authorization_server_metadata(self, request: Request) -> Response:
        """RFC 8414: Authorization Server Metadata."""
        return ORJSONResponse({
            "issuer": self.server_url,
            "authorization_endpoint": f"{self.server_url}/oauth/authorize",
            "token_endpoint": f"{self.server_url}/oauth/token",
            "userinfo_endpoint": f"{self.server_url}/oauth/userinfo",
            "registration_endpoint": f"{self.server_url}/oauth/register",
            "revocation_endpoint": f"{self.server_url}/oauth/revoke",
            "scopes_supported": SCOPES_SUPPORTED,
            "response_types_supported": ["code"],
            "grant_types_supported": ["authorization_code"],
            "code_challenge_methods_supported": ["S256"],
            "token_endpoint_auth_methods_supported": ["none", "client_secret_post"],
        })

    # -- Dynamic Client Registration --

    async def register_client(self, request: Request) -> Response:
        """RFC 7591: Dynamic Client Registration."""
        try:
            body = orjson.loads(await request.body())
        except orjson.JSONDecodeError:
            return ORJSONResponse({"error": "invalid_request"}, status_code=400)
        if not isinstance(body, dict):
            return ORJSONResponse({"error": "invalid_request"}, status_code=400)

        redirect_uris = body.get("redirect_uris", [])
        if not isinstance(redirect_uris, list) or not all(isinstance(u, str) for u in redirect_uris):
            return _oauth_error(OAuthError("invalid_redirect_uri", "redirect_uris must be a list of strings"))
        try:
            client = self.flow.clients.register(
                client_name=str(body.get("client_name", "unknown")),
                redirect_uris=redirect_uris,
                token_endpoint_auth_method=str(body.get("token_endpoint_auth_method", "none")),
            )
        except OAuthError as e:
            return _oauth_error(e)

        payload: dict[str, Any] = {
            "client_id": client.client_id,
            "client_name": client.client_name,
            "redirect_uris": client.redirect_uris,
            "grant_types": ["authorization_code"],
            "response_types": ["code"],
            "token_endpoint_auth_method": client.token_endpoint_auth_method,
        }
        if client.client_secret:
            payload["client_secret"] = client.client_secret
        return ORJSONResponse(payload, status_code=201)

    # -- Authorization endpoint --

    async def authorize(self, request: Request) -> Response:
        """Validate the request and hand the user agent to the identity provider."""
        params = request.query_params
        try:
            login_url = self.flow.authorize(
                client_id=params.get("client_id"),
                redirect_uri=params.get("redirect_uri"),
                response_type=params.get("response_type"),
                scope=params.get("scope"),
                state=params.get("state"),
                code_challenge=params.get("code_challenge"),
                code_challenge_method=params.get("code_challenge_method"),
            )
        except OAuthError as e:
            logger.warning("Rejected authorize request: %s", e)
            return _oauth_error(e)
        return RedirectResponse(login_url, status_code=302)

    async def callback(self, request: Request) -> Response:
        """Identity provider callback: mint the code and redirect to the client."""
        try:
            transaction_id, principal = self.flow.identity.resolve_callback(request.query_params)
            redirect_url = self.flow.complete_authorization(transaction_id, principal)
        except IdentityError as e:
            logger.warning("Identity callback rejected: %s", e)
            return _oauth_error(OAuthError("access_denied", str(e)))
        except OAuthError as e:
            logger.warning("Identity callback rejected: %s", e)
            return _oauth_error(e)
        return RedirectResponse(redirect_url, status_code=302)

    # -- Token endpoint --

    async def token(self, request: Request) -> Response:
        """Exchange an authorization code for an access token."""
        try:
            body = await _read_body(request)
            tokens = self.flow.exchange(
                grant_type=body.get("grant_type"),
                code=body.get("code"),
                redirect_uri=body.get("redirect_uri"),
                client_id=body.get("client_id"),
                client_secret=body.get("client_secret"),
                code_verifier=body.get("code_verifier"),
            )
        except OAuthError as e:
            return _oauth_error(e)
        return ORJSONResponse(tokens, headers=NO_STORE)

    async def revoke(self, request: Request) -> Response:
        """RFC 7009: always 200, whether or not the token was live."""
        try:
            body = await _read_body(request)
        except OAuthError as e:
            return _oauth_error(e)
        token = body.get("token")
        if token:
            self.flow.revoke(str(token))
        return ORJSONResponse({})

    # -- UserInfo --

    async def userinfo(self, request: Request) -> Response:
        try:
            context = self.authenticator.authenticate(request.headers.get("authorization"))
        except AuthenticationError as e:
            return unauthorized(e, error="invalid_token")
        principal = context.principal
        return ORJSONResponse({
            "sub": principal.id,
            "name": principal.display_name,
            "email": principal.email,
            "picture": principal.picture,
            "preferred_username": principal.email or principal.id,
        })

    # -- Starlette routes --

    def routes(self) -> list[Route]:
        """Return Starlette routes for the OAuth server."""
        routes = [
            Route("/.well-known/oauth-protected-resource", self.protected_resource_metadata),
            Route("/.well-known/oauth-authorization-server", self.authorization_server_metadata),
            Route("/oauth/register", self.register_client, methods=["POST"]),
            Route("/oauth/authorize", self.authorize),
            Route("/oauth/callback", self.callback),
            Route("/oauth/token", self.token, methods=["POST"]),
            Route("/oauth/revoke", self.revoke, methods=["POST"]),
            Route("/oauth/userinfo", self.userinfo),
        ]
        identity = self.flow.identity
        if isinstance(identity, DemoIdentityProvider):
            routes.append(Route("/oauth/login/demo", identity.login))
        return routes
