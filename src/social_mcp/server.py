"""Social MCP Server -- HTTP entry point."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from social_mcp import __version__
from social_mcp.auth.bearer import BearerAuthenticator
from social_mcp.auth.clients import ClientRegistry
from social_mcp.auth.flow import AuthorizationFlow
from social_mcp.auth.identity import DemoIdentityProvider
from social_mcp.auth.models import AuthorizationCode, PendingAuthorization, Principal, Session
from social_mcp.auth.oauth_server import OAuthServer
from social_mcp.auth.store import InMemoryStore
from social_mcp.config import Settings
from social_mcp.rpc.dispatcher import Dispatcher
from social_mcp.rpc.endpoints import McpEndpoints
from social_mcp.tools.calculator import register_calculator_tools
from social_mcp.tools.clock import register_clock_tools
from social_mcp.tools.greeting import register_greeting_tools
from social_mcp.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "social-mcp"


def create_registry() -> ToolRegistry:
    """Build the frozen tool registry. Order here is the tools/list order."""
    registry = ToolRegistry()
    register_greeting_tools(registry)
    register_clock_tools(registry)
    register_calculator_tools(registry)
    return registry.freeze()


@dataclass
class AppContext:
    """Everything the ASGI app is wired from."""

    settings: Settings
    codes: InMemoryStore[AuthorizationCode]
    sessions: InMemoryStore[Session]
    pending: InMemoryStore[PendingAuthorization]
    refresh_index: InMemoryStore[str]
    flow: AuthorizationFlow
    authenticator: BearerAuthenticator
    oauth: OAuthServer
    dispatcher: Dispatcher
    endpoints: McpEndpoints

    @property
    def stores(self) -> list[InMemoryStore]:
        return [self.codes, self.sessions, self.pending, self.refresh_index]


def build_context(settings: Settings, clock: Callable[[], float] = time.time) -> AppContext:
    server_url = settings.base_url
    codes: InMemoryStore[AuthorizationCode] = InMemoryStore(clock)
    sessions: InMemoryStore[Session] = InMemoryStore(clock)
    pending: InMemoryStore[PendingAuthorization] = InMemoryStore(clock)
    refresh_index: InMemoryStore[str] = InMemoryStore(clock)

    identity = DemoIdentityProvider(
        server_url=server_url,
        secret=settings.identity_secret,
        principal=Principal(
            id=settings.demo_user_id,
            display_name=settings.demo_user_name,
            email=settings.demo_user_email,
            picture=settings.demo_user_picture,
        ),
    )
    flow = AuthorizationFlow(
        identity=identity,
        codes=codes,
        sessions=sessions,
        pending=pending,
        refresh_index=refresh_index,
        clients=ClientRegistry(),
        code_ttl=settings.code_ttl,
        access_token_ttl=settings.access_token_ttl,
        pending_ttl=settings.pending_ttl,
        clock=clock,
    )
    authenticator = BearerAuthenticator(sessions)
    dispatcher = Dispatcher(create_registry(), server_name=SERVER_NAME, server_version=__version__)

    return AppContext(
        settings=settings,
        codes=codes,
        sessions=sessions,
        pending=pending,
        refresh_index=refresh_index,
        flow=flow,
        authenticator=authenticator,
        oauth=OAuthServer(flow, authenticator, server_url=server_url),
        dispatcher=dispatcher,
        endpoints=McpEndpoints(
            dispatcher, authenticator, keepalive_interval=settings.keepalive_interval
        ),
    )


async def _sweep_forever(stores: list[InMemoryStore], interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        for store in stores:
            store.sweep()


def create_app(context: AppContext | None = None) -> Starlette:
    """Create the ASGI application with OAuth and MCP routes."""
    context = context or build_context(Settings())

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(
            _sweep_forever(context.stores, context.settings.sweep_interval)
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            logger.info("Server shutdown: sweeper stopped")

    app = Starlette(
        routes=[*context.oauth.routes(), *context.endpoints.routes()],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=context.settings.allowed_origins,
                allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
                allow_headers=["Authorization", "Content-Type", "Accept", "mcp-protocol-version"],
            ),
        ],
        lifespan=lifespan,
    )
    app.state.context = context
    return app


def main() -> None:
    """Entry point: start the Social MCP server."""
    import uvicorn

    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    context = build_context(settings)
    logger.info("Starting Social MCP server on %s", settings.base_url)
    logger.info("OAuth discovery: %s/.well-known/oauth-authorization-server", settings.base_url)
    logger.info("MCP endpoint: %s/mcp (events at %s/sse)", settings.base_url, settings.base_url)

    uvicorn.run(
        create_app(context),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
