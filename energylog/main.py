"""EnergyLog MCP Server - Entry point.

Runs the MCP server with HTTP transport for Cloud Run deployment, plus the
webhook the health bridge calls when new energy, weight or workout data is
available. Background sync runs for the lifetime of the app.
"""

import contextlib
import logging
import secrets
from typing import AsyncIterator

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, Mount

from .shell.config import Settings
from .shell.health_feed import FeedChange
from .shell.mcp_server import mcp, get_services


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for Cloud Run."""
    return JSONResponse({"status": "healthy", "service": "energylog-mcp"})


async def feed_notify(request: Request) -> JSONResponse:
    """Accept a change notification from the health bridge."""
    services = get_services()
    token = services.settings.health_feed_token
    if not token:
        return JSONResponse({"error": "Feed notifications are not enabled"}, status_code=404)

    auth_header = request.headers.get("Authorization", "")
    supplied = auth_header.replace("Bearer ", "", 1) if auth_header.startswith("Bearer ") else ""
    if not secrets.compare_digest(supplied.encode(), token.encode()):
        logger.warning("Rejected feed notification with bad token")
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Body must be JSON"}, status_code=400)

    kind = body.get("kind") if isinstance(body, dict) else None
    try:
        change = FeedChange(kind)
    except ValueError:
        choices = ", ".join(c.value for c in FeedChange)
        return JSONResponse({"error": f"kind must be one of: {choices}"}, status_code=400)

    services.feed.notify_changed(change)
    return JSONResponse({"accepted": True, "kind": change.value}, status_code=202)


# ==================== Create ASGI App ====================


def create_app() -> Starlette:
    """Create the Starlette application with MCP at root.

    The MCP streamable_http_app() handles /mcp/ internally when mounted at root.
    Its lifespan is wrapped so background sync starts after MCP is ready and
    pending goal edits are saved on shutdown.
    """
    mcp_app = mcp.streamable_http_app()

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with mcp_app.router.lifespan_context(app):
            services = get_services()
            unwatch = services.tracker.watch_feed(services.feed)
            services.sync.start()
            try:
                yield
            finally:
                services.sync.stop()
                unwatch()
                await services.debouncer.flush()

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/feed/notify", feed_notify, methods=["POST"]),
        # Mount MCP app at root - it handles /mcp/ path internally
        Mount("/", app=mcp_app),
    ]

    return Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["http://localhost:5173"],
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
            ),
        ],
        lifespan=lifespan,
    )


# Create app at module level for Cloud Run
app = create_app()


def main() -> None:
    """Run the server."""
    settings = Settings.from_env()

    logger.info("Starting EnergyLog MCP server on %s:%d", settings.host, settings.port)

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
