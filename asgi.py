import asyncio
import contextlib

from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from advisory_mcp.datasource import LocalRepositoryDataSource
from advisory_mcp.log import configure_logging
from advisory_mcp.refresh import periodic_refresh, refresh_advisory_database
from advisory_mcp.rest import create_rest_app
from advisory_mcp.server import mcp, set_source
from advisory_mcp.settings import settings

configure_logging(settings.log_level)

source = LocalRepositoryDataSource(settings.advisory_repo_path)
set_source(source)
mcp_app = mcp.http_app(path="/mcp")


async def health(_):
    return JSONResponse({
        "status": "ok",
        "service": "advisory-mcp",
        "source": source.source_type,
        "repository": source.repo_path,
    })


@contextlib.asynccontextmanager
async def lifespan(app):
    refresher = None
    if settings.refresh_on_start:
        if await refresh_advisory_database(settings.advisory_repo_path):
            source.invalidate()
    if settings.refresh_interval_seconds > 0:
        refresher = asyncio.create_task(periodic_refresh(
            settings.advisory_repo_path, settings.refresh_interval_seconds, source.invalidate))
    try:
        async with mcp_app.lifespan(app):
            yield
    finally:
        if refresher is not None:
            refresher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await refresher


# Put /health and /api BEFORE the catch-all Mount("/")
app = Starlette(
    routes=[
        Route("/health", health),
        Mount("/api", app=create_rest_app(source)),
        Mount("/", app=mcp_app),
    ],
    lifespan=lifespan,
)
