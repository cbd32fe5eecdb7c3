import asyncio

from advisory_mcp.server import mcp
from .log import configure_logging
from .refresh import refresh_advisory_database
from .settings import settings


def main():
    configure_logging(settings.log_level)
    if settings.refresh_on_start and not settings.advisory_api_base:
        asyncio.run(refresh_advisory_database(settings.advisory_repo_path))
    if settings.mcp_transport_mode == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport=settings.mcp_transport_mode,
                host=settings.mcp_host, port=settings.mcp_port)


if __name__ == "__main__":
    main()
