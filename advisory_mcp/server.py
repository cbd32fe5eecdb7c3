# advisory_mcp/server.py
from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from .client import AdvisoryApiClient
from .datasource import (
    AdvisoryDataSource,
    LocalRepositoryDataSource,
    SearchNotSupportedError,
    search_or_raise,
)
from .models import (
    Advisory,
    AdvisoryListOptions,
    AdvisoryListResponse,
    AdvisorySummary,
    Ecosystem,
    Severity,
)
from .settings import settings

logger = logging.getLogger(__name__)

# -------------------- FastMCP server config --------------------
mcp = FastMCP("GitHub Advisory MCP")


# -------------------- Lazy, shared data source --------------------
_source: AdvisoryDataSource | None = None
_source_lock = asyncio.Lock()


async def _get_source() -> AdvisoryDataSource:
    global _source
    if _source is not None:
        return _source
    async with _source_lock:
        if _source is None:
            if settings.advisory_api_base:
                client = AdvisoryApiClient(settings.advisory_api_base)
                await client.start()
                _source = client
            else:
                _source = LocalRepositoryDataSource(settings.advisory_repo_path)
            logger.info("Using %s advisory data source", _source.source_type)
    return _source


def set_source(source: AdvisoryDataSource | None) -> None:
    """Install the data source the tools use (the ASGI app shares one with the REST API)."""
    global _source
    _source = source


# -------------------- Payload builders --------------------
def _options(arguments: Dict[str, Any]) -> AdvisoryListOptions:
    try:
        return AdvisoryListOptions.model_validate(
            {k: v for k, v in arguments.items() if v is not None and v != ""}
        )
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ToolError(f"Invalid parameters: {problems}") from None


def _list_text(advisories: List[Advisory]) -> str:
    response = AdvisoryListResponse(
        count=len(advisories),
        advisories=[AdvisorySummary.from_advisory(a) for a in advisories],
    )
    return response.model_dump_json(indent=2)


async def list_advisories_text(source: AdvisoryDataSource, **arguments: Any) -> str:
    options = _options(arguments)
    advisories = await source.list_advisories(options)
    logger.info("list_advisories returned %d advisories", len(advisories))
    return _list_text(advisories)


async def get_advisory_text(source: AdvisoryDataSource, ghsa_id: str) -> str:
    advisory = await source.get_advisory(ghsa_id)
    if advisory is None:
        raise ToolError(f"Advisory {ghsa_id} not found")
    return advisory.model_dump_json(indent=2)


async def search_advisories_text(source: AdvisoryDataSource, query: str, **arguments: Any) -> str:
    options = _options(arguments)
    try:
        advisories = await search_or_raise(source, query, options)
    except SearchNotSupportedError as e:
        raise ToolError(str(e)) from None
    logger.info("search_advisories %r returned %d advisories", query, len(advisories))
    return _list_text(advisories)


# -------------------- Tools --------------------
@mcp.tool(
    name="list_advisories",
    description="List GitHub security advisories from the local advisory database with optional filters. Returns summary information about advisories including GHSA ID, CVE ID, severity, affected packages, and more."
)
async def list_advisories(
    ghsa_id: Annotated[Optional[str], "GHSA identifier (e.g., \"GHSA-xxxx-xxxx-xxxx\")"] = None,
    cve_id: Annotated[Optional[str], "CVE identifier (e.g., \"CVE-2026-12345\")"] = None,
    ecosystem: Annotated[Optional[Ecosystem], "Package ecosystem"] = None,
    severity: Annotated[Optional[Severity], "Severity level"] = None,
    cwes: Annotated[Optional[str], "Comma-separated CWE identifiers (e.g., \"79,284,22\")"] = None,
    is_withdrawn: Annotated[Optional[bool], "Filter withdrawn advisories"] = None,
    affects: Annotated[Optional[str], "Package name filter (partial match, e.g., \"express\" matches \"express-session\")"] = None,
    published: Annotated[Optional[str], "Published date as YYYY-MM-DD (that day only) or YYYY-MM-DD..YYYY-MM-DD (inclusive range), e.g. \"2026-01-01..2026-01-31\""] = None,
    updated: Annotated[Optional[str], "Updated date as YYYY-MM-DD (that day only) or YYYY-MM-DD..YYYY-MM-DD (inclusive range)"] = None,
    per_page: Annotated[Optional[int], "Results per page (default: 30, max: 100)"] = None,
    page: Annotated[Optional[int], "Page number, starting at 1"] = None,
    direction: Annotated[Optional[Literal["asc", "desc"]], "Sort direction (default: desc, newest first)"] = None,
    sort: Annotated[Optional[Literal["published", "updated"]], "Sort field (default: published)"] = None,
) -> str:
    """List security advisories matching every given filter.

    Results are sorted by the chosen timestamp and paginated; an empty
    ``advisories`` array means nothing matched.
    """
    source = await _get_source()
    return await list_advisories_text(
        source,
        ghsa_id=ghsa_id, cve_id=cve_id, ecosystem=ecosystem, severity=severity,
        cwes=cwes, is_withdrawn=is_withdrawn, affects=affects,
        published=published, updated=updated, per_page=per_page, page=page,
        direction=direction, sort=sort,
    )


@mcp.tool(
    name="get_advisory",
    description="Get detailed information about a specific GitHub security advisory by its GHSA identifier. Returns comprehensive details including description, vulnerabilities, CVSS scores, CWE classifications, and references."
)
async def get_advisory(
    ghsa_id: Annotated[str, "GHSA identifier (e.g., GHSA-xxxx-xxxx-xxxx)"],
) -> str:
    source = await _get_source()
    return await get_advisory_text(source, ghsa_id)


@mcp.tool(
    name="search_advisories",
    description="Free-text search over advisory summaries, descriptions, GHSA IDs and CVE IDs (case-insensitive substring match), with the same filters as list_advisories."
)
async def search_advisories(
    query: Annotated[str, "Text to look for, e.g. \"prototype pollution\" or \"CVE-2026-1234\""],
    ecosystem: Annotated[Optional[Ecosystem], "Package ecosystem"] = None,
    severity: Annotated[Optional[Severity], "Severity level"] = None,
    cwes: Annotated[Optional[str], "Comma-separated CWE identifiers"] = None,
    published: Annotated[Optional[str], "Published date or inclusive range (YYYY-MM-DD[..YYYY-MM-DD])"] = None,
    per_page: Annotated[Optional[int], "Maximum number of results (default: 30, max: 100)"] = None,
) -> str:
    source = await _get_source()
    return await search_advisories_text(
        source, query,
        ecosystem=ecosystem, severity=severity, cwes=cwes,
        published=published, per_page=per_page,
    )


@mcp.resource("health://ready")
def health_ready() -> str:
    return "ok"


@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> JSONResponse:
    source = await _get_source()
    return JSONResponse({
        "status": "ok",
        "service": "advisory-mcp",
        "source": source.source_type,
    })
