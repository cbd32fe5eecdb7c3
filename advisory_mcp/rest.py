"""REST adapter mimicking the GitHub global security advisories API.

    GET /health
    GET /advisories?ecosystem=npm&severity=high&published=2026-01-01..2026-01-31
    GET /advisories/{ghsa_id}
    GET /search?q=<text>
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

import uvicorn
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .datasource import (
    AdvisoryDataSource,
    LocalRepositoryDataSource,
    SearchNotSupportedError,
    search_or_raise,
)
from .log import configure_logging
from .models import Advisory, AdvisoryListOptions, ErrorResponse
from .settings import settings

logger = logging.getLogger(__name__)

NOT_FOUND_DOCS = "https://docs.github.com/rest/security-advisories/global-advisories"
_SEARCH_PARAMS = {"ecosystem", "severity", "cwes", "is_withdrawn", "affects",
                  "published", "updated", "per_page", "page", "sort", "direction"}


def _error(status: int, error: str, message: str | None = None, details: List[Dict[str, Any]] | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status)


def _options_from_query(request: Request, allowed: set[str] | None = None) -> AdvisoryListOptions:
    """Query string -> validated options; empty values count as absent."""
    params: Dict[str, Any] = {}
    for key in request.query_params.keys():
        if allowed is not None and key not in allowed:
            continue
        values = [v for v in request.query_params.getlist(key) if v != ""]
        if not values:
            continue
        params[key] = ",".join(values) if key == "cwes" else values[-1]
    return AdvisoryListOptions.model_validate(params)


def _dump(advisories: List[Advisory]) -> List[Dict[str, Any]]:
    return [a.model_dump(mode="json") for a in advisories]


def create_rest_app(source: AdvisoryDataSource) -> Starlette:
    async def health(request: Request) -> JSONResponse:
        body: Dict[str, Any] = {"status": "ok", "source": source.source_type}
        repo_path = getattr(source, "repo_path", None)
        if repo_path:
            body["repository"] = repo_path
        return JSONResponse(body)

    async def list_advisories(request: Request) -> JSONResponse:
        try:
            options = _options_from_query(request)
        except ValidationError as e:
            return _error(400, "Invalid parameters",
                          details=e.errors(include_url=False, include_context=False))
        try:
            advisories = await source.list_advisories(options)
        except Exception as e:
            logger.exception("Error listing advisories")
            return _error(500, "Internal server error", str(e))
        return JSONResponse(_dump(advisories))

    async def get_advisory(request: Request) -> JSONResponse:
        ghsa_id = request.path_params["ghsa_id"]
        try:
            advisory = await source.get_advisory(ghsa_id)
        except Exception as e:
            logger.exception("Error getting advisory %s", ghsa_id)
            return _error(500, "Internal server error", str(e))
        if advisory is None:
            return JSONResponse({"message": "Not Found", "documentation_url": NOT_FOUND_DOCS},
                                status_code=404)
        return JSONResponse(advisory.model_dump(mode="json"))

    async def search(request: Request) -> JSONResponse:
        text = request.query_params.get("q", "")
        if not text:
            return _error(400, "Missing query parameter: q")
        try:
            options = _options_from_query(request, allowed=_SEARCH_PARAMS)
        except ValidationError as e:
            return _error(400, "Invalid parameters",
                          details=e.errors(include_url=False, include_context=False))
        try:
            advisories = await search_or_raise(source, text, options)
        except SearchNotSupportedError as e:
            return _error(501, "Not implemented", str(e))
        except Exception as e:
            logger.exception("Error searching advisories")
            return _error(500, "Internal server error", str(e))
        return JSONResponse(_dump(advisories))

    return Starlette(
        routes=[
            Route("/health", health),
            Route("/advisories", list_advisories),
            Route("/advisories/{ghsa_id}", get_advisory),
            Route("/search", search),
        ]
    )


def main() -> None:
    configure_logging(settings.log_level)
    app = create_rest_app(LocalRepositoryDataSource(settings.advisory_repo_path))
    logger.info("Serving advisories from %s", settings.advisory_repo_path)
    uvicorn.run(app, host=settings.advisory_api_host, port=settings.advisory_api_port)


if __name__ == "__main__":
    main()
