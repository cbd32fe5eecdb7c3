from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from .models import Advisory, AdvisoryListOptions

DEFAULT_HEADERS = {"User-Agent": "advisory-mcp/1.0", "Accept": "application/json"}


class ApiError(RuntimeError):
    def __init__(self, status: int, payload: Any):
        super().__init__(f"Advisory API error {status}: {payload}")
        self.status = status
        self.payload = payload


def _query_params(options: AdvisoryListOptions | None) -> Dict[str, Any]:
    if options is None:
        return {}
    params: Dict[str, Any] = {}
    for key, value in options.model_dump(exclude_none=True).items():
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, list):
            params[key] = ",".join(value)
        else:
            params[key] = value
    return params


class AdvisoryApiClient:
    """Data source backed by a remote advisory REST API (see ``rest.py``)."""

    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def source_type(self) -> str:
        return "http-server"

    async def start(self) -> None:
        self._client = httpx.AsyncClient(base_url=self.base_url,
                                         headers=DEFAULT_HEADERS.copy(),
                                         transport=self._transport,
                                         timeout=30)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: Dict[str, Any] | None = None) -> httpx.Response:
        assert self._client, "client not started"
        return await self._client.get(path, params=params)

    async def _get_json(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        r = await self._get(path, params=params)
        if r.status_code >= 400:
            raise ApiError(r.status_code, r.text)
        return r.json()

    # ---- data source contract ----
    async def list_advisories(self, options: AdvisoryListOptions | None = None) -> List[Advisory]:
        data = await self._get_json("/advisories", params=_query_params(options))
        return [Advisory.model_validate(item) for item in data]

    async def get_advisory(self, ghsa_id: str) -> Optional[Advisory]:
        r = await self._get(f"/advisories/{ghsa_id}")
        if r.status_code == 404:
            return None
        if r.status_code >= 400:
            raise ApiError(r.status_code, r.text)
        return Advisory.model_validate(r.json())

    async def search_advisories(
        self, query: str, options: AdvisoryListOptions | None = None
    ) -> List[Advisory]:
        params = _query_params(options)
        params["q"] = query
        data = await self._get_json("/search", params=params)
        return [Advisory.model_validate(item) for item in data]
