"""Advisory data source abstraction.

Transport adapters (REST routes, MCP tools) only talk to an
``AdvisoryDataSource``, so the in-process index can be swapped for a remote
API without touching them. Search is an optional capability.
"""
from __future__ import annotations

import os
from typing import List, Literal, Optional, Protocol, runtime_checkable

from .index import AdvisoryIndex
from .models import Advisory, AdvisoryListOptions
from . import query

SourceType = Literal["local-repository", "http-server"]


class SearchNotSupportedError(RuntimeError):
    def __init__(self, source_type: str):
        super().__init__(f"Search is not supported by the {source_type} data source")
        self.source_type = source_type


class AdvisoryDataSource(Protocol):
    @property
    def source_type(self) -> SourceType: ...

    async def list_advisories(self, options: AdvisoryListOptions | None = None) -> List[Advisory]: ...

    async def get_advisory(self, ghsa_id: str) -> Optional[Advisory]:
        """Advisory with that GHSA id, or None when unknown."""
        ...


@runtime_checkable
class SupportsSearch(Protocol):
    async def search_advisories(
        self, query: str, options: AdvisoryListOptions | None = None
    ) -> List[Advisory]: ...


async def search_or_raise(
    source: AdvisoryDataSource, text: str, options: AdvisoryListOptions | None = None
) -> List[Advisory]:
    if not isinstance(source, SupportsSearch):
        raise SearchNotSupportedError(source.source_type)
    return await source.search_advisories(text, options)


class LocalRepositoryDataSource:
    """Serves advisories from a local clone of github/advisory-database."""

    def __init__(self, repo_path: str | os.PathLike[str]):
        self.index = AdvisoryIndex(repo_path)

    @property
    def source_type(self) -> SourceType:
        return "local-repository"

    @property
    def repo_path(self) -> str:
        return str(self.index.repo_path)

    async def list_advisories(self, options: AdvisoryListOptions | None = None) -> List[Advisory]:
        await self.index.ensure_indexed()
        return query.list_advisories(self.index.advisories, options or AdvisoryListOptions())

    async def get_advisory(self, ghsa_id: str) -> Optional[Advisory]:
        await self.index.ensure_indexed()
        return query.get_advisory(self.index.advisories, ghsa_id)

    async def search_advisories(
        self, text: str, options: AdvisoryListOptions | None = None
    ) -> List[Advisory]:
        await self.index.ensure_indexed()
        return query.search_advisories(self.index.advisories, text, options or AdvisoryListOptions())

    def invalidate(self) -> None:
        self.index.invalidate()
