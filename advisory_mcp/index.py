from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from pydantic import ValidationError

from .models import Advisory, OsvVulnerability
from .normalize import osv_to_advisory

logger = logging.getLogger(__name__)

# Only reviewed advisories are served; unreviewed ones are left out on purpose
REVIEWED_SUBDIR = ("advisories", "github-reviewed")


class AdvisoryIndex:
    """In-memory store of canonical advisories, built lazily from a repo clone.

    The first ``ensure_indexed()`` walks the tree once; concurrent callers
    share that single in-flight build. ``invalidate()`` drops the current
    generation so the next call rebuilds, e.g. after the clone was refreshed.
    The store is replaced as a whole, never mutated in place.
    """

    def __init__(self, repo_path: str | os.PathLike[str]):
        self.repo_path = Path(repo_path)
        self._store: Dict[str, Advisory] = {}
        self._built = False
        self._generation = 0
        self._building: Optional[asyncio.Task[None]] = None

    @property
    def root(self) -> Path:
        return self.repo_path.joinpath(*REVIEWED_SUBDIR)

    @property
    def built(self) -> bool:
        return self._built

    @property
    def advisories(self) -> Mapping[str, Advisory]:
        return MappingProxyType(self._store)

    def __len__(self) -> int:
        return len(self._store)

    async def ensure_indexed(self) -> None:
        while not self._built:
            if self._building is None:
                self._building = asyncio.ensure_future(self._build(self._generation))
            # shield: a cancelled caller must not cancel the build other callers await
            await asyncio.shield(self._building)

    def invalidate(self) -> None:
        """Mark the store stale; the next ``ensure_indexed()`` re-scans the tree."""
        self._generation += 1
        self._built = False
        self._building = None
        logger.info("Advisory index invalidated (generation %d)", self._generation)

    async def rebuild(self) -> None:
        self.invalidate()
        await self.ensure_indexed()

    async def _build(self, generation: int) -> None:
        try:
            store = await asyncio.to_thread(self.scan)
        finally:
            if self._generation == generation:
                self._building = None
        if self._generation != generation:
            # invalidated while scanning; the newer generation builds its own store
            return
        self._store = store
        self._built = True

    # -------------------- Tree walk (runs in a worker thread) --------------------
    def scan(self) -> Dict[str, Advisory]:
        started = time.monotonic()
        store: Dict[str, Advisory] = {}
        stats = {"files": 0, "failed": 0}
        self._scan_directory(self.root, store, stats)
        logger.info(
            "Indexed %d advisories from %s (%d files, %d failed) in %.2fs",
            len(store), self.root, stats["files"], stats["failed"],
            time.monotonic() - started,
        )
        return store

    def _scan_directory(self, directory: Path, store: Dict[str, Advisory], stats: Dict[str, int]) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.error("Failed to read directory %s: %s", directory, e)
            return

        for entry in entries:
            path = Path(entry.path)
            try:
                is_dir = entry.is_dir()
                is_file = entry.is_file()
            except OSError as e:
                logger.warning("Failed to stat %s: %s", path, e)
                continue
            if is_dir:
                self._scan_directory(path, store, stats)
            elif is_file and entry.name.endswith(".json"):
                stats["files"] += 1
                advisory = self._load_file(path)
                if advisory is None:
                    stats["failed"] += 1
                    continue
                if advisory.ghsa_id in store:
                    logger.warning("Duplicate advisory %s in %s replaces earlier record", advisory.ghsa_id, path)
                store[advisory.ghsa_id] = advisory

    @staticmethod
    def _load_file(path: Path) -> Advisory | None:
        try:
            osv = OsvVulnerability.model_validate_json(path.read_bytes())
            return osv_to_advisory(osv)
        except (OSError, ValidationError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to parse %s: %s", path, e)
            return None
