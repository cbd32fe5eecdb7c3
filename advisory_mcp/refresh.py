"""Keep the local advisory-database clone current with shallow git updates."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

ADVISORY_REPO_URL = "https://github.com/github/advisory-database.git"


class GitCommandError(RuntimeError):
    pass


async def _run_git(args: List[str], cwd: Path, timeout: float) -> str:
    try:
        proc = await asyncio.create_subprocess_exec(
            "git", *args,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise GitCommandError(f"git command failed: {e}") from e
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise GitCommandError(f"git {args[0]} timed out after {timeout}s") from None
    if proc.returncode != 0:
        raise GitCommandError(
            f"git {args[0]} failed (code {proc.returncode}): {stderr.decode(errors='replace').strip()}"
        )
    return stdout.decode(errors="replace").strip()


async def _current_commit(repo_path: Path) -> Optional[str]:
    try:
        return await _run_git(["rev-parse", "HEAD"], repo_path, 5)
    except GitCommandError:
        return None


async def refresh_advisory_database(
    repo_path: str | Path,
    *,
    skip_on_failure: bool = True,
    timeout: float = 120.0,
) -> bool:
    """Clone or fast-forward the advisory database.

    Returns True when the tree changed (fresh clone or new commit), False when
    it was already current or the refresh failed and ``skip_on_failure`` is set.
    """
    repo = Path(repo_path)

    if not (repo / ".git").exists():
        logger.info("Repository not found at %s, cloning...", repo)
        try:
            repo.parent.mkdir(parents=True, exist_ok=True)
            await _run_git(
                ["clone", "--depth=1", "--branch=main", ADVISORY_REPO_URL, repo.name],
                repo.parent,
                timeout,
            )
        except (GitCommandError, OSError) as e:
            if skip_on_failure:
                logger.warning("Clone failed, skipping: %s", e)
                return False
            raise
        logger.info("Repository cloned successfully")
        return True

    before = await _current_commit(repo)
    try:
        logger.info("Fetching latest advisories...")
        await _run_git(["fetch", "--depth=1", "origin", "main"], repo, timeout)
        await _run_git(["reset", "--hard", "origin/main"], repo, timeout)
        after = await _current_commit(repo)

        if before == after:
            logger.info("Already up-to-date (%s)", (after or "")[:8])
            return False

        latest = await _run_git(["log", "-1", "--format=%ci %s"], repo, 5)
        logger.info("Updated %s -> %s: %s", (before or "")[:8], (after or "")[:8], latest)
        return True
    except GitCommandError as e:
        if skip_on_failure:
            logger.warning("Refresh failed, using cached data: %s", e)
            return False
        raise


async def periodic_refresh(
    repo_path: str | Path,
    interval: float,
    on_update: Callable[[], None],
) -> None:
    """Refresh every ``interval`` seconds until cancelled, calling ``on_update`` on change."""
    logger.info("Starting periodic refresh every %d minutes", round(interval / 60))
    try:
        while True:
            await asyncio.sleep(interval)
            try:
                if await refresh_advisory_database(repo_path, skip_on_failure=True):
                    on_update()
            except Exception:
                logger.exception("Periodic refresh error")
    finally:
        logger.info("Periodic refresh stopped")
