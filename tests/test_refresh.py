import asyncio

import pytest

from advisory_mcp import refresh
from advisory_mcp.refresh import (
    ADVISORY_REPO_URL,
    GitCommandError,
    periodic_refresh,
    refresh_advisory_database,
)


class FakeGit:
    """Records git invocations and replays scripted HEAD commits."""

    def __init__(self, heads=("abc12345", "abc12345"), fail_on=None):
        self.calls = []
        self.heads = list(heads)
        self.fail_on = fail_on

    async def __call__(self, args, cwd, timeout):
        self.calls.append((args[0], cwd))
        if args[0] == self.fail_on:
            raise GitCommandError(f"git {args[0]} failed (code 128): network unreachable")
        if args[0] == "rev-parse":
            return self.heads.pop(0)
        if args[0] == "log":
            return "2026-10-18 12:00:00 +0000 Advisory Database Sync"
        return ""


@pytest.fixture
def cloned_repo(tmp_path):
    repo = tmp_path / "advisory-database"
    (repo / ".git").mkdir(parents=True)
    return repo


@pytest.mark.asyncio
async def test_clones_when_missing(tmp_path, monkeypatch):
    git = FakeGit()
    monkeypatch.setattr(refresh, "_run_git", git)
    target = tmp_path / "external" / "advisory-database"

    assert await refresh_advisory_database(target) is True
    assert git.calls == [("clone", target.parent)]
    assert target.parent.is_dir()


@pytest.mark.asyncio
async def test_clone_uses_upstream_url(tmp_path, monkeypatch):
    seen = []

    async def fake(args, cwd, timeout):
        seen.append(args)
        return ""

    monkeypatch.setattr(refresh, "_run_git", fake)
    await refresh_advisory_database(tmp_path / "db")

    assert ADVISORY_REPO_URL in seen[0]
    assert seen[0][-1] == "db"
    assert "--depth=1" in seen[0]


@pytest.mark.asyncio
async def test_up_to_date(cloned_repo, monkeypatch):
    git = FakeGit(heads=("abc12345", "abc12345"))
    monkeypatch.setattr(refresh, "_run_git", git)

    assert await refresh_advisory_database(cloned_repo) is False
    assert [c[0] for c in git.calls] == ["rev-parse", "fetch", "reset", "rev-parse"]


@pytest.mark.asyncio
async def test_new_commit_reports_change(cloned_repo, monkeypatch):
    git = FakeGit(heads=("abc12345", "def67890"))
    monkeypatch.setattr(refresh, "_run_git", git)

    assert await refresh_advisory_database(cloned_repo) is True
    assert [c[0] for c in git.calls][-1] == "log"


@pytest.mark.asyncio
async def test_failure_is_skipped_by_default(cloned_repo, monkeypatch):
    monkeypatch.setattr(refresh, "_run_git", FakeGit(fail_on="fetch"))
    assert await refresh_advisory_database(cloned_repo) is False


@pytest.mark.asyncio
async def test_failure_raises_when_not_skipping(cloned_repo, monkeypatch):
    monkeypatch.setattr(refresh, "_run_git", FakeGit(fail_on="fetch"))
    with pytest.raises(GitCommandError, match="network unreachable"):
        await refresh_advisory_database(cloned_repo, skip_on_failure=False)


@pytest.mark.asyncio
async def test_clone_failure_is_skipped(tmp_path, monkeypatch):
    monkeypatch.setattr(refresh, "_run_git", FakeGit(fail_on="clone"))
    assert await refresh_advisory_database(tmp_path / "db") is False


@pytest.mark.asyncio
async def test_periodic_refresh_invalidates_on_change(monkeypatch, tmp_path):
    results = iter([True, False, True])
    updates = []

    async def fake_refresh(repo_path, skip_on_failure=True):
        return next(results)

    monkeypatch.setattr(refresh, "refresh_advisory_database", fake_refresh)
    task = asyncio.create_task(periodic_refresh(tmp_path, 0.001, lambda: updates.append(1)))
    while len(updates) < 2:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert updates == [1, 1]


@pytest.mark.asyncio
async def test_periodic_refresh_survives_errors(monkeypatch, tmp_path):
    calls = []

    async def flaky(repo_path, skip_on_failure=True):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return True

    updates = []
    monkeypatch.setattr(refresh, "refresh_advisory_database", flaky)
    task = asyncio.create_task(periodic_refresh(tmp_path, 0.001, lambda: updates.append(1)))
    while not updates:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(calls) >= 2
