from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict

import pytest


@pytest.fixture
def advisory_repo(tmp_path: Path) -> Path:
    """Empty clone layout: <repo>/advisories/github-reviewed."""
    (tmp_path / "advisories" / "github-reviewed").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def write_advisory(advisory_repo: Path) -> Callable[..., Path]:
    def write(record: Dict[str, Any], subdir: str = "2026/01") -> Path:
        folder = advisory_repo / "advisories" / "github-reviewed" / subdir / record["id"]
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / f"{record['id']}.json"
        path.write_text(json.dumps(record), encoding="utf-8")
        return path

    return write
