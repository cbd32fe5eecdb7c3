"""Builders for OSV records and canonical advisories used across the tests."""
from __future__ import annotations

from typing import Any, Dict

from advisory_mcp.models import AdvisoryListOptions, OsvVulnerability
from advisory_mcp.normalize import osv_to_advisory


def make_osv(ghsa_id: str = "GHSA-aaaa-bbbb-cccc", **overrides: Any) -> Dict[str, Any]:
    """A GitHub-reviewed OSV record as found in advisory-database."""
    record: Dict[str, Any] = {
        "schema_version": "1.4.0",
        "id": ghsa_id,
        "modified": "2026-01-20T12:00:00Z",
        "published": "2026-01-15T08:30:00Z",
        "aliases": ["CVE-2026-1000"],
        "summary": "Prototype pollution in lodash-like helper",
        "details": "A crafted payload can pollute Object.prototype.\n\nMore text.",
        "severity": [
            {"type": "CVSS_V3", "score": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H"}
        ],
        "affected": [
            {
                "package": {"ecosystem": "npm", "name": "deep-merge"},
                "ranges": [
                    {
                        "type": "ECOSYSTEM",
                        "events": [{"introduced": "1.0.0"}, {"fixed": "2.0.0"}],
                    }
                ],
            }
        ],
        "references": [
            {"type": "ADVISORY", "url": "https://nvd.nist.gov/vuln/detail/CVE-2026-1000"}
        ],
        "database_specific": {
            "cwe_ids": ["CWE-1321"],
            "severity": "CRITICAL",
            "github_reviewed": True,
            "github_reviewed_at": "2026-01-15T08:00:00Z",
            "nvd_published_at": None,
        },
    }
    record.update(overrides)
    return record


def make_advisory(ghsa_id: str = "GHSA-aaaa-bbbb-cccc", **overrides: Any):
    return osv_to_advisory(OsvVulnerability.model_validate(make_osv(ghsa_id, **overrides)))


def options(**kwargs: Any) -> AdvisoryListOptions:
    return AdvisoryListOptions(**kwargs)


