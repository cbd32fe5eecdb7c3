"""Conversion of raw OSV advisory-database records into canonical advisories."""
from __future__ import annotations

from typing import Optional, Sequence

from .cvss import calculate_cvss3_score
from .models import (
    Advisory,
    Cvss,
    CvssSeverity,
    Cwe,
    Identifier,
    OsvAffected,
    OsvEvent,
    OsvVulnerability,
    Package,
    VulnerabilityEntry,
)

ADVISORY_URL = "https://github.com/advisories/{ghsa_id}"

# OSV ecosystem name -> GitHub advisory ecosystem
OSV_ECOSYSTEMS = {
    "npm": "npm",
    "PyPI": "pip",
    "Maven": "maven",
    "Go": "go",
    "crates.io": "rust",
    "RubyGems": "rubygems",
    "NuGet": "nuget",
    "Packagist": "composer",
    "Hex": "erlang",
    "GitHub Actions": "actions",
    "Pub": "pub",
    "SwiftURL": "swift",
}
GITHUB_ECOSYSTEMS = frozenset(OSV_ECOSYSTEMS.values()) | {"other"}


# advisory-database writes the middle tier as MODERATE
SEVERITY_ALIASES = {"moderate": "medium"}


def normalize_severity(value: Optional[str]) -> str:
    severity = (value or "unknown").lower()
    return SEVERITY_ALIASES.get(severity, severity)


def normalize_ecosystem(name: Optional[str]) -> str:
    if not name:
        return "other"
    if name in OSV_ECOSYSTEMS:
        return OSV_ECOSYSTEMS[name]
    if name in GITHUB_ECOSYSTEMS:
        return name
    return "other"


def vulnerable_version_range(events: Sequence[OsvEvent]) -> str:
    """Human readable range such as ``">= 1.0.0, < 2.0.0"``.

    ``introduced`` and ``fixed`` are looked up independently; they do not have
    to come from the same event.
    """
    introduced = next((e.introduced for e in events if e.introduced), None)
    fixed = next((e.fixed for e in events if e.fixed), None)
    if introduced and fixed:
        return f">= {introduced}, < {fixed}"
    if introduced:
        return f">= {introduced}"
    if fixed:
        return f"< {fixed}"
    return "*"


def first_patched_version(events: Sequence[OsvEvent]) -> Optional[str]:
    return next((e.fixed for e in events if e.fixed), None)


def _vulnerability_entry(affected: OsvAffected, severity: str) -> VulnerabilityEntry:
    ranges = affected.ranges or []
    events = (ranges[0].events or []) if ranges else []
    package = affected.package
    return VulnerabilityEntry(
        package=Package(
            ecosystem=normalize_ecosystem(package.ecosystem if package else None),
            name=(package.name if package else None) or "unknown",
        ),
        severity=severity,
        vulnerable_version_range=vulnerable_version_range(events),
        first_patched_version=first_patched_version(events),
    )


def osv_to_advisory(osv: OsvVulnerability) -> Advisory:
    """Build the canonical advisory for one OSV record."""
    db = osv.database_specific
    details = osv.details or ""
    cve_id = next((a for a in osv.aliases or [] if a.startswith("CVE-")), None)
    severity = normalize_severity(db.severity if db else None)

    cvss = None
    cvss_severities = None
    cvss_v3 = next((s for s in osv.severity or [] if s.type == "CVSS_V3"), None)
    if cvss_v3 is not None:
        score = calculate_cvss3_score(cvss_v3.score)
        cvss = Cvss(vector_string=cvss_v3.score, score=score)
        cvss_severities = [
            CvssSeverity(type="CVSS_V3", vector_string=cvss_v3.score, score=score)
        ]

    identifiers = [Identifier(type="GHSA", value=osv.id)]
    if cve_id:
        identifiers.append(Identifier(type="CVE", value=cve_id))

    url = ADVISORY_URL.format(ghsa_id=osv.id)
    return Advisory(
        ghsa_id=osv.id,
        cve_id=cve_id,
        url=url,
        html_url=url,
        summary=osv.summary or details.split("\n")[0],
        description=details,
        severity=severity,
        identifiers=identifiers,
        references=[ref.url for ref in osv.references or []],
        published_at=osv.published,
        updated_at=osv.modified,
        github_reviewed_at=db.github_reviewed_at if db else None,
        nvd_published_at=db.nvd_published_at if db else None,
        withdrawn_at=osv.withdrawn,
        vulnerabilities=[_vulnerability_entry(a, severity) for a in osv.affected or []],
        cvss=cvss,
        cvss_severities=cvss_severities,
        # No CWE catalogue is bundled, so the id doubles as the name
        cwes=[Cwe(cwe_id=c, name=c) for c in (db.cwe_ids if db else None) or []],
        credits=[],
    )
