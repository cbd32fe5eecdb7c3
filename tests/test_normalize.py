import pytest

from advisory_mcp.models import OsvEvent, OsvVulnerability
from advisory_mcp.normalize import (
    first_patched_version,
    normalize_ecosystem,
    normalize_severity,
    osv_to_advisory,
    vulnerable_version_range,
)

from factories import make_osv


def _events(*raw):
    return [OsvEvent(**e) for e in raw]


def _normalize(record):
    return osv_to_advisory(OsvVulnerability.model_validate(record))


@pytest.mark.parametrize(
    "events,expected",
    [
        ([{"introduced": "1.0.0"}, {"fixed": "2.0.0"}], ">= 1.0.0, < 2.0.0"),
        ([{"introduced": "1.0.0"}], ">= 1.0.0"),
        ([{"fixed": "2.0.0"}], "< 2.0.0"),
        ([], "*"),
        ([{"last_affected": "3.1.0"}], "*"),
        ([{"introduced": "0"}, {"fixed": "0.9.1"}, {"introduced": "1.0.0"}, {"fixed": "1.2.0"}],
         ">= 0, < 0.9.1"),
    ],
)
def test_vulnerable_version_range(events, expected):
    assert vulnerable_version_range(_events(*events)) == expected


def test_first_patched_version():
    assert first_patched_version(_events({"introduced": "0"}, {"fixed": "1.4.2"})) == "1.4.2"
    assert first_patched_version(_events({"introduced": "0"})) is None


@pytest.mark.parametrize(
    "name,expected",
    [("npm", "npm"), ("PyPI", "pip"), ("crates.io", "rust"), ("Packagist", "composer"),
     ("GitHub Actions", "actions"), ("pip", "pip"), ("Linux", "other"), (None, "other")],
)
def test_normalize_ecosystem(name, expected):
    assert normalize_ecosystem(name) == expected


@pytest.mark.parametrize(
    "value,expected",
    [("CRITICAL", "critical"), ("MODERATE", "medium"), ("moderate", "medium"),
     ("LOW", "low"), ("", "unknown"), (None, "unknown")],
)
def test_normalize_severity(value, expected):
    assert normalize_severity(value) == expected


def test_moderate_record_is_medium_everywhere():
    advisory = _normalize(make_osv(database_specific={"severity": "MODERATE", "cwe_ids": []}))
    assert advisory.severity == "medium"
    assert [v.severity for v in advisory.vulnerabilities] == ["medium"]


def test_full_record():
    advisory = _normalize(make_osv())

    assert advisory.ghsa_id == "GHSA-aaaa-bbbb-cccc"
    assert advisory.cve_id == "CVE-2026-1000"
    assert advisory.html_url == "https://github.com/advisories/GHSA-aaaa-bbbb-cccc"
    assert advisory.summary == "Prototype pollution in lodash-like helper"
    assert advisory.description.startswith("A crafted payload")
    assert advisory.type == "reviewed"
    assert advisory.severity == "critical"
    assert [i.type for i in advisory.identifiers] == ["GHSA", "CVE"]
    assert advisory.references == ["https://nvd.nist.gov/vuln/detail/CVE-2026-1000"]
    assert advisory.published_at == "2026-01-15T08:30:00Z"
    assert advisory.updated_at == "2026-01-20T12:00:00Z"
    assert advisory.withdrawn_at is None

    (vuln,) = advisory.vulnerabilities
    assert vuln.package.ecosystem == "npm"
    assert vuln.package.name == "deep-merge"
    assert vuln.severity == "critical"
    assert vuln.vulnerable_version_range == ">= 1.0.0, < 2.0.0"
    assert vuln.first_patched_version == "2.0.0"

    assert advisory.cvss is not None
    assert advisory.cvss.score == 9.8
    assert advisory.cvss.vector_string.startswith("CVSS:3.1/")
    assert advisory.cvss_severities[0].type == "CVSS_V3"
    assert [(c.cwe_id, c.name) for c in advisory.cwes] == [("CWE-1321", "CWE-1321")]
    assert advisory.credits == []


def test_summary_falls_back_to_first_detail_line():
    advisory = _normalize(make_osv(summary=None, details="First line\nSecond line"))
    assert advisory.summary == "First line"


def test_missing_cvss_v3_gives_null_block():
    advisory = _normalize(make_osv(severity=[{"type": "CVSS_V4", "score": "CVSS:4.0/AV:N"}]))
    assert advisory.cvss is None
    assert advisory.cvss_severities is None


def test_no_cve_alias():
    advisory = _normalize(make_osv(aliases=["PYSEC-2026-1"]))
    assert advisory.cve_id is None
    assert [i.type for i in advisory.identifiers] == ["GHSA"]


def test_withdrawn_timestamp_is_kept():
    advisory = _normalize(make_osv(withdrawn="2026-02-01T00:00:00Z"))
    assert advisory.withdrawn_at == "2026-02-01T00:00:00Z"


def test_minimal_record_normalizes():
    advisory = _normalize({"id": "GHSA-min0-0000-0000", "published": "2026-01-01T00:00:00Z"})
    assert advisory.severity == "unknown"
    assert advisory.summary == ""
    assert advisory.vulnerabilities == []
    assert advisory.cwes == []
    assert advisory.cvss is None


def test_affected_without_ranges():
    advisory = _normalize(make_osv(affected=[{"package": {"ecosystem": "PyPI", "name": "flask"}}]))
    (vuln,) = advisory.vulnerabilities
    assert vuln.package.ecosystem == "pip"
    assert vuln.vulnerable_version_range == "*"
    assert vuln.first_patched_version is None


def test_canonical_json_shape():
    data = _normalize(make_osv()).model_dump(mode="json")
    assert data["cvss"] == {
        "vector_string": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H",
        "score": 9.8,
    }
    assert data["credits"] == []
    assert data["vulnerabilities"][0]["package"] == {"ecosystem": "npm", "name": "deep-merge"}
