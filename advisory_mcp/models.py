from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .query import parse_date_filter

Ecosystem = Literal[
    "rubygems", "npm", "pip", "maven", "nuget", "composer", "go",
    "rust", "erlang", "actions", "pub", "swift", "other",
]
Severity = Literal["low", "medium", "high", "critical", "unknown"]
SortField = Literal["published", "updated"]
SortDirection = Literal["asc", "desc"]


# ---- OSV (raw advisory-database records) ----
class OsvSeverity(BaseModel):
    type: str
    score: str


class OsvPackage(BaseModel):
    ecosystem: str | None = None
    name: str | None = None
    purl: str | None = None


class OsvEvent(BaseModel):
    introduced: str | None = None
    fixed: str | None = None
    last_affected: str | None = None
    limit: str | None = None


class OsvRange(BaseModel):
    type: str | None = None
    repo: str | None = None
    events: list[OsvEvent] | None = None


class OsvAffected(BaseModel):
    package: OsvPackage | None = None
    ranges: list[OsvRange] | None = None
    versions: list[str] | None = None
    ecosystem_specific: dict[str, Any] | None = None
    database_specific: dict[str, Any] | None = None


class OsvReference(BaseModel):
    type: str | None = None
    url: str


class OsvDatabaseSpecific(BaseModel):
    cwe_ids: list[str] | None = None
    severity: str | None = None
    github_reviewed: bool | None = None
    github_reviewed_at: str | None = None
    nvd_published_at: str | None = None


class OsvVulnerability(BaseModel):
    schema_version: str | None = None
    id: str
    modified: str = ""
    published: str = ""
    withdrawn: str | None = None
    aliases: list[str] | None = None
    summary: str | None = None
    details: str | None = None
    severity: list[OsvSeverity] | None = None
    affected: list[OsvAffected] | None = None
    references: list[OsvReference] | None = None
    database_specific: OsvDatabaseSpecific | None = None


# ---- Canonical advisory (GitHub global advisory shape) ----
class Identifier(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    value: str


class Package(BaseModel):
    model_config = ConfigDict(frozen=True)

    ecosystem: str
    name: str


class VulnerabilityEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    package: Package
    severity: str
    vulnerable_version_range: str
    first_patched_version: str | None = None


class Cvss(BaseModel):
    model_config = ConfigDict(frozen=True)

    vector_string: str
    score: float


class CvssSeverity(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    vector_string: str
    score: float


class Cwe(BaseModel):
    model_config = ConfigDict(frozen=True)

    cwe_id: str
    name: str


class Advisory(BaseModel):
    model_config = ConfigDict(frozen=True)

    ghsa_id: str
    cve_id: str | None = None
    url: str
    html_url: str
    repository_advisory_url: str | None = None
    summary: str
    description: str | None = None
    type: str = "reviewed"
    severity: str
    source_code_location: str | None = None
    identifiers: list[Identifier] = Field(default_factory=list)
    references: list[str] = Field(default_factory=list)
    published_at: str
    updated_at: str
    github_reviewed_at: str | None = None
    nvd_published_at: str | None = None
    withdrawn_at: str | None = None
    vulnerabilities: list[VulnerabilityEntry] = Field(default_factory=list)
    cvss: Cvss | None = None
    cvss_severities: list[CvssSeverity] | None = None
    cwes: list[Cwe] = Field(default_factory=list)
    credits: list[dict[str, Any]] = Field(default_factory=list)


# ---- Query options ----
class AdvisoryListOptions(BaseModel):
    """Filters, sorting and paging accepted by every advisory data source."""

    model_config = ConfigDict(extra="ignore")

    ghsa_id: str | None = None
    cve_id: str | None = None
    ecosystem: Ecosystem | None = None
    severity: Severity | None = None
    cwes: str | list[str] | None = None  # e.g. "79,284,22" or "CWE-79"
    is_withdrawn: bool | None = None
    affects: str | None = None
    published: str | None = None  # YYYY-MM-DD or YYYY-MM-DD..YYYY-MM-DD
    updated: str | None = None
    per_page: int = Field(default=30, ge=1, le=100)
    page: int = Field(default=1, ge=1)
    sort: SortField = "published"
    direction: SortDirection = "desc"

    @field_validator("published", "updated")
    @classmethod
    def _check_date_filter(cls, value: str | None) -> str | None:
        if value is not None:
            parse_date_filter(value)
        return value

    @field_validator("severity", mode="before")
    @classmethod
    def _lower_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.lower()
            return "medium" if value == "moderate" else value
        return value


# ---- Tool / API responses ----
class AffectedPackage(BaseModel):
    ecosystem: str
    name: str
    vulnerable_range: str


class AdvisorySummary(BaseModel):
    ghsa_id: str
    cve_id: str | None = None
    summary: str
    severity: str
    type: str
    published_at: str
    updated_at: str
    affected_packages: list[AffectedPackage] = Field(default_factory=list)
    cwes: list[Cwe] = Field(default_factory=list)
    url: str

    @classmethod
    def from_advisory(cls, advisory: Advisory) -> "AdvisorySummary":
        return cls(
            ghsa_id=advisory.ghsa_id,
            cve_id=advisory.cve_id,
            summary=advisory.summary,
            severity=advisory.severity,
            type=advisory.type,
            published_at=advisory.published_at,
            updated_at=advisory.updated_at,
            affected_packages=[
                AffectedPackage(
                    ecosystem=v.package.ecosystem,
                    name=v.package.name,
                    vulnerable_range=v.vulnerable_version_range,
                )
                for v in advisory.vulnerabilities
            ],
            cwes=list(advisory.cwes),
            url=advisory.html_url,
        )


class AdvisoryListResponse(BaseModel):
    count: int
    advisories: list[AdvisorySummary] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str
    message: str | None = None
    details: list[dict[str, Any]] | None = None
