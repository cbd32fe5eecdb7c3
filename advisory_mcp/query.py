"""Filtering, sorting and paging over the in-memory advisory store.

Timestamps are ISO-8601 UTC strings of fixed width, so plain string
comparison orders them chronologically. All filters here rely on that.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, Callable, Iterable, List, Mapping, Optional

if TYPE_CHECKING:
    from .models import Advisory, AdvisoryListOptions

Predicate = Callable[["Advisory"], bool]

DEFAULT_PER_PAGE = 30

_DATE_FILTER = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:\.\.(\d{4}-\d{2}-\d{2}))?$")


class InvalidFilterError(ValueError):
    """A filter value that does not follow the accepted grammar."""


# -------------------- Date filters --------------------
@dataclass(frozen=True)
class DateRange:
    """Half-open UTC day range ``[start 00:00:00Z, end 00:00:00Z)``."""

    start: date
    end: date  # exclusive

    def contains(self, timestamp: Optional[str]) -> bool:
        if not timestamp:
            return False
        # Bare dates as bounds keep fractional-second timestamps in range
        return self.start.isoformat() <= timestamp < self.end.isoformat()


def _parse_day(value: str, raw: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidFilterError(f"Invalid date {value!r} in filter {raw!r}") from None


def parse_date_filter(value: str) -> DateRange:
    """Parse ``YYYY-MM-DD`` (one day) or ``YYYY-MM-DD..YYYY-MM-DD`` (inclusive).

    Raises InvalidFilterError for anything else, including impossible
    calendar dates and ranges whose start is after their end.
    """
    match = _DATE_FILTER.match(value.strip())
    if not match:
        raise InvalidFilterError(
            f"Invalid date filter {value!r}: expected YYYY-MM-DD or YYYY-MM-DD..YYYY-MM-DD"
        )
    start = _parse_day(match.group(1), value)
    last = _parse_day(match.group(2), value) if match.group(2) else start
    if last < start:
        raise InvalidFilterError(f"Invalid date filter {value!r}: start is after end")
    return DateRange(start=start, end=last + timedelta(days=1))


# -------------------- Predicates --------------------
def parse_cwe_ids(cwes: "str | Iterable[str] | None") -> frozenset[str]:
    """``"79, CWE-22"`` -> ``{"CWE-79", "CWE-22"}``."""
    if not cwes:
        return frozenset()
    parts = cwes.split(",") if isinstance(cwes, str) else [
        p for item in cwes for p in item.split(",")
    ]
    ids = set()
    for part in parts:
        part = part.strip()
        if not part:
            continue
        if part.upper().startswith("CWE-"):
            ids.add("CWE-" + part[4:])
        else:
            ids.add(f"CWE-{part}")
    return frozenset(ids)


def build_predicates(options: "AdvisoryListOptions") -> List[Predicate]:
    """One predicate per filter set in ``options``; an advisory must pass all."""
    predicates: List[Predicate] = []

    if options.ghsa_id:
        ghsa_id = options.ghsa_id
        predicates.append(lambda a: a.ghsa_id == ghsa_id)

    if options.cve_id:
        cve_id = options.cve_id
        predicates.append(lambda a: a.cve_id == cve_id)

    if options.severity:
        severity = options.severity.lower()
        predicates.append(lambda a: a.severity.lower() == severity)

    if options.is_withdrawn is not None:
        withdrawn = options.is_withdrawn
        predicates.append(lambda a: (a.withdrawn_at is not None) == withdrawn)

    if options.ecosystem:
        ecosystem = options.ecosystem
        predicates.append(
            lambda a: any(v.package.ecosystem == ecosystem for v in a.vulnerabilities)
        )

    cwe_ids = parse_cwe_ids(options.cwes)
    if cwe_ids:
        predicates.append(lambda a: any(c.cwe_id in cwe_ids for c in a.cwes))

    if options.affects:
        affects = options.affects
        predicates.append(
            lambda a: any(affects in v.package.name for v in a.vulnerabilities)
        )

    if options.published:
        published = parse_date_filter(options.published)
        predicates.append(lambda a: published.contains(a.published_at))

    if options.updated:
        updated = parse_date_filter(options.updated)
        predicates.append(lambda a: updated.contains(a.updated_at))

    return predicates


def text_predicate(query: str) -> Predicate:
    """Case-insensitive substring match on summary, description and ids."""
    needle = query.lower()

    def matches(a: "Advisory") -> bool:
        return any(
            needle in field.lower()
            for field in (a.summary, a.description, a.ghsa_id, a.cve_id)
            if field
        )

    return matches


# -------------------- Pipeline --------------------
def apply_pipeline(
    advisories: Iterable["Advisory"],
    options: "AdvisoryListOptions",
    extra: Iterable[Predicate] = (),
) -> List["Advisory"]:
    predicates = [*extra, *build_predicates(options)]
    results = [a for a in advisories if all(p(a) for p in predicates)]

    # sorted() is stable, also with reverse=True
    key = (lambda a: a.updated_at) if options.sort == "updated" else (lambda a: a.published_at)
    results = sorted(results, key=key, reverse=options.direction != "asc")

    per_page = options.per_page or DEFAULT_PER_PAGE
    page = options.page or 1
    start = (page - 1) * per_page
    return results[start:start + per_page]


def list_advisories(
    store: Mapping[str, "Advisory"], options: "AdvisoryListOptions"
) -> List["Advisory"]:
    return apply_pipeline(store.values(), options)


def get_advisory(store: Mapping[str, "Advisory"], ghsa_id: str) -> Optional["Advisory"]:
    return store.get(ghsa_id)


def search_advisories(
    store: Mapping[str, "Advisory"], query: str, options: "AdvisoryListOptions"
) -> List["Advisory"]:
    return apply_pipeline(store.values(), options, extra=[text_predicate(query)])
