"""Core data models for crash samples, normalized reports and the aggregate index."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

RawReport = Mapping[str, Any]

SIGNATURE_SEPARATOR = " | "


def version_key(product: str, version: str) -> str:
    """Key used to group reports by product and version."""
    return f"{product} {version}"


@dataclass(frozen=True)
class DaySample:
    """One day of reports as returned by the search API.

    ``total`` is the server's unfiltered count and is always at least the
    number of ``hits`` actually returned.
    """

    total: int
    hits: Tuple[RawReport, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "hits", tuple(self.hits))
        if self.total < len(self.hits):
            object.__setattr__(self, "total", len(self.hits))

    def restrict(self, hits: Tuple[RawReport, ...]) -> "DaySample":
        """Return a copy carrying a subset of hits and the server total."""
        return DaySample(total=self.total, hits=hits)


@dataclass(frozen=True)
class Condition:
    """One named fault-indicating entry in an annotation."""

    name: str
    stack: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.stack is not None:
            data["stack"] = list(self.stack)
        return data


@dataclass(frozen=True)
class Annotation:
    """Decoded annotation blob: its conditions plus every other key verbatim."""

    conditions: Tuple[Condition, ...]
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def has_stacks(self) -> bool:
        return bool(self.conditions) and self.conditions[0].stack is not None

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["conditions"] = [c.to_dict() for c in self.conditions]
        return data


@dataclass(frozen=True)
class NormalizedReport:
    """A report with its date and annotation decoded."""

    date: datetime
    annotation: Annotation
    product: str
    version: str
    build_id: str
    release_channel: str
    uuid: str
    signature: str
    raw: RawReport = field(repr=False, compare=False)

    @property
    def version_key(self) -> str:
        return version_key(self.product, self.version)


@dataclass
class VersionBucket:
    """Reports of one signature, one day, one product+version."""

    reports: List[NormalizedReport] = field(default_factory=list)
    min_build_id: Optional[str] = None
    max_build_id: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.reports)

    def add(self, report: NormalizedReport) -> None:
        self.reports.append(report)
        build = report.build_id
        if not build:
            return
        if self.min_build_id is None or build < self.min_build_id:
            self.min_build_id = build
        if self.max_build_id is None or build > self.max_build_id:
            self.max_build_id = build


@dataclass
class DayBucket:
    """Reports of one signature on one day, grouped by version key."""

    by_version_key: Dict[str, VersionBucket] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return sum(bucket.count for bucket in self.by_version_key.values())

    def sorted_versions(self) -> List[Tuple[str, VersionBucket]]:
        return sorted(self.by_version_key.items())


@dataclass(frozen=True)
class BuildRange:
    """Smallest and largest build id seen for a version."""

    min_build_id: str
    max_build_id: str

    def widen(self, other: "BuildRange") -> "BuildRange":
        return BuildRange(
            min_build_id=min(self.min_build_id, other.min_build_id),
            max_build_id=max(self.max_build_id, other.max_build_id),
        )


@dataclass
class SignatureNode:
    """Everything known about one signature across the folded days."""

    signature: str
    all: List[NormalizedReport] = field(default_factory=list)
    by_day: List[Optional[DayBucket]] = field(default_factory=list)
    build_ranges: Dict[str, BuildRange] = field(default_factory=dict)

    @property
    def hits(self) -> int:
        return len(self.all)

    def day(self, age: int) -> Optional[DayBucket]:
        if age < len(self.by_day):
            return self.by_day[age]
        return None

    def ensure_day(self, age: int) -> DayBucket:
        while len(self.by_day) <= age:
            self.by_day.append(None)
        bucket = self.by_day[age]
        if bucket is None:
            bucket = self.by_day[age] = DayBucket()
        return bucket
