"""Fold normalized days into the signature → day → version index.

Estimated counts are a sample-based extrapolation, not exact numbers: each
day's observed count is scaled by that day's factor, the server total over
the number of normalized reports kept, then ceiled and summed across days.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence

import numpy as np

from .exceptions import InvalidArgumentError
from .filters import Filter
from .logging_config import get_logger
from .models import BuildRange, DaySample, NormalizedReport, SignatureNode, VersionBucket
from .normalizer import normalize as default_normalize

logger = get_logger(__name__)

Normalize = Callable[[DaySample], List[NormalizedReport]]


class AggregateIndex:
    """Signature nodes plus the extrapolation factor of every folded day."""

    def __init__(self) -> None:
        self.nodes: Dict[str, SignatureNode] = {}
        self.factors: Dict[int, float] = {}

    def __getitem__(self, signature: str) -> SignatureNode:
        return self.nodes[signature]

    def __contains__(self, signature: object) -> bool:
        return signature in self.nodes

    def __iter__(self) -> Iterator[str]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def days(self) -> int:
        """Number of days that contributed reports."""
        return len(self.factors)

    @property
    def total_hits(self) -> int:
        return sum(node.hits for node in self.nodes.values())

    def factor(self, age: int) -> float:
        return self.factors.get(age, 1.0)

    def sorted_signatures(self) -> List[SignatureNode]:
        """Nodes by descending hit count, ties by signature."""
        return sorted(self.nodes.values(), key=lambda n: (-n.hits, n.signature))

    def share(self, signature: str) -> float:
        """Percentage of all folded sample hits carrying *signature*."""
        total = self.total_hits
        if not total:
            return 0.0
        return 100.0 * self[signature].hits / total

    def estimated_count(self, signature: str) -> int:
        node = self[signature]
        ages = [age for age, bucket in enumerate(node.by_day) if bucket is not None]
        if not ages:
            return 0
        counts = np.array([node.by_day[age].count for age in ages], dtype=float)
        factors = np.array([self.factor(age) for age in ages], dtype=float)
        return int(np.ceil(counts * factors).sum())

    def estimated_version_count(self, signature: str, age: int, version_key: str) -> int:
        """Estimate for one version bar of one day."""
        bucket = self[signature].day(age)
        if bucket is None or version_key not in bucket.by_version_key:
            return 0
        return int(np.ceil(bucket.by_version_key[version_key].count * self.factor(age)))

    def build_ranges(self, signature: str) -> Dict[str, BuildRange]:
        ranges = self[signature].build_ranges
        return {key: ranges[key] for key in sorted(ranges)}


def aggregate(
    index: Optional[AggregateIndex],
    day: Sequence[NormalizedReport],
    age: int,
    flt: Optional[Filter] = None,
    *,
    total: Optional[int] = None,
) -> AggregateIndex:
    """Fold the reports of day *age* into *index* (a new one when ``None``).

    Reports rejected by *flt* are dropped. The day's factor is *total*
    divided by the number of reports kept; *total* defaults to that number,
    so a day with no server count attached extrapolates with a factor of 1.
    Folding an empty day leaves the index untouched.
    """
    if age < 0:
        raise InvalidArgumentError("age", age, "must be non-negative")
    if index is None:
        index = AggregateIndex()
    if not day:
        return index
    if flt is None:
        flt = Filter()

    kept = [report for report in day if flt.get(report.product, report.version)]
    for report in kept:
        _fold(index, report, age)
    day_total = len(kept) if total is None else total
    index.factors[age] = day_total / len(kept) if kept else 1.0

    logger.debug(
        "Folded day %d: %d of %d report(s), factor %.2f",
        age,
        len(kept),
        len(day),
        index.factors[age],
    )
    return index


def _fold(index: AggregateIndex, report: NormalizedReport, age: int) -> None:
    node = index.nodes.get(report.signature)
    if node is None:
        node = index.nodes[report.signature] = SignatureNode(signature=report.signature)
    node.all.append(report)

    bucket = node.ensure_day(age).by_version_key.setdefault(report.version_key, VersionBucket())
    bucket.add(report)

    if report.build_id:
        seen = BuildRange(report.build_id, report.build_id)
        current = node.build_ranges.get(report.version_key)
        node.build_ranges[report.version_key] = seen if current is None else current.widen(seen)


def rebuild(
    samples: Mapping[int, DaySample],
    flt: Optional[Filter] = None,
    normalize: Normalize = default_normalize,
) -> AggregateIndex:
    """Build a fresh index from cached samples, oldest age last.

    Library entry point for callers holding a finished set of samples.
    ``DashboardPipeline`` folds day by day through its scheduled stages
    instead, so it can render after each day.
    """
    index = AggregateIndex()
    for age in sorted(samples):
        sample = samples[age]
        index = aggregate(
            index,
            normalize(sample),
            age,
            flt,
            total=sample.total,
        )
    return index
