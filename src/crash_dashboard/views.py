"""View layer - turns an AggregateIndex into plain JSON-safe structures.

Everything the page (or the terminal report) shows is computed here:

1. Estimate text per signature
2. Histogram bars per day and version, heights relative to the busiest day
3. Build ranges shown as dates
4. Sample links, capped per day
5. The first stack trace found

Sinks never look at the index directly.
"""

from __future__ import annotations

import json
import math
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .aggregator import AggregateIndex
from .config import DEFAULT_REPORT_URL
from .exceptions import CrashDashboardError, InvalidArgumentError
from .models import SIGNATURE_SEPARATOR, NormalizedReport, SignatureNode, version_key
from .normalizer import build_to_datetime, is_nightly_of
from .search import utc_today

DEFAULT_COLOR = "rgba(100, 100, 100, 1)"
MAX_LINKS_PER_DAY = 20


class RenderSink(ABC):
    """Receives status lines, views and terminal failures from a run."""

    @abstractmethod
    def status(self, message: str) -> None:
        """Publish a one-line status update."""

    @abstractmethod
    def render(self, view: dict[str, Any]) -> None:
        """Publish a complete view, replacing the previous one."""

    @abstractmethod
    def fail(self, error: BaseException) -> None:
        """Publish a terminal failure and clear the loading state."""


def assign_colors(versions: Sequence[Tuple[str, str]]) -> Dict[str, str]:
    """Colour each ``"product version"`` key, the first one the reddest."""
    count = len(versions)
    return {
        version_key(product, version): f"rgba({math.floor(255 * (1 - i / count))}, 100, 100, 1)"
        for i, (product, version) in enumerate(versions)
    }


def build_view(
    index: AggregateIndex,
    days_back: int,
    colors: Dict[str, str],
    today: Optional[date] = None,
    *,
    versions: Sequence[Tuple[str, str]] = (),
    selected: Optional[Iterable[str]] = None,
    report_url: str = DEFAULT_REPORT_URL,
    max_links: int = MAX_LINKS_PER_DAY,
) -> dict[str, Any]:
    """Build the complete view of *index*.

    *selected* holds the checked ``"product version"`` keys; ``None`` means
    every version is checked.

    Returns:
        {
            "signatures": [...],   # by descending hits
            "versions": [{"key", "product", "version", "color", "checked"}],
            "days": [{"age", "label", "date"}],
            "days_loaded": 3,
            "total_hits": 120,
        }
    """
    if days_back < 1:
        raise InvalidArgumentError("days_back", days_back, "must be at least 1")
    today = today or utc_today()
    checked = None if selected is None else set(selected)

    return {
        "signatures": [
            signature_view(index, node, days_back, colors, today, report_url, max_links)
            for node in index.sorted_signatures()
        ],
        "versions": [
            {
                "key": version_key(product, version),
                "product": product,
                "version": version,
                "color": colors.get(version_key(product, version), DEFAULT_COLOR),
                "checked": checked is None or version_key(product, version) in checked,
            }
            for product, version in versions
        ],
        "days": [
            {"age": age, "label": f"-{age}d", "date": (today - timedelta(days=age)).isoformat()}
            for age in range(days_back)
        ],
        "days_loaded": index.days,
        "total_hits": index.total_hits,
    }


def signature_view(
    index: AggregateIndex,
    node: SignatureNode,
    days_back: int,
    colors: Dict[str, str],
    today: date,
    report_url: str = DEFAULT_REPORT_URL,
    max_links: int = MAX_LINKS_PER_DAY,
) -> dict[str, Any]:
    return {
        "signature": node.signature,
        "hits": node.hits,
        "share": round(index.share(node.signature), 2),
        "estimate": index.estimated_count(node.signature),
        "estimate_text": estimate_text(index, node.signature),
        "histogram": histogram(index, node, days_back, colors, today),
        "builds": builds(index, node.signature, colors),
        "links": links(node, days_back, report_url, max_links),
        "stacks": stacks(node),
        "refine_url_params": refine_params(node.signature),
    }


def estimate_text(index: AggregateIndex, signature: str) -> str:
    """``Crashes: P% of N samples (~E total crashes over D days)``."""
    samples = index.total_hits
    percent = math.ceil(index[signature].hits * 100 / samples) if samples else 0
    return (
        f"Crashes: {percent}% of {samples} samples "
        f"(~{index.estimated_count(signature)} total crashes over {index.days} days)"
    )


def histogram(
    index: AggregateIndex,
    node: SignatureNode,
    days_back: int,
    colors: Dict[str, str],
    today: date,
) -> List[dict[str, Any]]:
    """One entry per day; bars stacked per version, heights in ``[0, 1]``."""
    busiest = max((bucket.count for bucket in node.by_day if bucket is not None), default=0)
    days = []
    for age in range(days_back):
        bucket = node.day(age)
        day = today - timedelta(days=age)
        bars = []
        nightlies = 0
        if bucket is not None and busiest:
            for key, versions in bucket.sorted_versions():
                estimate = index.estimated_version_count(node.signature, age, key)
                bars.append(
                    {
                        "version": key,
                        "count": versions.count,
                        "height": versions.count / busiest,
                        "color": colors.get(key, DEFAULT_COLOR),
                        "tooltip": f"{key} (est. {estimate} crashes)",
                    }
                )
                nightlies += sum(1 for r in versions.reports if is_nightly_of(r, day))
        days.append({"age": age, "label": f"-{age}d", "bars": bars, "nightlies": nightlies})
    return days


def builds(index: AggregateIndex, signature: str, colors: Dict[str, str]) -> List[dict[str, Any]]:
    """Spotted-in-builds list: version with a date or a date range."""
    entries = []
    for key, build_range in index.build_ranges(signature).items():
        try:
            first = build_to_datetime(build_range.min_build_id).date()
            last = build_to_datetime(build_range.max_build_id).date()
        except InvalidArgumentError:
            text = f"{build_range.min_build_id} to {build_range.max_build_id}"
        else:
            text = first.isoformat() if first == last else f"{first.isoformat()} to {last.isoformat()}"
        entries.append(
            {
                "version": key,
                "color": colors.get(key, DEFAULT_COLOR),
                "min_build_id": build_range.min_build_id,
                "max_build_id": build_range.max_build_id,
                "dates": text,
            }
        )
    return entries


def links(
    node: SignatureNode,
    days_back: int,
    report_url: str = DEFAULT_REPORT_URL,
    max_links: int = MAX_LINKS_PER_DAY,
) -> List[dict[str, Any]]:
    """Sample links per day, at most *max_links* each."""
    days = []
    for age in range(days_back):
        bucket = node.day(age)
        if bucket is None or not bucket.count:
            continue
        reports = [r for versions in bucket.by_version_key.values() for r in versions.reports]
        days.append(
            {
                "age": age,
                "title": f"{age} days ago",
                "samples": [sample_link(r, report_url) for r in reports[:max_links]],
                "omitted": max(0, len(reports) - max_links),
            }
        )
    return days


def sample_link(report: NormalizedReport, report_url: str = DEFAULT_REPORT_URL) -> dict[str, Any]:
    label = report.version_key
    if report.release_channel == "nightly":
        label += f" {report.build_id}"
    return {
        "uuid": report.uuid,
        "version": label,
        "url": report_url + report.uuid,
        "annotation": json.dumps(report.annotation.to_dict(), indent="\t"),
    }


def stacks(node: SignatureNode) -> Optional[List[dict[str, Any]]]:
    """Conditions of the first sample carrying stacks, or ``None``."""
    for report in node.all:
        if report.annotation.has_stacks:
            return [
                {"name": c.name, "stack": list(c.stack or ())}
                for c in report.annotation.conditions
            ]
    return None


def refine_params(signature: str) -> List[List[str]]:
    """Query pairs restricting a new session to *signature*."""
    return [["signature", f"~{name}"] for name in signature.split(SIGNATURE_SEPARATOR)]


def error_view(error: BaseException) -> dict[str, Any]:
    """JSON payload describing a failed run."""
    if isinstance(error, CrashDashboardError):
        return error.to_json()
    return {
        "error_code": None,
        "error_type": type(error).__name__,
        "message": str(error),
        "details": {},
    }
