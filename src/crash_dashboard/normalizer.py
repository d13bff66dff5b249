"""Decode raw reports into normalized records with a signature.

Legacy annotations list conditions as bare strings; they are rewritten to
``{"name": ...}`` here so nothing downstream sees the old shape.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import DEFAULT_ANNOTATION_KEY
from .exceptions import DataError, EmptySignatureError, InvalidArgumentError, MalformedAnnotationError
from .logging_config import get_logger
from .models import SIGNATURE_SEPARATOR, Annotation, Condition, DaySample, NormalizedReport, RawReport

logger = get_logger(__name__)

_BUILD_ID_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})")


def normalize(
    sample: DaySample, annotation_key: str = DEFAULT_ANNOTATION_KEY
) -> List[NormalizedReport]:
    """Normalize every hit of *sample*.

    The output is stably sorted by ``(version, date)``. A single malformed
    record fails the whole batch.

    Raises:
        MalformedAnnotationError: An annotation is not a JSON object with a
            ``conditions`` list.
        EmptySignatureError: A report has no usable condition name.
        DataError: A report lacks a product, a version or a valid date.
    """
    reports = [normalize_report(hit, annotation_key) for hit in sample.hits]
    reports.sort(key=lambda r: (r.version, r.date))
    return reports


def normalize_report(hit: RawReport, annotation_key: str = DEFAULT_ANNOTATION_KEY) -> NormalizedReport:
    """Normalize one raw report."""
    uuid = str(hit.get("uuid") or "")
    product = str(hit.get("product") or "")
    version = str(hit.get("version") or "")
    if not product or not version:
        raise DataError(
            "Report is missing its product or version",
            details={"uuid": uuid, "product": product, "version": version},
        )

    annotation = parse_annotation(hit.get(annotation_key), uuid=uuid)
    try:
        signature = compute_signature(annotation.conditions)
    except EmptySignatureError:
        logger.error("Empty signature for report %s", dict(hit))
        raise EmptySignatureError(hit)

    return NormalizedReport(
        date=parse_date(hit.get("date"), uuid=uuid),
        annotation=annotation,
        product=product,
        version=version,
        build_id=str(hit.get("build_id") or ""),
        release_channel=str(hit.get("release_channel") or ""),
        uuid=uuid,
        signature=signature,
        raw=hit,
    )


def parse_date(value: Any, uuid: str = "") -> datetime:
    """Parse an ISO 8601 report date; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        raise DataError("Report has no date", details={"uuid": uuid})
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise DataError("Report date is not ISO 8601", details={"uuid": uuid, "date": value})
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_annotation(raw: Any, uuid: Optional[str] = None) -> Annotation:
    """Decode the annotation JSON string into an :class:`Annotation`."""
    if not isinstance(raw, str):
        raise MalformedAnnotationError(raw, "annotation is not a string", uuid=uuid)
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise MalformedAnnotationError(raw, f"invalid JSON: {exc}", uuid=uuid) from exc
    if not isinstance(data, dict):
        raise MalformedAnnotationError(raw, "annotation is not a JSON object", uuid=uuid)
    entries = data.get("conditions")
    if not isinstance(entries, list):
        raise MalformedAnnotationError(raw, "annotation has no 'conditions' list", uuid=uuid)

    conditions = tuple(_decode_condition(entry, raw, uuid) for entry in entries)
    extra = {k: v for k, v in data.items() if k != "conditions"}
    return Annotation(conditions=conditions, extra=extra)


def _decode_condition(entry: Any, raw: str, uuid: Optional[str]) -> Condition:
    if isinstance(entry, str):
        return Condition(name=entry)
    if isinstance(entry, dict) and isinstance(entry.get("name"), str):
        stack = entry.get("stack")
        if isinstance(stack, list):
            return Condition(name=entry["name"], stack=tuple(str(frame) for frame in stack))
        return Condition(name=entry["name"])
    raise MalformedAnnotationError(raw, f"unexpected condition {entry!r}", uuid=uuid)


def compute_signature(conditions: Sequence[Condition]) -> str:
    """Sort condition names and join them with ``" | "``."""
    names = sorted(condition.name for condition in conditions)
    key = SIGNATURE_SEPARATOR.join(names)
    if not any(name.strip() for name in names):
        raise EmptySignatureError()
    return key


def versions_involved(reports: Iterable[NormalizedReport]) -> List[Tuple[str, str]]:
    """Unique (product, version) pairs, products sorted, versions as first seen."""
    by_product: Dict[str, Dict[str, None]] = {}
    for report in reports:
        by_product.setdefault(report.product, {})[report.version] = None
    pairs = [
        (product, version)
        for product in sorted(by_product)
        for version in by_product[product]
    ]
    logger.debug("All versions involved: %s", pairs)
    return pairs


def build_to_datetime(build_id: str) -> datetime:
    """Decode the ``YYYYMMDDHHMMSS`` prefix of a build id (UTC)."""
    match = _BUILD_ID_RE.match(build_id or "")
    if match is None:
        raise InvalidArgumentError("build_id", build_id, "expected YYYYMMDDHHMMSS")
    try:
        return datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
    except ValueError as exc:
        raise InvalidArgumentError("build_id", build_id, str(exc)) from exc


def is_nightly_of(report: NormalizedReport, day: date) -> bool:
    """Whether *report* comes from the Nightly built on *day*."""
    if report.release_channel != "nightly":
        return False
    try:
        return build_to_datetime(report.build_id).date() == day
    except InvalidArgumentError:
        return False

