"""Accept/reject predicate over (product, version) pairs."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Tuple

from .exceptions import InvalidArgumentError
from .models import version_key

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]


class Filter:
    """Decide which (product, version) pairs are shown.

    Pairs that were never ``set`` are accepted. A filter handed to a run is
    never mutated afterwards: UI changes build a new one with
    :meth:`from_selection`.
    """

    def __init__(self) -> None:
        self._by_product: Dict[str, Dict[str, bool]] = {}

    def set(self, product: str, version: str, accept: bool) -> None:
        _check(product, version)
        logger.debug("Filter %s %s -> %s", product, version, accept)
        self._by_product.setdefault(product, {})[version] = bool(accept)

    def get(self, product: str, version: str) -> bool:
        _check(product, version)
        return self._by_product.get(product, {}).get(version, True)

    def get_accepts(self) -> List[Pair]:
        return self._get_all(True)

    def get_rejects(self) -> List[Pair]:
        return self._get_all(False)

    def accepted_keys(self) -> List[str]:
        """``"product version"`` keys of explicitly accepted pairs."""
        return [version_key(p, v) for p, v in self.get_accepts()]

    def _get_all(self, accept: bool) -> List[Pair]:
        return [
            (product, version)
            for product, versions in self._by_product.items()
            for version, value in versions.items()
            if value == accept
        ]

    def __repr__(self) -> str:
        return f"Filter(accepts={self.get_accepts()!r}, rejects={self.get_rejects()!r})"

    @classmethod
    def from_selection(cls, versions: Iterable[Pair], selected: Iterable[str]) -> "Filter":
        """Build a filter from the versions on display and the checked keys.

        Every displayed pair gets an explicit entry: accepted when its
        ``"product version"`` key is in *selected*, rejected otherwise.
        """
        chosen = set(selected)
        flt = cls()
        for product, version in versions:
            flt.set(product, version, version_key(product, version) in chosen)
        return flt


def _check(product: str, version: str) -> None:
    if not product:
        raise InvalidArgumentError("product", product, "expected a product")
    if not version:
        raise InvalidArgumentError("version", version, "expected a version")
