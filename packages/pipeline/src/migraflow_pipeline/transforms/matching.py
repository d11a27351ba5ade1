"""
transforms/matching.py — Join caller LocationRefs to upstream location series.

The caller's ids and the API's ids live in different namespaces, so series
are joined on location NAME. How names are compared is an explicit policy:

  exact             "Chiang Mai" == "Chiang Mai"
  case_insensitive  "chiang mai" == "Chiang Mai"            (default)
  normalized        "Chiang-Mai " == "chiang mai", accents and punctuation ignored

Usage:
    matcher = get_matcher("normalized")
    matched, unmatched = matcher.match(refs, response.data)
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable, Sequence
from typing import Protocol

from migraflow_shared.models import LocationMigrationData, LocationRef


class UnmatchedLocationError(LookupError):
    """Raised in strict mode when requested locations have no upstream series."""

    def __init__(self, locations: Sequence[LocationRef]) -> None:
        names = ", ".join(ref.name for ref in locations)
        super().__init__(f"No migration data matched location(s): {names}")
        self.locations = list(locations)


class LocationMatcher(Protocol):
    policy: str

    def key(self, name: str) -> str: ...

    def match(
        self,
        refs: Iterable[LocationRef],
        series: Iterable[LocationMigrationData],
    ) -> tuple[dict[str, LocationMigrationData], list[LocationRef]]: ...


class NameMatcher:
    """Base matcher: subclasses only decide how a name becomes a join key."""

    policy = "exact"

    def key(self, name: str) -> str:
        return name

    def match(
        self,
        refs: Iterable[LocationRef],
        series: Iterable[LocationMigrationData],
    ) -> tuple[dict[str, LocationMigrationData], list[LocationRef]]:
        """
        Returns:
            (LocationRef.id -> series, refs with no series). When several
            series share a key the first one wins.
        """
        index: dict[str, LocationMigrationData] = {}
        for item in series:
            index.setdefault(self.key(item.location.name), item)

        matched: dict[str, LocationMigrationData] = {}
        unmatched: list[LocationRef] = []
        for ref in refs:
            found = index.get(self.key(ref.name))
            if found is None:
                unmatched.append(ref)
            else:
                matched[ref.id] = found
        return matched, unmatched


class ExactMatcher(NameMatcher):
    policy = "exact"


class CaseInsensitiveMatcher(NameMatcher):
    policy = "case_insensitive"

    def key(self, name: str) -> str:
        return name.casefold()


class NormalizedMatcher(NameMatcher):
    policy = "normalized"

    _NON_ALNUM = re.compile(r"[\W_]+")

    def key(self, name: str) -> str:
        decomposed = unicodedata.normalize("NFKD", name)
        stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
        return self._NON_ALNUM.sub(" ", stripped.casefold()).strip()


_MATCHERS: dict[str, type[NameMatcher]] = {
    "exact": ExactMatcher,
    "case_insensitive": CaseInsensitiveMatcher,
    "normalized": NormalizedMatcher,
}


def get_matcher(policy: str = "case_insensitive") -> NameMatcher:
    try:
        return _MATCHERS[policy]()
    except KeyError:
        raise ValueError(
            f"Unknown match policy {policy!r}; expected one of {sorted(_MATCHERS)}"
        ) from None
