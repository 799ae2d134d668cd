"""
Distance intervals and per-scope non-overlapping interval sets.

All ranges are half-open: a `Bounded` range covers `minKm <= km < maxKm` and an
`OpenEnded` range covers every `km >= minKm`. The same convention is used when
checking a new range for overlaps and when looking up the range for a distance,
so adjacent tiers such as [0, 100) and [100, 200) can coexist and a distance of
exactly 100 km is priced by the upper tier.
"""

from dataclasses import dataclass
from decimal import Decimal
from itertools import count
from threading import Lock, RLock
from typing import Any, Dict, Hashable, List, Optional, Tuple, Union

from railfare.src import exceptions


Number = Union[int, float, str, Decimal]


def toDecimal(value: Number) -> Decimal:
    """Convert a number to Decimal without going through binary float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class Interval:
    """
    Base of the two range variants, `Bounded` and `OpenEnded`.

    Only the variants can be built. Both reject a negative lower bound.
    """

    minKm: Decimal

    def __post_init__(self):
        if type(self) is Interval:
            raise TypeError("Interval is abstract, build a Bounded or OpenEnded range")
        if self.minKm < 0:
            raise exceptions.InvalidRange("min_km must not be negative")

    @property
    def isOpenEnded(self) -> bool:
        return self.maxKm is None

    def contains(self, km: Number) -> bool:
        km = toDecimal(km)
        if km < self.minKm:
            return False
        return self.maxKm is None or km < self.maxKm

    def overlaps(self, other: "Interval") -> bool:
        """
        Check whether two intervals share at least one point.

        Covers the three rejection cases of a tariff insert: the candidate
        starting inside an existing range, ending inside one, or fully
        containing one.
        """
        if self.maxKm is not None and other.minKm >= self.maxKm:
            return False
        if other.maxKm is not None and self.minKm >= other.maxKm:
            return False
        return True


@dataclass(frozen=True)
class Bounded(Interval):
    maxKm: Decimal

    def __post_init__(self):
        super().__post_init__()
        if self.maxKm <= self.minKm:
            raise exceptions.InvalidRange("max_km must be greater than min_km")

    def __str__(self):
        return f"[{self.minKm}, {self.maxKm})"


@dataclass(frozen=True)
class OpenEnded(Interval):
    @property
    def maxKm(self) -> Optional[Decimal]:
        return None

    def __str__(self):
        return f"[{self.minKm}, ∞)"


def makeInterval(minKm: Number, maxKm: Optional[Number] = None) -> Interval:
    """
    Build the interval variant matching the given bounds.

    Raises:
        exceptions.InvalidRange: If min_km is negative or max_km <= min_km.
    """
    if maxKm is None:
        return OpenEnded(toDecimal(minKm))
    return Bounded(toDecimal(minKm), toDecimal(maxKm))


Entry = Tuple[Hashable, Interval, Any]


class IntervalSet:
    """
    Collection of intervals grouped by owner scope.

    Inside one scope no two intervals share a point. Every access to a scope,
    read or write, goes through the scope's lock. Reads work on a snapshot
    taken under that lock, so they never see a scope mid-insert.
    """

    def __init__(self):
        self._scopes: Dict[Hashable, Dict[Hashable, Tuple[Interval, Any]]] = {}
        self._locks: Dict[Hashable, RLock] = {}
        self._registryLock = Lock()
        self._ids = count(1)

    def _lock(self, scope: Hashable) -> RLock:
        with self._registryLock:
            if scope not in self._locks:
                self._locks[scope] = RLock()
            return self._locks[scope]

    def _snapshot(self, scope: Hashable) -> List[Entry]:
        with self._lock(scope):
            return [
                (rangeId, interval, payload)
                for rangeId, (interval, payload) in self._scopes.get(scope, {}).items()
            ]

    def findOverlap(self, scope: Hashable, interval: Interval) -> Optional[Entry]:
        for entry in self._snapshot(scope):
            if entry[1].overlaps(interval):
                return entry
        return None

    def insert(
        self,
        scope: Hashable,
        interval: Interval,
        payload: Any = None,
        rangeId: Optional[Hashable] = None,
    ) -> Hashable:
        """
        Store an interval in a scope after checking it against every stored one.

        Args:
            scope: Owner of the range (tariff table id, coach id, ...).
            interval: Candidate range.
            payload: Value priced by the range.
            rangeId: Identifier to store the range under, generated when omitted.

        Returns:
            The identifier of the stored range.

        Raises:
            exceptions.RangeOverlap: If the candidate shares a point with a stored range.
                The scope is left unchanged.
        """
        with self._lock(scope):
            conflict = self.findOverlap(scope, interval)
            if conflict is not None:
                _, existing, _ = conflict
                raise exceptions.RangeOverlap(scope, existing.minKm, existing.maxKm)
            if rangeId is None:
                rangeId = next(self._ids)
            self._scopes.setdefault(scope, {})[rangeId] = (interval, payload)
            return rangeId

    def lookup(self, scope: Hashable, km: Number) -> Optional[Entry]:
        """Return the single range of the scope containing the distance, if any."""
        for entry in self._snapshot(scope):
            if entry[1].contains(km):
                return entry
        return None

    def remove(self, scope: Hashable, rangeId: Hashable) -> None:
        with self._lock(scope):
            self._scopes.get(scope, {}).pop(rangeId, None)

    def ranges(self, scope: Hashable) -> List[Entry]:
        return sorted(self._snapshot(scope), key=lambda entry: entry[1].minKm)
