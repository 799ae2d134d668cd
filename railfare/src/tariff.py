"""
Range tariff store.

Holds the distance-tiered price tables used by the fare pipeline:

- distance fare ranges, scoped per distance fare table (one table per travel class)
- AC surcharge ranges, scoped per coach
- berth fee ranges, scoped per coach and berth kind

plus the flat base fare of a train type and travel class.

Every insert re-validates the non-overlap invariant of its scope while holding
the scope's mutex, so two concurrent inserts can never both pass the check.
"""

import logging
from decimal import Decimal
from typing import Callable, ContextManager, Dict, Hashable, List, Optional
from sqlalchemy.orm.session import Session

from railfare.src import exceptions, getters
from railfare.src.constants import MAX_TARIFF_KM
from railfare.src.db import BerthFare, Coach, CoachACFare, DistanceFare, DistanceFareRange
from railfare.src.enums import BerthKind, TariffKind
from railfare.src.functions import roundAmount
from railfare.src.interval import IntervalSet, Number, makeInterval, toDecimal
from railfare.src.redis import scopeLock

logger = logging.getLogger("Tariff")

RANGE_MODELS = {
    TariffKind.DISTANCE: DistanceFareRange,
    TariffKind.AC: CoachACFare,
    TariffKind.BERTH: BerthFare,
}

# Value columns accepted per range kind
VALUE_COLUMNS = {
    TariffKind.DISTANCE: (DistanceFareRange.fare_per_km.key, DistanceFareRange.flat_rate.key),
    TariffKind.AC: (CoachACFare.ac_fare.key,),
    TariffKind.BERTH: (BerthFare.fare_amount.key,),
}

ScopeLock = Callable[[str, Hashable], ContextManager]


def scopeKey(kind: TariffKind, scopeId) -> str:
    """Lock key of a scope, berth scopes are (coach_id, berth_kind) pairs."""
    if kind == TariffKind.BERTH:
        coachId, berthKind = scopeId
        return f"{coachId}:{int(berthKind)}"
    return str(scopeId)


class TariffRangeStore:
    def __init__(self, session: Session, scopeLock: ScopeLock = scopeLock):
        self.session = session
        self.scopeLock = scopeLock

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def baseFare(self, trainTypeId: int, travelClass: int) -> Decimal:
        baseFare = getters.baseFare(self.session, trainTypeId, travelClass)
        if baseFare is None:
            raise exceptions.PricingNotConfigured("base fare")
        return roundAmount(baseFare.fare_value)

    def distanceFareTable(self, travelClass: int) -> DistanceFare:
        distanceFare = getters.distanceFareTable(self.session, travelClass)
        if distanceFare is None:
            raise exceptions.PricingNotConfigured("distance fare")
        return distanceFare

    def distanceFare(self, distanceFareTableId: int, km: Number) -> Decimal:
        """
        Price a distance with the tiers of a distance fare table.

        A per-km tier charges `km * fare_per_km`, a flat tier charges `flat_rate`.
        """
        match = self.lookup(TariffKind.DISTANCE, distanceFareTableId, km)
        if match is None:
            raise exceptions.PricingNotConfigured("distance fare")
        if match.fare_per_km is not None:
            return roundAmount(toDecimal(km) * match.fare_per_km)
        return roundAmount(match.flat_rate)

    def acSurcharge(self, coachId: int, km: Number) -> Optional[Decimal]:
        """Return the AC surcharge, or None when the coach is not air-conditioned."""
        coach = self._coach(coachId)
        if not coach.hasAC:
            return None
        match = self.lookup(TariffKind.AC, coachId, km)
        if match is None:
            raise exceptions.PricingNotConfigured("AC fare")
        return roundAmount(match.ac_fare)

    def berthFee(self, coachId: int, berthKind: BerthKind, km: Number) -> Decimal:
        match = self.lookup(TariffKind.BERTH, (coachId, berthKind), km)
        if match is None:
            raise exceptions.PricingNotConfigured("berth fee")
        return roundAmount(match.fare_amount)

    def lookup(self, kind: TariffKind, scopeId, km: Number):
        """Return the range row of a scope containing the distance, or None."""
        intervals = self._intervalSet(scopeId, self.listRanges(kind, scopeId))
        entry = intervals.lookup(scopeId, km)
        return None if entry is None else entry[2]

    def listRanges(self, kind: TariffKind, scopeId) -> List:
        if kind == TariffKind.DISTANCE:
            return getters.distanceFareRanges(self.session, scopeId)
        if kind == TariffKind.AC:
            return getters.acFareRanges(self.session, scopeId)
        coachId, berthKind = scopeId
        return getters.berthFareRanges(self.session, coachId, berthKind)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def addRange(
        self,
        kind: TariffKind,
        scopeId,
        minKm: Number,
        maxKm: Optional[Number] = None,
        **values: Number,
    ):
        """
        Insert a tariff range after checking it against the whole scope.

        Args:
            kind (TariffKind): Which range table to insert into.
            scopeId: Distance fare table id, coach id, or (coach id, berth kind).
            minKm (Number): Inclusive lower bound.
            maxKm (Number | None): Exclusive upper bound, None for an open range.
            **values: Price columns of the range kind
                (`fare_per_km` or `flat_rate`, `ac_fare`, `fare_amount`).

        Returns:
            The committed range row.

        Raises:
            exceptions.InvalidRange: If the bounds are invalid.
            exceptions.InvalidRequest: If the price columns are invalid.
            exceptions.NotFound: If the scope owner does not exist.
            exceptions.RangeOverlap: If the range overlaps an existing one.
            exceptions.LockAcquireTimeout: If the scope stays locked too long.
        """
        candidate = self._candidate(minKm, maxKm)
        values = self._validateValues(kind, values)
        self._validateScope(kind, scopeId)

        model = RANGE_MODELS[kind]
        with self.scopeLock(model.__tablename__, scopeKey(kind, scopeId)):
            try:
                intervals = self._intervalSet(
                    scopeId, self.listRanges(kind, scopeId)
                )
                intervals.insert(scopeId, candidate)
                row = model(
                    **self._scopeColumns(kind, scopeId),
                    min_km=candidate.minKm,
                    max_km=candidate.maxKm,
                    **values,
                )
                self.session.add(row)
                self.session.commit()
                self.session.refresh(row)
            except Exception:
                self.session.rollback()
                raise
        logger.info(f"Added {kind.name} range {candidate} to scope {scopeId}")
        return row

    def updateRange(
        self,
        kind: TariffKind,
        rangeId: int,
        minKm: Optional[Number] = None,
        maxKm: Optional[Number] = None,
        openEnded: bool = False,
        **values: Optional[Number],
    ):
        """
        Change the bounds or the price of an existing range.

        The edited range is checked against every other range of its scope
        under the scope's mutex, exactly like a fresh insert. On rejection the
        stored row is left as it was.

        Args:
            kind (TariffKind): Which range table the row lives in.
            rangeId (int): Row to edit.
            minKm (Number | None): New lower bound, None keeps the current one.
            maxKm (Number | None): New upper bound, None keeps the current one.
            openEnded (bool): Drop the upper bound, turning the row into an open range.
            **values: New price columns, None values are ignored. Setting one
                distance price column clears the other.

        Returns:
            The committed range row.

        Raises:
            exceptions.NotFound: If the range does not exist.
            exceptions.InvalidRange: If the new bounds are invalid.
            exceptions.InvalidRequest: If the price columns are invalid.
            exceptions.RangeOverlap: If the new bounds overlap another range of the scope.
            exceptions.LockAcquireTimeout: If the scope stays locked too long.
        """
        model = RANGE_MODELS[kind]
        row = self.session.query(model).filter(model.id == rangeId).first()
        if row is None:
            raise exceptions.NotFound(model, rangeId)

        if openEnded and maxKm is not None:
            raise exceptions.InvalidRange("An open range can not have max_km")
        newMinKm = row.min_km if minKm is None else minKm
        newMaxKm = None if openEnded else (row.max_km if maxKm is None else maxKm)
        candidate = self._candidate(newMinKm, newMaxKm)

        given = {key: value for key, value in values.items() if value is not None}
        newValues = {}
        if given:
            newValues = dict.fromkeys(VALUE_COLUMNS[kind])
            newValues.update(self._validateValues(kind, given))

        scopeId = self._scopeOf(kind, row)
        with self.scopeLock(model.__tablename__, scopeKey(kind, scopeId)):
            try:
                others = [
                    other
                    for other in self.listRanges(kind, scopeId)
                    if other.id != rangeId
                ]
                intervals = self._intervalSet(scopeId, others)
                intervals.insert(scopeId, candidate, row, rangeId)
                row.min_km = candidate.minKm
                row.max_km = candidate.maxKm
                for column, value in newValues.items():
                    setattr(row, column, value)
                if self.session.is_modified(row):
                    self.session.commit()
                    self.session.refresh(row)
            except Exception:
                self.session.rollback()
                raise
        logger.info(f"Updated {kind.name} range {rangeId} to {candidate} in scope {scopeId}")
        return row

    def removeRange(self, kind: TariffKind, rangeId: int):
        """Delete a range by id. Removing can never create an overlap."""
        model = RANGE_MODELS[kind]
        row = self.session.query(model).filter(model.id == rangeId).first()
        if row is not None:
            self.session.delete(row)
            self.session.commit()
            logger.info(f"Removed {kind.name} range {rangeId}")
        return row

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _coach(self, coachId: int) -> Coach:
        coach = getters.coach(self.session, coachId)
        if coach is None:
            raise exceptions.NotFound(Coach, coachId)
        return coach

    def _validateScope(self, kind: TariffKind, scopeId) -> None:
        if kind == TariffKind.DISTANCE:
            exists = (
                self.session.query(DistanceFare)
                .filter(DistanceFare.id == scopeId)
                .first()
            )
            if exists is None:
                raise exceptions.NotFound(DistanceFare, scopeId)
        elif kind == TariffKind.AC:
            self._coach(scopeId)
        else:
            coachId, berthKind = scopeId
            if berthKind not in set(BerthKind):
                raise exceptions.InvalidRequest(f"Unknown berth kind {berthKind}")
            self._coach(coachId)

    @staticmethod
    def _candidate(minKm: Number, maxKm: Optional[Number]):
        candidate = makeInterval(roundAmount(minKm), roundAmount(maxKm))
        for bound in (candidate.minKm, candidate.maxKm):
            if bound is not None and bound > MAX_TARIFF_KM:
                raise exceptions.InvalidRange(
                    f"Range boundary {bound} exceeds {MAX_TARIFF_KM} km"
                )
        return candidate

    @staticmethod
    def _validateValues(kind: TariffKind, values: Dict[str, Number]) -> Dict[str, Decimal]:
        allowed = VALUE_COLUMNS[kind]
        unexpected = set(values) - set(allowed)
        if unexpected:
            raise exceptions.InvalidRequest(
                f"Unexpected price column(s) {', '.join(sorted(unexpected))}"
            )
        given = {
            key: roundAmount(value) for key, value in values.items() if value is not None
        }
        if any(value < 0 for value in given.values()):
            raise exceptions.InvalidRequest("Fare values must not be negative")
        if kind == TariffKind.DISTANCE:
            if len(given) != 1:
                raise exceptions.InvalidRequest(
                    "Exactly one of fare_per_km or flat_rate must be provided"
                )
        elif len(given) != 1:
            raise exceptions.InvalidRequest(f"{allowed[0]} must be provided")
        return given

    @staticmethod
    def _scopeColumns(kind: TariffKind, scopeId) -> Dict[str, int]:
        if kind == TariffKind.DISTANCE:
            return {DistanceFareRange.distance_fare_id.key: scopeId}
        if kind == TariffKind.AC:
            return {CoachACFare.coach_id.key: scopeId}
        coachId, berthKind = scopeId
        return {BerthFare.coach_id.key: coachId, BerthFare.berth_kind.key: int(berthKind)}

    @staticmethod
    def _scopeOf(kind: TariffKind, row):
        """Scope id of a stored range row, the inverse of `_scopeColumns`."""
        if kind == TariffKind.DISTANCE:
            return row.distance_fare_id
        if kind == TariffKind.AC:
            return row.coach_id
        return (row.coach_id, BerthKind(row.berth_kind))

    @staticmethod
    def _intervalSet(scopeId, rows: List) -> IntervalSet:
        """Load the stored rows of a scope into an interval set keyed by row id."""
        intervals = IntervalSet()
        for row in rows:
            intervals.insert(scopeId, makeInterval(row.min_km, row.max_km), row, row.id)
        return intervals
