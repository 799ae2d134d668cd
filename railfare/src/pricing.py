"""
Fare composition pipeline.

A fare is the sum of up to four components:

- base fare of the train type and travel class
- distance fare of the travel class's active distance table
- AC surcharge, only for air-conditioned coaches
- berth fee, only for sleeper coaches

Every component is looked up for the travelled distance between the two
stations. Any missing piece fails the whole calculation, partial breakdowns
are never returned.
"""

import logging
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm.session import Session

from railfare.src import exceptions, getters
from railfare.src.db import Coach, Train, sessionMaker
from railfare.src.enums import BerthKind
from railfare.src.functions import roundAmount
from railfare.src.route_distance import RouteDistanceEngine
from railfare.src.tariff import TariffRangeStore

logger = logging.getLogger("Pricing")


class FareRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    train_id: int
    from_station_id: int
    to_station_id: int
    coach_id: int
    berth_kind: Optional[BerthKind] = None


class FareBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    distance_km: Decimal
    base_fare: Decimal
    distance_fare: Decimal
    ac_surcharge: Optional[Decimal] = None
    berth_fee: Optional[Decimal] = None
    total_fare: Decimal


def calculateFare(
    session: Session,
    request: FareRequest,
    tariffStore: Optional[TariffRangeStore] = None,
    routeEngine: Optional[RouteDistanceEngine] = None,
) -> FareBreakdown:
    """
    Price one journey.

    Args:
        session (Session): Read-only session used for every lookup.
        request (FareRequest): Train, boarding and alighting stations, coach and berth.
        tariffStore (TariffRangeStore | None): Store to read tariffs from,
            built on `session` when omitted.
        routeEngine (RouteDistanceEngine | None): Engine resolving the distance.

    Returns:
        FareBreakdown: Itemized fare. `ac_surcharge` and `berth_fee` are None
        when the coach has no AC or no berths.

    Raises:
        exceptions.InvalidRequest: If both stations are the same, or a sleeper
            coach is requested without a berth kind.
        exceptions.NotFound: If the train or the coach does not exist.
        exceptions.RouteNotFound: If the train has no stops.
        exceptions.StopNotOnRoute: If a station is not on the train's route.
        exceptions.CoachNotInTrain: If the coach is not attached to the train.
        exceptions.PricingNotConfigured: If any required tariff is missing.
    """
    if request.from_station_id == request.to_station_id:
        raise exceptions.InvalidRequest(
            "Boarding and alighting stations must be different"
        )
    if tariffStore is None:
        tariffStore = TariffRangeStore(session)
    if routeEngine is None:
        routeEngine = RouteDistanceEngine(sessionMaker)

    distanceKm = routeEngine.routeDistance(
        session, request.train_id, request.from_station_id, request.to_station_id
    )
    train = getters.train(session, request.train_id)
    if train is None:
        raise exceptions.NotFound(Train, request.train_id)

    coach = getters.coach(session, request.coach_id)
    if coach is None:
        raise exceptions.NotFound(Coach, request.coach_id)
    if not getters.isCoachInTrain(session, train.id, coach.id):
        raise exceptions.CoachNotInTrain(coach.id, train.id)

    baseFare = tariffStore.baseFare(train.train_type_id, coach.travel_class)
    distanceFareTable = tariffStore.distanceFareTable(coach.travel_class)
    distanceFare = tariffStore.distanceFare(distanceFareTable.id, distanceKm)
    acSurcharge = tariffStore.acSurcharge(coach.id, distanceKm)

    berthFee = None
    if coach.isSleeper:
        if request.berth_kind is None:
            raise exceptions.InvalidRequest("A berth kind is required for sleeper coaches")
        berthFee = tariffStore.berthFee(coach.id, request.berth_kind, distanceKm)

    components = [baseFare, distanceFare, acSurcharge, berthFee]
    totalFare = roundAmount(sum(c for c in components if c is not None))
    logger.debug(
        f"Train {train.id} {request.from_station_id} -> {request.to_station_id} "
        f"coach {coach.id}: {distanceKm} km, total {totalFare}"
    )
    return FareBreakdown(
        distance_km=distanceKm,
        base_fare=baseFare,
        distance_fare=distanceFare,
        ac_surcharge=acSurcharge,
        berth_fee=berthFee,
        total_fare=totalFare,
    )
