from decimal import Decimal
import pytest
from pydantic import ValidationError

from railfare.src import exceptions
from railfare.src.db import RouteDistance
from railfare.src.enums import BerthKind, TariffKind
from railfare.src.pricing import FareRequest, calculateFare
from railfare.src.route_distance import RouteDistanceEngine
from railfare.src.tariff import TariffRangeStore


class Untouchable:
    """Collaborator that fails the test when any lookup reaches it."""

    def __getattr__(self, name):
        raise AssertionError(f"unexpected lookup {name}")


def fareRequest(network, coachId, fromIndex=0, toIndex=2, **kwargs):
    return FareRequest(
        train_id=network.trainId,
        from_station_id=network.stationIds[fromIndex],
        to_station_id=network.stationIds[toIndex],
        coach_id=coachId,
        **kwargs,
    )


@pytest.fixture
def price(session, sessionMaker, scopeLock):
    def price(request):
        return calculateFare(
            session,
            request,
            tariffStore=TariffRangeStore(session, scopeLock),
            routeEngine=RouteDistanceEngine(sessionMaker),
        )

    return price


def test_ac_chair_fare(price, network):
    breakdown = price(fareRequest(network, network.acChairId))
    assert breakdown.distance_km == Decimal("250.00")
    assert breakdown.base_fare == Decimal("100.00")
    assert breakdown.distance_fare == Decimal("50.00")
    assert breakdown.ac_surcharge == Decimal("30.00")
    assert breakdown.berth_fee is None
    assert breakdown.total_fare == Decimal("180.00")



def test_class_two_ac_coach_over_250_km(price, session, scopeLock, network):
    store = TariffRangeStore(session, scopeLock)
    for tier in store.listRanges(TariffKind.DISTANCE, network.chairTableId):
        store.removeRange(TariffKind.DISTANCE, tier.id)
    store.addRange(TariffKind.DISTANCE, network.chairTableId, 80, 300, flat_rate=50)
    store.addRange(TariffKind.AC, network.noACTariffId, 100, 400, ac_fare=30)

    breakdown = price(fareRequest(network, network.noACTariffId))
    assert breakdown.model_dump() == {
        "distance_km": Decimal("250.00"),
        "base_fare": Decimal("100.00"),
        "distance_fare": Decimal("50.00"),
        "ac_surcharge": Decimal("30.00"),
        "berth_fee": None,
        "total_fare": Decimal("180.00"),
    }

def test_fare_is_direction_independent(price, network):
    forward = price(fareRequest(network, network.acChairId, 0, 2))
    backward = price(fareRequest(network, network.acChairId, 2, 0))
    assert forward == backward


def test_sleeper_fare_with_berth(price, network):
    breakdown = price(fareRequest(network, network.sleeperId, berth_kind=BerthKind.LOWER))
    assert breakdown.distance_fare == Decimal("50.00")
    assert breakdown.ac_surcharge is None
    assert breakdown.berth_fee == Decimal("25.00")
    assert breakdown.total_fare == Decimal("135.00")


def test_sleeper_requires_berth_kind(price, network):
    with pytest.raises(exceptions.InvalidRequest):
        price(fareRequest(network, network.sleeperId))


def test_berth_kind_ignored_for_seated_coach(price, network):
    breakdown = price(fareRequest(network, network.acChairId, berth_kind=BerthKind.UPPER))
    assert breakdown.berth_fee is None
    assert breakdown.total_fare == Decimal("180.00")


def test_missing_ac_tariff(price, network):
    with pytest.raises(exceptions.PricingNotConfigured) as e:
        price(fareRequest(network, network.noACTariffId))
    assert e.value.component == "AC fare"
    assert e.value.status_code == 422


def test_missing_distance_tariff(price, network):
    with pytest.raises(exceptions.PricingNotConfigured) as e:
        price(fareRequest(network, network.generalId))
    assert e.value.component == "distance fare"


def test_missing_berth_tariff(price, network):
    with pytest.raises(exceptions.PricingNotConfigured) as e:
        price(fareRequest(network, network.sleeperId, berth_kind=BerthKind.SINGLE))
    assert e.value.component == "berth fee"


def test_self_loop_rejected_before_lookups(session, network):
    request = fareRequest(network, network.acChairId, 1, 1)
    with pytest.raises(exceptions.InvalidRequest):
        calculateFare(session, request, Untouchable(), Untouchable())


def test_coach_not_in_train(price, network):
    with pytest.raises(exceptions.CoachNotInTrain):
        price(fareRequest(network, network.orphanId))


def test_unknown_coach(price, network):
    with pytest.raises(exceptions.NotFound):
        price(fareRequest(network, 9999))


def test_station_off_route(price, network):
    with pytest.raises(exceptions.StopNotOnRoute):
        price(fareRequest(network, network.acChairId, 0, 4))


def test_unknown_train(price, network):
    request = FareRequest(
        train_id=9999,
        from_station_id=network.stationIds[0],
        to_station_id=network.stationIds[1],
        coach_id=network.acChairId,
    )
    with pytest.raises(exceptions.NotFound):
        price(request)


def test_materialized_distance_is_used(price, session, network):
    first, third = network.stationIds[0], network.stationIds[2]
    session.add(
        RouteDistance(
            train_id=network.trainId,
            from_station_id=first,
            to_station_id=third,
            distance_km=310,
        )
    )
    session.commit()
    breakdown = price(fareRequest(network, network.acChairId))
    assert breakdown.distance_km == Decimal("310.00")
    assert breakdown.ac_surcharge == Decimal("45.00")
    assert breakdown.total_fare == Decimal("195.00")


def test_fare_request_is_immutable(network):
    request = fareRequest(network, network.acChairId)
    with pytest.raises(ValidationError):
        request.coach_id = 1
