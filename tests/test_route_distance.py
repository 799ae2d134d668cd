import time
from decimal import Decimal
from types import SimpleNamespace
import pytest

from railfare.src import exceptions
from railfare.src.db import RouteDistance, Station, TrainStop, TrainType
from railfare.src.enums import BatchStatus
from railfare.src.route_distance import BatchResult, RouteDistanceEngine, pairwiseDistances
from tests.conftest import addTrain


@pytest.fixture
def engine(sessionMaker):
    return RouteDistanceEngine(sessionMaker, maxWorkers=1)


def stop(stationId, distance):
    return SimpleNamespace(station_id=stationId, distance_from_origin=Decimal(distance))


def test_pairwise_distances():
    stops = [stop(1, 0), stop(2, 120), stop(3, 250), stop(4, 400)]
    pairs = pairwiseDistances(stops)
    assert len(pairs) == 6
    assert (1, 3, Decimal("250.00")) in pairs
    assert (3, 4, Decimal("150.00")) in pairs
    assert pairwiseDistances(stops[:1]) == []


def test_distance_between_is_symmetric(engine, session, network):
    first, _, third, fourth, _ = network.stationIds
    forward = engine.distanceBetween(session, network.trainId, first, third)
    backward = engine.distanceBetween(session, network.trainId, third, first)
    assert forward == backward == Decimal("250.00")
    assert engine.distanceBetween(session, network.trainId, third, fourth) == 150


def test_distance_between_errors(engine, session, network):
    first, _, _, _, offRoute = network.stationIds
    with pytest.raises(exceptions.NotFound):
        engine.distanceBetween(session, 9999, first, offRoute)
    with pytest.raises(exceptions.StopNotOnRoute):
        engine.distanceBetween(session, network.trainId, first, offRoute)

    emptyTrain = addTrain(session, "00000", network.trainTypeId, [], [])
    session.commit()
    with pytest.raises(exceptions.RouteNotFound):
        engine.distanceBetween(session, emptyTrain.id, first, offRoute)



def test_inactive_stop_left_out_of_route(engine, session, network):
    first, second, third = network.stationIds[:3]
    session.query(TrainStop).filter(
        TrainStop.train_id == network.trainId, TrainStop.station_id == second
    ).update({TrainStop.is_active: False})
    session.commit()

    with pytest.raises(exceptions.StopNotOnRoute):
        engine.distanceBetween(session, network.trainId, first, second)
    assert engine.distanceBetween(session, network.trainId, first, third) == 250
    # three active stops give three pairs
    assert engine.materializeForTrain(network.trainId) == {"calculated": 3, "saved": 6}

def test_route_distance_prefers_cache(engine, session, network):
    first, second = network.stationIds[:2]
    assert engine.routeDistance(session, network.trainId, first, second) == 120

    session.add(
        RouteDistance(
            train_id=network.trainId,
            from_station_id=second,
            to_station_id=first,
            distance_km=118,
        )
    )
    session.commit()
    assert engine.routeDistance(session, network.trainId, first, second) == 118


def test_materialize_for_train(engine, session, network):
    assert engine.materializeForTrain(network.trainId) == {"calculated": 6, "saved": 12}
    # rebuilding replaces the previous rows
    assert engine.materializeForTrain(network.trainId) == {"calculated": 6, "saved": 12}

    rows = session.query(RouteDistance).filter(RouteDistance.train_id == network.trainId)
    assert rows.count() == 12
    first, _, third = network.stationIds[:3]
    assert engine.routeDistance(session, network.trainId, third, first) == 250


def test_materialize_requires_two_stops(engine, session, network):
    station = session.query(Station).first()
    lonely = addTrain(session, "11111", network.trainTypeId, [0], [station])
    session.commit()
    with pytest.raises(exceptions.InsufficientStops):
        engine.materializeForTrain(lonely.id)
    with pytest.raises(exceptions.NotFound):
        engine.materializeForTrain(9999)
    assert session.query(RouteDistance).count() == 0


def test_materialize_all_isolates_failures(engine, session, network):
    stations = session.query(Station).order_by(Station.id).all()
    shortTrain = addTrain(session, "22222", network.trainTypeId, [0, 40, 90], stations[2:5])
    lonely = addTrain(session, "33333", network.trainTypeId, [0], stations[:1])
    empty = addTrain(session, "44444", network.trainTypeId, [], [])
    addTrain(session, "55555", network.trainTypeId, [0, 10], stations[:2], isActive=False)
    session.commit()

    result = engine.materializeAll()

    assert result.processed == 4
    assert result.skipped == 0
    assert result.totalDistances == 12 + 6
    assert result.status == BatchStatus.COMPLETED_WITH_ERRORS
    assert sorted(error["train_id"] for error in result.errors) == [lonely.id, empty.id]
    assert all("at least 2" in error["reason"] for error in result.errors)

    saved = session.query(RouteDistance).filter(RouteDistance.train_id == shortTrain.id)
    assert saved.count() == 6


def test_materialize_all_success(engine, network):
    result = engine.materializeAll()
    assert result.status == BatchStatus.SUCCESS
    assert result.processed == 1
    assert result.errors == []


def test_unexpected_worker_error_reported(sessionMaker, network):
    class BrokenEngine(RouteDistanceEngine):
        def materializeForTrain(self, trainId):
            raise RuntimeError("connection reset")

    result = BrokenEngine(sessionMaker, maxWorkers=2).materializeAll()
    assert result.errors == [{"train_id": network.trainId, "reason": "connection reset"}]


def test_deadline_skips_trains_not_started(sessionMaker):
    session = sessionMaker()
    trainType = TrainType(name="Passenger")
    session.add(trainType)
    session.flush()
    for number in range(3):
        addTrain(session, f"9000{number}", trainType.id, [], [])
    session.commit()
    session.close()

    class SlowEngine(RouteDistanceEngine):
        def materializeForTrain(self, trainId):
            time.sleep(0.3)
            return {"calculated": 1, "saved": 2}

    result = SlowEngine(sessionMaker, maxWorkers=1).materializeAll(deadline=0.05)
    assert result.processed == 1
    assert result.skipped == 2
    assert result.totalDistances == 2
    assert result.status == BatchStatus.SUCCESS


def test_batch_result_accumulates():
    result = BatchResult()
    result.addSuccess(4)
    result.addError(7, "boom")
    assert result.processed == 2
    assert result.totalDistances == 4
    assert result.status == BatchStatus.COMPLETED_WITH_ERRORS
