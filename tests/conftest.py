from contextlib import contextmanager
from decimal import Decimal
from threading import Lock
from types import SimpleNamespace
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from railfare.src.db import (
    ORMbase,
    BaseFare,
    BerthFare,
    Coach,
    CoachACFare,
    DistanceFare,
    DistanceFareRange,
    Station,
    Train,
    TrainComposition,
    TrainStop,
    TrainType,
)
from railfare.src.enums import BerthKind, CoachKind


# Capture OpenObserve events for all tests
@pytest.fixture(autouse=True)
def events(monkeypatch):
    """Replace the OpenObserve sink with an in-memory list."""
    captured = []
    monkeypatch.setattr("railfare.src.openobserve.logEvent", captured.append)
    return captured


@pytest.fixture
def sessionMaker():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    ORMbase.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    ORMbase.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(sessionMaker):
    session = sessionMaker()
    yield session
    session.close()


@pytest.fixture
def scopeLock():
    """Process-local stand-in for the Redis scope mutex, records every key it locks."""
    locks = {}
    registry = Lock()

    @contextmanager
    def lock(tableName, pk=None):
        with registry:
            mutex = locks.setdefault((tableName, pk), Lock())
        with mutex:
            yield mutex

    lock.keys = locks
    return lock


def addTrain(session, number, trainTypeId, distances, stations, isActive=True):
    train = Train(
        number=number, name=f"Train {number}", train_type_id=trainTypeId, is_active=isActive
    )
    session.add(train)
    session.flush()
    session.add_all(
        [
            TrainStop(
                train_id=train.id,
                station_id=station.id,
                stop_order=order,
                distance_from_origin=distance,
            )
            for order, (station, distance) in enumerate(zip(stations, distances), 1)
        ]
    )
    session.flush()
    return train


@pytest.fixture
def network(sessionMaker):
    """
    One express train over four stations (0, 120, 250, 400 km) with:

    - `acChair`: AC class 2, AC surcharge 30 below 300 km and 45 from 300 km
    - `sleeper`: sleeper class 3, lower berth fee 25
    - `general`: standard class 4, no distance table configured
    - `noACTariff`: AC class 2 without AC surcharge ranges
    - `orphan`: AC class 2, not attached to the train

    Class 2 distance tiers are flat, 30 below 200 km and 50 from 200 km.
    Class 3 distance tiers charge 0.20 per km.
    """
    session = sessionMaker()
    express = TrainType(name="Express")
    session.add(express)
    session.flush()

    stations = [Station(code=f"ST{i}", name=f"Station {i}") for i in range(1, 6)]
    session.add_all(stations)
    session.flush()
    train = addTrain(session, "12601", express.id, [0, 120, 250, 400], stations[:4])

    acChair = Coach(name="C1", travel_class=2, kind=CoachKind.AIR_CONDITIONED)
    sleeper = Coach(name="S1", travel_class=3, kind=CoachKind.SLEEPER)
    general = Coach(name="GS", travel_class=4, kind=CoachKind.STANDARD)
    noACTariff = Coach(name="C2", travel_class=2, kind=CoachKind.AIR_CONDITIONED)
    orphan = Coach(name="C9", travel_class=2, kind=CoachKind.AIR_CONDITIONED)
    session.add_all([acChair, sleeper, general, noACTariff, orphan])
    session.flush()
    session.add_all(
        [
            TrainComposition(train_id=train.id, coach_id=coach.id, position=position)
            for position, coach in enumerate([acChair, sleeper, general, noACTariff], 1)
        ]
    )

    session.add_all(
        [
            BaseFare(train_type_id=express.id, travel_class=2, fare_value=100),
            BaseFare(train_type_id=express.id, travel_class=3, fare_value=60),
            BaseFare(train_type_id=express.id, travel_class=4, fare_value=20),
        ]
    )
    chairTable = DistanceFare(name="Chair car", travel_class=2)
    sleeperTable = DistanceFare(name="Sleeper", travel_class=3)
    session.add_all([chairTable, sleeperTable])
    session.flush()
    session.add_all(
        [
            DistanceFareRange(
                distance_fare_id=chairTable.id, min_km=0, max_km=200, flat_rate=30
            ),
            DistanceFareRange(distance_fare_id=chairTable.id, min_km=200, flat_rate=50),
            DistanceFareRange(
                distance_fare_id=sleeperTable.id, min_km=0, fare_per_km=Decimal("0.20")
            ),
            CoachACFare(coach_id=acChair.id, min_km=0, max_km=300, ac_fare=30),
            CoachACFare(coach_id=acChair.id, min_km=300, ac_fare=45),
            BerthFare(
                coach_id=sleeper.id, berth_kind=BerthKind.LOWER, min_km=0, fare_amount=25
            ),
        ]
    )
    session.commit()

    ids = SimpleNamespace(
        trainTypeId=express.id,
        trainId=train.id,
        stationIds=[station.id for station in stations],
        acChairId=acChair.id,
        sleeperId=sleeper.id,
        generalId=general.id,
        noACTariffId=noACTariff.id,
        orphanId=orphan.id,
        chairTableId=chairTable.id,
        sleeperTableId=sleeperTable.id,
    )
    session.close()
    return ids
