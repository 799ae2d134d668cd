import argparse
from http import HTTPStatus
from requests import get, post

from railfare.src.enums import BerthKind, CoachKind
from railfare.src.urls import (
    URL_AC_FARE_RANGE,
    URL_BERTH_FARE_RANGE,
    URL_DISTANCE_FARE_RANGE,
    URL_FARE_CALCULATE,
    URL_ROUTE_DISTANCE_BATCH,
)
from railfare.src.db import (
    BaseFare,
    Coach,
    DistanceFare,
    Station,
    Train,
    TrainComposition,
    TrainStop,
    TrainType,
    sessionMaker,
    engine,
    ORMbase,
)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    ORMbase.metadata.drop_all(engine)
    print("* All tables deleted")


def createTables():
    ORMbase.metadata.create_all(engine)
    print("* All tables created")


def initDB():
    session = sessionMaker()
    express = TrainType(name="Express")
    session.add(express)
    session.flush()

    stations = [
        Station(code="TVC", name="Thiruvananthapuram Central"),
        Station(code="KLM", name="Kollam Junction"),
        Station(code="ERS", name="Ernakulam Junction"),
        Station(code="TCR", name="Thrissur"),
    ]
    session.add_all(stations)
    session.flush()

    train = Train(number="12601", name="Malabar Express", train_type_id=express.id)
    emptyTrain = Train(number="12602", name="Unrouted Express", train_type_id=express.id)
    session.add_all([train, emptyTrain])
    session.flush()

    distances = [0, 65, 220, 295]
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

    acChair = Coach(name="C1", travel_class=2, kind=CoachKind.AIR_CONDITIONED)
    sleeper = Coach(name="S1", travel_class=3, kind=CoachKind.SLEEPER)
    sleeperAC = Coach(name="A1", travel_class=1, kind=CoachKind.SLEEPER_AC)
    general = Coach(name="GS", travel_class=4, kind=CoachKind.STANDARD)
    coaches = [acChair, sleeper, sleeperAC, general]
    session.add_all(coaches)
    session.flush()
    session.add_all(
        [
            TrainComposition(train_id=train.id, coach_id=coach.id, position=position)
            for position, coach in enumerate(coaches, 1)
        ]
    )

    baseFares = {1: 150, 2: 100, 3: 60, 4: 20}
    session.add_all(
        [
            BaseFare(train_type_id=express.id, travel_class=travelClass, fare_value=value)
            for travelClass, value in baseFares.items()
        ]
    )
    session.add_all(
        [
            DistanceFare(name=f"Class {travelClass} tariff", travel_class=travelClass)
            for travelClass in baseFares
        ]
    )

    session.commit()
    print("* Initialization completed")
    session.close()


def POST(URL: str, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080"

    session = sessionMaker()
    train = session.query(Train).filter(Train.number == "12601").first()
    stations = session.query(Station).order_by(Station.id.asc()).all()
    coaches = {coach.name: coach for coach in session.query(Coach).all()}
    distanceFares = session.query(DistanceFare).all()
    session.close()

    # Distance tiers, a flat first tier then per-km tiers up to an open range
    for distanceFare in distanceFares:
        tiers = [
            {"min_km": 0, "max_km": 50, "flat_rate": 25},
            {"min_km": 50, "max_km": 200, "fare_per_km": 0.5},
            {"min_km": 200, "fare_per_km": 0.4},
        ]
        for tier in tiers:
            POST(
                (BASE_URL + URL_DISTANCE_FARE_RANGE),
                data={"distance_fare_id": distanceFare.id, **tier},
            )
    print("* Created distance fare ranges")

    # AC surcharges
    for name in ("C1", "A1"):
        for acFare in (
            {"min_km": 0, "max_km": 150, "ac_fare": 40},
            {"min_km": 150, "ac_fare": 75},
        ):
            POST(
                (BASE_URL + URL_AC_FARE_RANGE),
                data={"coach_id": coaches[name].id, **acFare},
            )
    print("* Created AC fare ranges")

    # Berth fees
    for name in ("S1", "A1"):
        for berthKind in BerthKind:
            POST(
                (BASE_URL + URL_BERTH_FARE_RANGE),
                data={
                    "coach_id": coaches[name].id,
                    "berth_kind": berthKind,
                    "min_km": 0,
                    "fare_amount": 30,
                },
            )
    print("* Created berth fee ranges")

    # Materialize distances, the unrouted train is reported as an error
    response = POST(
        (BASE_URL + URL_ROUTE_DISTANCE_BATCH), status_code=HTTPStatus.MULTI_STATUS
    )
    print(f"* Materialized {response.json()['total_distances']} route distances")

    response = POST(
        (BASE_URL + URL_FARE_CALCULATE),
        status_code=HTTPStatus.OK,
        json={
            "train_id": train.id,
            "from_station_id": stations[0].id,
            "to_station_id": stations[-1].id,
            "coach_id": coaches["A1"].id,
            "berth_kind": BerthKind.LOWER,
        },
    )
    print(f"* Sample fare {response.json()}")
    assert get(BASE_URL + "/health").status_code == HTTPStatus.OK


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
