from decimal import Decimal
from typing import Iterator, List, Optional
from fastapi import Request
from sqlalchemy.orm.session import Session

from railfare.src import schemas
from railfare.src.db import (
    BaseFare,
    BerthFare,
    Coach,
    CoachACFare,
    DistanceFare,
    DistanceFareRange,
    RouteDistance,
    Train,
    TrainComposition,
    TrainStop,
    sessionMaker,
)
from railfare.src.redis import scopeLock


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------
def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing the HTTP method and path.
    """
    return schemas.RequestInfo(method=request.method, path=request.url.path)


def dbSession() -> Iterator[Session]:
    """Open one session per request and always close it."""
    session = sessionMaker()
    try:
        yield session
    finally:
        session.close()


def dbSessionMaker():
    """Session factory handed to components that open their own sessions."""
    return sessionMaker


def scopeLocker():
    """Context manager factory serializing tariff inserts per scope."""
    return scopeLock


# ---------------------------------------------------------------------------
# Data access
# ---------------------------------------------------------------------------
def train(session: Session, train_id: int) -> Optional[Train]:
    return session.query(Train).filter(Train.id == train_id).first()


def coach(session: Session, coach_id: int) -> Optional[Coach]:
    return session.query(Coach).filter(Coach.id == coach_id).first()


def stops(session: Session, train_id: int) -> List[TrainStop]:
    """Fetch the active stops of a train, ordered by stop position."""
    return (
        session.query(TrainStop)
        .filter(TrainStop.train_id == train_id, TrainStop.is_active == True)
        .order_by(TrainStop.stop_order.asc())
        .all()
    )


def activeTrainIds(session: Session) -> List[int]:
    rows = (
        session.query(Train.id)
        .filter(Train.is_active == True)
        .order_by(Train.id.asc())
        .all()
    )
    return [row.id for row in rows]


def isCoachInTrain(session: Session, train_id: int, coach_id: int) -> bool:
    composition = (
        session.query(TrainComposition)
        .filter(
            TrainComposition.train_id == train_id,
            TrainComposition.coach_id == coach_id,
            TrainComposition.is_active == True,
        )
        .first()
    )
    return composition is not None


def baseFare(
    session: Session, train_type_id: int, travel_class: int
) -> Optional[BaseFare]:
    return (
        session.query(BaseFare)
        .filter(
            BaseFare.train_type_id == train_type_id,
            BaseFare.travel_class == travel_class,
        )
        .first()
    )


def distanceFareTable(session: Session, travel_class: int) -> Optional[DistanceFare]:
    """Fetch the active distance fare table of a travel class, newest first."""
    return (
        session.query(DistanceFare)
        .filter(
            DistanceFare.travel_class == travel_class,
            DistanceFare.is_active == True,
        )
        .order_by(DistanceFare.id.desc())
        .first()
    )


def distanceFareRanges(
    session: Session, distance_fare_id: int
) -> List[DistanceFareRange]:
    return (
        session.query(DistanceFareRange)
        .filter(DistanceFareRange.distance_fare_id == distance_fare_id)
        .order_by(DistanceFareRange.min_km.asc())
        .all()
    )


def acFareRanges(session: Session, coach_id: int) -> List[CoachACFare]:
    return (
        session.query(CoachACFare)
        .filter(CoachACFare.coach_id == coach_id)
        .order_by(CoachACFare.min_km.asc())
        .all()
    )


def berthFareRanges(
    session: Session, coach_id: int, berth_kind: int
) -> List[BerthFare]:
    return (
        session.query(BerthFare)
        .filter(BerthFare.coach_id == coach_id, BerthFare.berth_kind == berth_kind)
        .order_by(BerthFare.min_km.asc())
        .all()
    )


def cachedDistance(
    session: Session, train_id: int, from_station_id: int, to_station_id: int
) -> Optional[Decimal]:
    """Read a materialized distance, in either direction."""
    routeDistance = (
        session.query(RouteDistance)
        .filter(
            RouteDistance.train_id == train_id,
            RouteDistance.from_station_id == from_station_id,
            RouteDistance.to_station_id == to_station_id,
        )
        .first()
    )
    if routeDistance is None:
        routeDistance = (
            session.query(RouteDistance)
            .filter(
                RouteDistance.train_id == train_id,
                RouteDistance.from_station_id == to_station_id,
                RouteDistance.to_station_id == from_station_id,
            )
            .first()
        )
    return None if routeDistance is None else routeDistance.distance_km
