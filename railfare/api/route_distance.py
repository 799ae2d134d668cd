from typing import List
from fastapi import APIRouter, Depends, Query, Response, status, Body
from sqlalchemy.orm.session import Session
from pydantic import BaseModel, Field

from railfare.src import exceptions, getters
from railfare.src.constants import BATCH_DEADLINE
from railfare.src.db import Train
from railfare.src.enums import BatchStatus
from railfare.src.functions import makeExceptionResponses
from railfare.src.loggers import logEvent
from railfare.src.route_distance import RouteDistanceEngine
from railfare.src.urls import (
    URL_ROUTE_DISTANCE,
    URL_ROUTE_DISTANCE_BATCH,
    URL_TRAIN_ROUTE_DISTANCE,
)

route_public = APIRouter()


## Output Schema
class DistanceSchema(BaseModel):
    train_id: int
    from_station_id: int
    to_station_id: int
    distance_km: float


class MaterializeSchema(BaseModel):
    train_id: int
    calculated: int
    saved: int


class BatchErrorSchema(BaseModel):
    train_id: int
    reason: str


class BatchSchema(BaseModel):
    status: str
    processed: int
    total_distances: int
    skipped: int
    errors: List[BatchErrorSchema]


## Input Forms
class MaterializeForm(BaseModel):
    train_id: int = Field(Body(embed=True))


## Query Parameters
class QueryParams(BaseModel):
    train_id: int = Field(Query())
    from_station_id: int = Field(Query())
    to_station_id: int = Field(Query())


## Function
def routeDistanceEngine(sessionMaker=Depends(getters.dbSessionMaker)) -> RouteDistanceEngine:
    return RouteDistanceEngine(sessionMaker)


## API endpoints [Public]
@route_public.get(
    URL_ROUTE_DISTANCE,
    tags=["Route distance"],
    response_model=DistanceSchema,
    responses=makeExceptionResponses(
        [
            exceptions.NotFound(Train, 1),
            exceptions.RouteNotFound(1),
            exceptions.StopNotOnRoute(1, 1),
        ]
    ),
    description="""
    Fetch the travelled distance between two stations of a train.   
    Served from the materialized distances, derived from the route on a miss.
    """,
)
async def fetch_distance(
    qParam: QueryParams = Depends(),
    session: Session = Depends(getters.dbSession),
    engine: RouteDistanceEngine = Depends(routeDistanceEngine),
):
    try:
        distanceKm = engine.routeDistance(
            session, qParam.train_id, qParam.from_station_id, qParam.to_station_id
        )
        return DistanceSchema(**qParam.model_dump(), distance_km=float(distanceKm))
    except Exception as e:
        exceptions.handle(e)


@route_public.post(
    URL_TRAIN_ROUTE_DISTANCE,
    tags=["Route distance"],
    response_model=MaterializeSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.NotFound(Train, 1), exceptions.InsufficientStops(1, 1)]
    ),
    description="""
    Rebuild the materialized distances of one train.    
    Every pair of stops is stored in both directions, replacing the previous rows atomically.
    """,
)
def materialize_train(
    fParam: MaterializeForm = Depends(),
    engine: RouteDistanceEngine = Depends(routeDistanceEngine),
    request_info=Depends(getters.requestInfo),
):
    try:
        counts = engine.materializeForTrain(fParam.train_id)
        materializeData = {"train_id": fParam.train_id, **counts}
        logEvent(request_info, materializeData)
        return materializeData
    except Exception as e:
        exceptions.handle(e)


@route_public.post(
    URL_ROUTE_DISTANCE_BATCH,
    tags=["Route distance"],
    response_model=BatchSchema,
    responses={
        status.HTTP_207_MULTI_STATUS: {
            "model": BatchSchema,
            "description": "Some trains could not be materialized",
        }
    },
    description="""
    Rebuild the materialized distances of every active train.   
    Trains are processed in parallel, a failing train is rolled back and reported in `errors` 
    without affecting the others. Responds with 207 when at least one train failed.
    """,
)
def materialize_all(
    response: Response,
    engine: RouteDistanceEngine = Depends(routeDistanceEngine),
    request_info=Depends(getters.requestInfo),
):
    try:
        result = engine.materializeAll(deadline=BATCH_DEADLINE)
        if result.status == BatchStatus.COMPLETED_WITH_ERRORS:
            response.status_code = status.HTTP_207_MULTI_STATUS
        batchData = {
            "status": result.status.name.lower(),
            "processed": result.processed,
            "total_distances": result.totalDistances,
            "skipped": result.skipped,
            "errors": result.errors,
        }
        logEvent(request_info, batchData)
        return batchData
    except Exception as e:
        exceptions.handle(e)
