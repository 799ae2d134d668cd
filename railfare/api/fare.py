from typing import Optional
from fastapi import APIRouter, Depends, Body
from sqlalchemy.orm.session import Session
from pydantic import BaseModel, Field

from railfare.src import exceptions, getters
from railfare.src.db import Train
from railfare.src.enums import BerthKind
from railfare.src.functions import enumStr, makeExceptionResponses
from railfare.src.pricing import FareBreakdown, FareRequest, calculateFare
from railfare.src.route_distance import RouteDistanceEngine
from railfare.src.tariff import TariffRangeStore
from railfare.src.urls import URL_FARE_CALCULATE

route_public = APIRouter()


## Output Schema
class FareSchema(BaseModel):
    distance_km: float
    base_fare: float
    distance_fare: float
    ac_surcharge: Optional[float]
    berth_fee: Optional[float]
    total_fare: float


## Input Forms
class CalculateForm(BaseModel):
    train_id: int = Field(Body())
    from_station_id: int = Field(Body())
    to_station_id: int = Field(Body())
    coach_id: int = Field(Body())
    berth_kind: BerthKind | None = Field(
        Body(default=None, description=enumStr(BerthKind))
    )


## Function
def optionalFloat(value) -> Optional[float]:
    return None if value is None else float(value)


def toFareSchema(breakdown: FareBreakdown) -> FareSchema:
    return FareSchema(
        distance_km=float(breakdown.distance_km),
        base_fare=float(breakdown.base_fare),
        distance_fare=float(breakdown.distance_fare),
        ac_surcharge=optionalFloat(breakdown.ac_surcharge),
        berth_fee=optionalFloat(breakdown.berth_fee),
        total_fare=float(breakdown.total_fare),
    )


## API endpoints [Public]
@route_public.post(
    URL_FARE_CALCULATE,
    tags=["Fare"],
    response_model=FareSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidRequest("Boarding and alighting stations must be different"),
            exceptions.NotFound(Train, 1),
            exceptions.RouteNotFound(1),
            exceptions.StopNotOnRoute(1, 1),
            exceptions.CoachNotInTrain(1, 1),
            exceptions.PricingNotConfigured("AC fare"),
        ]
    ),
    description="""
    Calculate the itemized fare of a journey.   
    The distance between the two stations is read from the materialized route distances, 
    or derived from the train's stops when it has not been materialized yet.   
    AC surcharge is only charged for air-conditioned coaches and the berth fee only for sleepers, 
    which also require a `berth_kind`.
    """,
)
async def calculate_fare(
    fParam: CalculateForm = Depends(),
    session: Session = Depends(getters.dbSession),
    sessionMaker=Depends(getters.dbSessionMaker),
):
    try:
        request = FareRequest(**fParam.model_dump())
        breakdown = calculateFare(
            session,
            request,
            tariffStore=TariffRangeStore(session),
            routeEngine=RouteDistanceEngine(sessionMaker),
        )
        return toFareSchema(breakdown)
    except Exception as e:
        exceptions.handle(e)
