from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from railfare.src import exceptions, getters
from railfare.src.db import BerthFare, Coach, CoachACFare, DistanceFare, DistanceFareRange
from railfare.src.enums import BerthKind, TariffKind
from railfare.src.functions import enumStr, makeExceptionResponses
from railfare.src.loggers import logEvent
from railfare.src.tariff import TariffRangeStore
from railfare.src.urls import (
    URL_AC_FARE_RANGE,
    URL_BERTH_FARE_RANGE,
    URL_DISTANCE_FARE_RANGE,
)

route_public = APIRouter()

RANGE_EXCEPTIONS = [
    exceptions.InvalidRange("max_km must be greater than min_km"),
    exceptions.RangeOverlap(1, 0, 100),
    exceptions.LockAcquireTimeout,
]


## Output Schema
class RangeSchema(BaseModel):
    id: int
    min_km: float
    max_km: Optional[float]
    updated_on: Optional[datetime]
    created_on: datetime


class DistanceFareRangeSchema(RangeSchema):
    distance_fare_id: int
    fare_per_km: Optional[float]
    flat_rate: Optional[float]


class ACFareRangeSchema(RangeSchema):
    coach_id: int
    ac_fare: float


class BerthFareRangeSchema(RangeSchema):
    coach_id: int
    berth_kind: BerthKind
    fare_amount: float


## Input Forms
class CreateRangeForm(BaseModel):
    min_km: float = Field(Form())
    max_km: float | None = Field(
        Form(default=None, description="Exclusive, leave empty for an open range")
    )


class CreateDistanceRangeForm(CreateRangeForm):
    distance_fare_id: int = Field(Form())
    fare_per_km: float | None = Field(Form(default=None))
    flat_rate: float | None = Field(Form(default=None))


class CreateACRangeForm(CreateRangeForm):
    coach_id: int = Field(Form())
    ac_fare: float = Field(Form())


class CreateBerthRangeForm(CreateRangeForm):
    coach_id: int = Field(Form())
    berth_kind: BerthKind = Field(Form(description=enumStr(BerthKind)))
    fare_amount: float = Field(Form())


class UpdateRangeForm(BaseModel):
    id: int = Field(Form())
    min_km: float | None = Field(Form(default=None))
    max_km: float | None = Field(Form(default=None))
    open_ended: bool = Field(
        Form(default=False, description="Drop max_km, turning the range into an open one")
    )


class UpdateDistanceRangeForm(UpdateRangeForm):
    fare_per_km: float | None = Field(Form(default=None))
    flat_rate: float | None = Field(Form(default=None))


class UpdateACRangeForm(UpdateRangeForm):
    ac_fare: float | None = Field(Form(default=None))


class UpdateBerthRangeForm(UpdateRangeForm):
    fare_amount: float | None = Field(Form(default=None))


class DeleteForm(BaseModel):
    id: int = Field(Form())


## Query Parameters
class DistanceQueryParams(BaseModel):
    distance_fare_id: int = Field(Query())


class ACQueryParams(BaseModel):
    coach_id: int = Field(Query())


class BerthQueryParams(BaseModel):
    coach_id: int = Field(Query())
    berth_kind: BerthKind = Field(Query(description=enumStr(BerthKind)))


## Function
def tariffStore(
    session: Session = Depends(getters.dbSession),
    scopeLock=Depends(getters.scopeLocker),
) -> TariffRangeStore:
    return TariffRangeStore(session, scopeLock)


def updateRange(
    store: TariffRangeStore, kind: TariffKind, fParam: UpdateRangeForm, request_info, **values
):
    rangeRow = store.updateRange(
        kind, fParam.id, fParam.min_km, fParam.max_km, fParam.open_ended, **values
    )
    rangeData = jsonable_encoder(rangeRow)
    logEvent(request_info, rangeData)
    return rangeData


def deleteRange(
    store: TariffRangeStore, kind: TariffKind, rangeId: int, request_info
) -> Response:
    rangeRow = store.removeRange(kind, rangeId)
    if rangeRow is not None:
        logEvent(request_info, jsonable_encoder(rangeRow))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


## API endpoints [Distance fare]
@route_public.post(
    URL_DISTANCE_FARE_RANGE,
    tags=["Tariff"],
    response_model=DistanceFareRangeSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        RANGE_EXCEPTIONS
        + [
            exceptions.NotFound(DistanceFare, 1),
            exceptions.InvalidRequest(
                "Exactly one of fare_per_km or flat_rate must be provided"
            ),
        ]
    ),
    description="""
    Add a tier to a distance fare table.    
    Ranges are half-open `[min_km, max_km)` and must not overlap any tier of the same table.    
    A tier charges either `fare_per_km` for every travelled kilometre or a `flat_rate`, never both.
    """,
)
async def create_distance_range(
    fParam: CreateDistanceRangeForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        rangeRow = store.addRange(
            TariffKind.DISTANCE,
            fParam.distance_fare_id,
            fParam.min_km,
            fParam.max_km,
            fare_per_km=fParam.fare_per_km,
            flat_rate=fParam.flat_rate,
        )
        rangeData = jsonable_encoder(rangeRow)
        logEvent(request_info, rangeData)
        return rangeData
    except Exception as e:
        exceptions.handle(e)


@route_public.get(
    URL_DISTANCE_FARE_RANGE,
    tags=["Tariff"],
    response_model=List[DistanceFareRangeSchema],
    description="""
    Fetch the tiers of a distance fare table, ordered by `min_km`.
    """,
)
async def fetch_distance_ranges(
    qParam: DistanceQueryParams = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
):
    try:
        return store.listRanges(TariffKind.DISTANCE, qParam.distance_fare_id)
    except Exception as e:
        exceptions.handle(e)


@route_public.patch(
    URL_DISTANCE_FARE_RANGE,
    tags=["Tariff"],
    response_model=DistanceFareRangeSchema,
    responses=makeExceptionResponses(
        RANGE_EXCEPTIONS + [exceptions.NotFound(DistanceFareRange, 1)]
    ),
    description="""
    Update the bounds or the price of a distance fare tier.    
    Empty fields are left unchanged. The updated tier must not overlap any other tier of its table.    
    Giving `fare_per_km` clears `flat_rate` and the other way round.
    """,
)
async def update_distance_range(
    fParam: UpdateDistanceRangeForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        return updateRange(
            store,
            TariffKind.DISTANCE,
            fParam,
            request_info,
            fare_per_km=fParam.fare_per_km,
            flat_rate=fParam.flat_rate,
        )
    except Exception as e:
        exceptions.handle(e)


@route_public.delete(
    URL_DISTANCE_FARE_RANGE,
    tags=["Tariff"],
    status_code=status.HTTP_204_NO_CONTENT,
    description="""
    Delete a tier of a distance fare table. Deleting a missing tier is not an error.
    """,
)
async def delete_distance_range(
    fParam: DeleteForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        return deleteRange(store, TariffKind.DISTANCE, fParam.id, request_info)
    except Exception as e:
        exceptions.handle(e)


## API endpoints [AC surcharge]
@route_public.post(
    URL_AC_FARE_RANGE,
    tags=["Tariff"],
    response_model=ACFareRangeSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(RANGE_EXCEPTIONS + [exceptions.NotFound(Coach, 1)]),
    description="""
    Add an AC surcharge range to a coach.   
    Ranges are half-open `[min_km, max_km)` and must not overlap any range of the same coach.
    """,
)
async def create_ac_range(
    fParam: CreateACRangeForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        rangeRow = store.addRange(
            TariffKind.AC,
            fParam.coach_id,
            fParam.min_km,
            fParam.max_km,
            ac_fare=fParam.ac_fare,
        )
        rangeData = jsonable_encoder(rangeRow)
        logEvent(request_info, rangeData)
        return rangeData
    except Exception as e:
        exceptions.handle(e)


@route_public.get(
    URL_AC_FARE_RANGE,
    tags=["Tariff"],
    response_model=List[ACFareRangeSchema],
    description="""
    Fetch the AC surcharge ranges of a coach, ordered by `min_km`.
    """,
)
async def fetch_ac_ranges(
    qParam: ACQueryParams = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
):
    try:
        return store.listRanges(TariffKind.AC, qParam.coach_id)
    except Exception as e:
        exceptions.handle(e)


@route_public.patch(
    URL_AC_FARE_RANGE,
    tags=["Tariff"],
    response_model=ACFareRangeSchema,
    responses=makeExceptionResponses(
        RANGE_EXCEPTIONS + [exceptions.NotFound(CoachACFare, 1)]
    ),
    description="""
    Update the bounds or the surcharge of an AC range.    
    Empty fields are left unchanged. The updated range must not overlap any other range of the coach.
    """,
)
async def update_ac_range(
    fParam: UpdateACRangeForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        return updateRange(
            store, TariffKind.AC, fParam, request_info, ac_fare=fParam.ac_fare
        )
    except Exception as e:
        exceptions.handle(e)


@route_public.delete(
    URL_AC_FARE_RANGE,
    tags=["Tariff"],
    status_code=status.HTTP_204_NO_CONTENT,
    description="""
    Delete an AC surcharge range. Deleting a missing range is not an error.
    """,
)
async def delete_ac_range(
    fParam: DeleteForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        return deleteRange(store, TariffKind.AC, fParam.id, request_info)
    except Exception as e:
        exceptions.handle(e)


## API endpoints [Berth fee]
@route_public.post(
    URL_BERTH_FARE_RANGE,
    tags=["Tariff"],
    response_model=BerthFareRangeSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(RANGE_EXCEPTIONS + [exceptions.NotFound(Coach, 1)]),
    description="""
    Add a berth fee range to a coach and berth kind.    
    Ranges are half-open `[min_km, max_km)` and must not overlap any range of the same 
    coach and berth kind.
    """,
)
async def create_berth_range(
    fParam: CreateBerthRangeForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        rangeRow = store.addRange(
            TariffKind.BERTH,
            (fParam.coach_id, fParam.berth_kind),
            fParam.min_km,
            fParam.max_km,
            fare_amount=fParam.fare_amount,
        )
        rangeData = jsonable_encoder(rangeRow)
        logEvent(request_info, rangeData)
        return rangeData
    except Exception as e:
        exceptions.handle(e)


@route_public.get(
    URL_BERTH_FARE_RANGE,
    tags=["Tariff"],
    response_model=List[BerthFareRangeSchema],
    description="""
    Fetch the berth fee ranges of a coach and berth kind, ordered by `min_km`.
    """,
)
async def fetch_berth_ranges(
    qParam: BerthQueryParams = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
):
    try:
        return store.listRanges(TariffKind.BERTH, (qParam.coach_id, qParam.berth_kind))
    except Exception as e:
        exceptions.handle(e)


@route_public.patch(
    URL_BERTH_FARE_RANGE,
    tags=["Tariff"],
    response_model=BerthFareRangeSchema,
    responses=makeExceptionResponses(
        RANGE_EXCEPTIONS + [exceptions.NotFound(BerthFare, 1)]
    ),
    description="""
    Update the bounds or the fee of a berth fee range.    
    Empty fields are left unchanged. The updated range must not overlap any other range of 
    the same coach and berth kind.
    """,
)
async def update_berth_range(
    fParam: UpdateBerthRangeForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        return updateRange(
            store, TariffKind.BERTH, fParam, request_info, fare_amount=fParam.fare_amount
        )
    except Exception as e:
        exceptions.handle(e)


@route_public.delete(
    URL_BERTH_FARE_RANGE,
    tags=["Tariff"],
    status_code=status.HTTP_204_NO_CONTENT,
    description="""
    Delete a berth fee range. Deleting a missing range is not an error.
    """,
)
async def delete_berth_range(
    fParam: DeleteForm = Depends(),
    store: TariffRangeStore = Depends(tariffStore),
    request_info=Depends(getters.requestInfo),
):
    try:
        return deleteRange(store, TariffKind.BERTH, fParam.id, request_info)
    except Exception as e:
        exceptions.handle(e)
