from fastapi import FastAPI
from railfare.api import fare, route_distance, tariff


# ------------------------------------------------------
# Public pricing app
# ------------------------------------------------------
app_public = FastAPI(title="Public APP")

app_public.include_router(fare.route_public)
app_public.include_router(route_distance.route_public)
app_public.include_router(tariff.route_public)
