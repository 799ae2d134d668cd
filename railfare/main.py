from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from railfare.src import schemas
from railfare.src.constants import API_TITLE, API_VERSION
from railfare.src.urls import URL_HEALTH
from railfare.api.controller import app_public


app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get(URL_HEALTH, tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}


app.mount("/", app_public, "Public API")
