from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from .places.client import PlacesError, geocode
from .places.config import DEFAULT_PLACES_CONFIG, PlacesConfig
from .recommendations.models import (
    GeocodeRequest,
    GeocodeResponse,
    SearchRequest,
    SearchResponse,
)
from .recommendations.retrieval import search_restaurants

logger = logging.getLogger(__name__)

app = FastAPI(title="Restaurant Finder API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_places_config() -> PlacesConfig:
    return DEFAULT_PLACES_CONFIG


def get_llm_config() -> LLMConfig:
    return DEFAULT_LLM_CONFIG


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Bad input is a client error; report 400 instead of FastAPI's 422.
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def _provider_http_error(exc: PlacesError) -> HTTPException:
    detail: dict[str, str] = {"error": str(exc)}
    if exc.upstream:
        detail["upstream"] = exc.upstream
    return HTTPException(status_code=exc.status_code, detail=detail)


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/geocode", response_model=GeocodeResponse)
def geocode_location(
    body: GeocodeRequest,
    config: PlacesConfig = Depends(get_places_config),
) -> GeocodeResponse:
    query = body.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query missing")
    try:
        return geocode(query, config)
    except PlacesError as exc:
        raise _provider_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Geocode failed for %r", query)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.post(
    "/api/restaurants",
    response_model=SearchResponse,
    response_model_by_alias=False,
)
def restaurants(
    body: SearchRequest,
    places_config: PlacesConfig = Depends(get_places_config),
    llm_config: LLMConfig = Depends(get_llm_config),
) -> SearchResponse:
    try:
        return search_restaurants(body, places_config, llm_config)
    except PlacesError as exc:
        raise _provider_http_error(exc) from exc
    except Exception as exc:
        logger.exception("Restaurant search failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
