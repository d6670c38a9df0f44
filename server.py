"""
server.py
---------
HTTP surface for one trip session.

    uvicorn server:app --reload

Every endpoint returns the full session snapshot so the client can render
itinerary, disruption, decision log and metrics from one payload.
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from core.enums import ActivityCategory, TravelStyle
from core.exceptions import (
    EngineError, ExternalServiceError, InsufficientDataError, PlacesFetchError,
    ReplanUnavailable, UnknownActivityError, WeatherFetchError,
)
from schemas.context import PlaceCandidate
from schemas.profile import UserProfile
from modules.llm.client import make_llm_client
from modules.reoptimization.session import TripSession
import config

logger = logging.getLogger(__name__)


# ── Request models ────────────────────────────────────────────────────────────

class PlanRequest(BaseModel):
    city: str
    lat: float
    lon: float
    name: str = "Traveller"
    travel_styles: List[TravelStyle] = Field(default_factory=lambda: [TravelStyle.EXPLORER])
    preferences: Dict[str, float] = Field(default_factory=dict)
    budget_per_day: float = Field(default=200.0, gt=0)
    transport_modes: List[str] = Field(default_factory=lambda: ["walking"])
    max_walking_km: float = Field(default=8.0, ge=0)
    max_driving_km: float = Field(default=30.0, ge=0)


class FeedbackRequest(BaseModel):
    signal: str
    intensity: float = Field(default=0.5, ge=0, le=1)


class AddActivityRequest(BaseModel):
    id: str
    name: str
    category: ActivityCategory = ActivityCategory.OTHER
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    duration_min: int = Field(default=config.DEFAULT_DURATION_MIN, gt=0)
    cost_usd: float = Field(default=0.0, ge=0)
    is_indoor: bool = True
    crowd_level: float = Field(default=0.3, ge=0, le=1)
    distance_from_prev_m: float = Field(default=0.0, ge=0)
    address: str = ""


# ── Error mapping ─────────────────────────────────────────────────────────────

_STATUS = (
    (UnknownActivityError, 404),
    (ReplanUnavailable, 409),
    (InsufficientDataError, 422),
    (WeatherFetchError, 503),
    (PlacesFetchError, 503),
    (ExternalServiceError, 503),
)


def _http_error(exc: EngineError) -> HTTPException:
    status = next((code for cls, code in _STATUS if isinstance(exc, cls)), 500)
    return HTTPException(status_code=status, detail=str(exc))


# ── App factory ───────────────────────────────────────────────────────────────

def create_app(session: Optional[TripSession] = None) -> FastAPI:
    session = session or TripSession(llm_client=make_llm_client())

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        session.stop_monitoring()

    app = FastAPI(title="Adaptive Itinerary Engine", lifespan=lifespan)
    app.state.session = session

    @app.get("/")
    async def root():
        return {"message": "Adaptive itinerary engine is running", "phase": session.phase.value}

    @app.get("/snapshot")
    async def snapshot():
        return session.snapshot().to_dict()

    @app.post("/plan")
    async def plan(request: PlanRequest):
        try:
            profile = UserProfile(
                name=request.name,
                travel_styles=request.travel_styles,
                preferences=request.preferences,
                budget_per_day=request.budget_per_day,
                transport_modes=request.transport_modes,
                max_walking_km=request.max_walking_km,
                max_driving_km=request.max_driving_km,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        session.set_location(request.city, request.lat, request.lon)
        session.set_profile(profile)
        try:
            await session.refresh_weather()
            await session.build_itinerary()
        except EngineError as e:
            raise _http_error(e)
        session.start_monitoring()
        return session.snapshot().to_dict()

    @app.post("/activities")
    async def add_activity(request: AddActivityRequest):
        try:
            session.add_activity(PlaceCandidate(**request.model_dump()))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return session.snapshot().to_dict()

    @app.post("/activities/{activity_id}/confirm")
    async def confirm_activity(activity_id: str):
        try:
            session.confirm_activity(activity_id)
        except EngineError as e:
            raise _http_error(e)
        return session.snapshot().to_dict()

    @app.delete("/activities/{activity_id}")
    async def delete_activity(activity_id: str):
        try:
            session.delete_activity(activity_id)
        except EngineError as e:
            raise _http_error(e)
        return session.snapshot().to_dict()

    @app.post("/feedback")
    async def feedback(request: FeedbackRequest):
        outcome = await session.send_feedback(request.signal, request.intensity)
        return {"response": outcome.response, **session.snapshot().to_dict()}

    @app.post("/analysis")
    async def analysis():
        disruptions = await session.run_analysis()
        return {"disruptions": [d.to_dict() for d in disruptions], **session.snapshot().to_dict()}

    @app.post("/disruption/dismiss")
    async def dismiss_disruption():
        session.dismiss_disruption()
        return session.snapshot().to_dict()

    @app.post("/reset")
    async def reset():
        session.reset_trip()
        return session.snapshot().to_dict()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
