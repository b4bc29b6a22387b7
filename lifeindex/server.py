"""FastAPI server exposing the Life Index engine.

REST endpoints for the sphere catalog, on-demand index computation,
history queries with trend, and the balance status log.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

import redis
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from lifeindex.config.settings import LOG_LEVEL, REDIS_URL, SERVER_HOST, SERVER_PORT
from lifeindex.engine import history_store
from lifeindex.engine.index_calculator import score_breakdown
from lifeindex.engine.life_index import (
    calculate_sphere_index,
    fetch_life_index_data,
    fetch_sphere_stats,
    query_history,
)
from lifeindex.engine.trend import trend
from lifeindex.models.snapshot import SphereStats
from lifeindex.models.sphere import SphereNotFound, get_by_key, list_spheres

logger = logging.getLogger(__name__)

app = FastAPI(title="Life Index", description="Sphere balance scoring for personal productivity")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def _sphere_or_404(sphere_key: str):
    try:
        return get_by_key(sphere_key)
    except SphereNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


# ── REST Endpoints ───────────────────────────────────────────────────────

@app.get("/api/health")
async def health():
    r = _get_redis()
    try:
        r.ping()
        redis_ok = True
    except redis.RedisError:
        redis_ok = False

    return {
        "status": "ok",
        "redis": redis_ok,
        "spheres": len(list_spheres()),
    }


@app.get("/api/spheres")
async def get_spheres():
    return {"spheres": [s.to_dict() for s in list_spheres()]}


@app.get("/api/spheres/{sphere_key}")
async def get_sphere(sphere_key: str):
    return _sphere_or_404(sphere_key).to_dict()


@app.get("/api/users/{user_id}/life-index")
async def get_life_index(user_id: str, persist: bool = True):
    """Compute all sphere indices and balance signals; save today's snapshot."""
    data = await fetch_life_index_data(user_id, r=_get_redis(), persist=persist)
    return data.to_dict()


@app.get("/api/users/{user_id}/spheres/{sphere_key}/stats")
async def get_sphere_stats(user_id: str, sphere_key: str):
    sphere = _sphere_or_404(sphere_key)
    stats = await fetch_sphere_stats(user_id, sphere.id, r=_get_redis())
    return {
        "sphere": sphere.to_dict(),
        "stats": stats.to_dict(),
        "index": calculate_sphere_index(stats),
        "sub_scores": {k: round(v, 1) for k, v in score_breakdown(stats).items()},
    }


class SphereIndexRequest(BaseModel):
    sphere_key: str
    active_goals: int = Field(0, ge=0)
    completed_goals: int = Field(0, ge=0)
    total_tasks: int = Field(0, ge=0)
    completed_tasks: int = Field(0, ge=0)
    total_habits: int = Field(0, ge=0)
    habit_expected: int = Field(0, ge=0)
    habit_completed: int = Field(0, ge=0)
    habit_streak: int = Field(0, ge=0)
    time_minutes: int = Field(0, ge=0)
    total_income: float = Field(0.0, ge=0)
    total_expense: float = Field(0.0, ge=0)
    contacts: int = Field(0, ge=0)
    has_recent_activity: bool = False


@app.post("/api/sphere-index")
async def post_sphere_index(req: SphereIndexRequest):
    """Score caller-supplied stats without touching any store."""
    sphere = _sphere_or_404(req.sphere_key)
    fields = req.model_dump(exclude={"sphere_key"})
    stats = SphereStats(sphere_id=sphere.id, **fields)
    return {
        "sphere_key": sphere.key.value,
        "index": calculate_sphere_index(stats),
        "sub_scores": {k: round(v, 1) for k, v in score_breakdown(stats).items()},
    }


@app.get("/api/users/{user_id}/history")
async def get_history(
    user_id: str,
    period: str = Query("month", pattern="^(month|year)$"),
    field: str = "life_index",
):
    try:
        points = query_history(user_id, period, field, r=_get_redis())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {
        "period": period,
        "field": field,
        "points": [p.to_dict() for p in points],
        "trend": trend([p.value for p in points]).to_dict(),
    }


@app.get("/api/users/{user_id}/balance-status")
async def get_balance_status(user_id: str, limit: int = Query(50, ge=1, le=200)):
    entries = history_store.balance_status_history(user_id, limit=limit, r=_get_redis())
    return {"entries": [asdict(e) for e in entries]}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=LOG_LEVEL)
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
