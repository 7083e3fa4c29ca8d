"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from designcoach.api.routes import evaluations, health, internal, shared_reports

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(evaluations.router)
api_router.include_router(shared_reports.router)
api_router.include_router(internal.router)
