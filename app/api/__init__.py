"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import funnel

router = APIRouter()

# Funnel graph, board, intersections and brief export
router.include_router(funnel.router, tags=["funnel"])
