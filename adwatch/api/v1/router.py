"""Mounts the v1 health and query routers."""

from fastapi import APIRouter

from adwatch.api.v1 import health, queries

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(queries.router, tags=["queries"])
