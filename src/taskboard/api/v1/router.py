"""V1 API router aggregating all sub-routers."""

from fastapi import APIRouter

from taskboard.api.v1.resources.router import router as resources_router
from taskboard.api.v1.system.router import router as system_router

v1_router = APIRouter()
# System routes first: the generic resource routes match any first segment.
v1_router.include_router(system_router, prefix="/system", tags=["system"])
v1_router.include_router(resources_router, tags=["resources"])
