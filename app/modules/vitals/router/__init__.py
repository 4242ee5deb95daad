"""Compose vitals routers."""

from fastapi import APIRouter

from .http import (
    create_vitals,
    read_latest_vital,
    read_recent_vitals,
    read_subject_vitals,
    router as http_router,
)

router = APIRouter()
router.include_router(http_router)

__all__ = [
    "router",
    "create_vitals",
    "read_latest_vital",
    "read_recent_vitals",
    "read_subject_vitals",
]
