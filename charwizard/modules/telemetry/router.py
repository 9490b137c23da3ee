from __future__ import annotations

from fastapi import APIRouter

from charwizard.modules.telemetry.service import get_creation_telemetry_summary

router = APIRouter(prefix="/api/v1/telemetry", tags=["telemetry"])


@router.get("/creation")
def creation_telemetry() -> dict:
    return get_creation_telemetry_summary()
