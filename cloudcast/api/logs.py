"""Logs API — placeholder acknowledging log requests per resource."""

from __future__ import annotations

from fastapi import APIRouter, Path

router = APIRouter(prefix="/api/logs", tags=["logs"])


@router.get("/{resource_id}")
async def get_logs(resource_id: str = Path(min_length=1, max_length=256)):
    return {"resource_id": resource_id, "message": "Logs fetched successfully"}
