"""Server status API routes."""
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_registry
from ..rooms.registry import RoomRegistry

router = APIRouter(prefix="/health", tags=["server"])


class HealthResponse(BaseModel):
    status: str
    rooms: Dict[str, int]


@router.get("", response_model=HealthResponse)
async def get_health(registry: RoomRegistry = Depends(get_registry)):
    """Liveness plus live connection count per room."""
    return HealthResponse(status="ok", rooms=registry.rooms())
