"""Class request API routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from .schemas import ClassRequest, CreateClassRequest, DeleteClassRequestResponse, Participant
from .services import ClassRequestService
from ..dependencies import get_class_request_service

router = APIRouter(tags=["class-requests"])


@router.post("/class-request", response_model=ClassRequest, status_code=201)
async def create_class_request(
    request: CreateClassRequest,
    service: ClassRequestService = Depends(get_class_request_service),
):
    """Create a class request; the creator is its first participant."""
    return await service.create(request)


@router.delete("/class-request/{request_id}", response_model=DeleteClassRequestResponse)
async def delete_class_request(
    request_id: str,
    creator: Optional[str] = Query(None, description="Name of the request's creator"),
    service: ClassRequestService = Depends(get_class_request_service),
):
    """Delete a class request (creator only)."""
    await service.delete(request_id, creator)
    return DeleteClassRequestResponse(success=True)


@router.post("/class-request/{request_id}/join", response_model=ClassRequest)
async def join_class_request(
    request_id: str,
    participant: Participant,
    service: ClassRequestService = Depends(get_class_request_service),
):
    """Join a class request once per student."""
    return await service.join(request_id, participant)


@router.get("/class-requests/{room}", response_model=List[ClassRequest])
async def list_class_requests(
    room: str,
    service: ClassRequestService = Depends(get_class_request_service),
):
    """Get all class requests of a room."""
    return await service.list_room(room)


@router.get("/class-request/{request_id}/participants", response_model=List[Participant])
async def get_participants(
    request_id: str,
    service: ClassRequestService = Depends(get_class_request_service),
):
    """Get the participants of a class request."""
    return await service.participants(request_id)
