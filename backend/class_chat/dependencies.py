"""Shared dependencies for FastAPI endpoints."""
from fastapi import Request

from .class_requests.services import ClassRequestService
from .messages.services import MessageService
from .rooms.registry import RoomRegistry


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


def get_message_service(request: Request) -> MessageService:
    return request.app.state.messages


def get_class_request_service(request: Request) -> ClassRequestService:
    return request.app.state.class_requests
