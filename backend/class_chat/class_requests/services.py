"""Business logic for class requests.

A class request is either active (present in the request table) or deleted
(gone for good). Each mutation is a single ``atomic_update`` on the
request's own key, so ownership and duplicate-join checks are made against
the same state that gets written.
"""
import logging
from typing import Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from .schemas import CreateClassRequest, Participant
from ..database import CLASS_REQUESTS_NAMESPACE, DurableStore
from ..errors import AuthorizationError, ConflictError, NotFoundError
from ..rooms.registry import RoomRegistry
from ..utils import generate_id, utc_now_iso

logger = logging.getLogger(__name__)


class ClassRequestService:
    """Owns the class request lifecycle and announces it to the owning room."""

    def __init__(self, store: DurableStore, registry: RoomRegistry):
        self.store = store
        self.registry = registry

    # Store operations (blocking)

    def create_record(self, payload: CreateClassRequest) -> Dict:
        record = payload.model_dump()
        record['id'] = generate_id()
        record['participants'] = [
            Participant(
                studentId=payload.creatorStudentId,
                fullName=payload.creatorName,
                class_=payload.creatorClass,
            ).model_dump(by_alias=True)
        ]
        record['participantCount'] = 1
        record['createdAt'] = utc_now_iso()

        def insert(existing):
            if existing is not None:
                raise ConflictError("Class request id already in use")
            return record

        _, created = self.store.atomic_update(CLASS_REQUESTS_NAMESPACE, record['id'], insert)
        return created

    def add_participant(self, request_id: str, participant: Participant) -> Dict:
        def join(record):
            if record is None:
                raise NotFoundError("Class request not found")
            if any(p.get('studentId') == participant.studentId for p in record['participants']):
                raise ConflictError("You have already joined this class request")

            record['participants'].append(participant.model_dump(by_alias=True))
            record['participantCount'] = len(record['participants'])
            return record

        _, updated = self.store.atomic_update(CLASS_REQUESTS_NAMESPACE, request_id, join)
        return updated

    def remove_record(self, request_id: str, requester_name: Optional[str]) -> Dict:
        """Delete a request owned by ``requester_name`` and return it."""
        def remove(record):
            if record is None:
                raise NotFoundError("Class request not found")
            if record.get('creatorName') != requester_name:
                raise AuthorizationError("You can only delete your own class requests")
            return None

        removed, _ = self.store.atomic_update(CLASS_REQUESTS_NAMESPACE, request_id, remove)
        return removed

    def list_by_room(self, room: str) -> List[Dict]:
        return [r for r in self.store.scan(CLASS_REQUESTS_NAMESPACE) if r.get('room') == room]

    def participants_of(self, request_id: str) -> List[Dict]:
        record = self.store.read_record(CLASS_REQUESTS_NAMESPACE, request_id)
        if record is None:
            raise NotFoundError("Class request not found")
        return record['participants']

    # Async operations: persist, then broadcast

    async def create(self, payload: CreateClassRequest) -> Dict:
        record = await run_in_threadpool(self.create_record, payload)
        logger.info("Class request %s created by %s in room '%s'", record['id'], record['creatorName'], record['room'])

        await self.registry.broadcast(record['room'], "class_request_created", record)
        return record

    async def join(self, request_id: str, participant: Participant) -> Dict:
        record = await run_in_threadpool(self.add_participant, request_id, participant)
        logger.info(
            "Student %s joined class request %s (%d participants)",
            participant.studentId, request_id, record['participantCount'],
        )

        await self.registry.broadcast(record['room'], "class_request_updated", record)
        return record

    async def delete(self, request_id: str, requester_name: Optional[str]):
        removed = await run_in_threadpool(self.remove_record, request_id, requester_name)
        logger.info("Class request %s deleted by %s", request_id, requester_name)

        await self.registry.broadcast(removed['room'], "class_request_deleted", {"id": request_id})

    async def list_room(self, room: str) -> List[Dict]:
        return await run_in_threadpool(self.list_by_room, room)

    async def participants(self, request_id: str) -> List[Dict]:
        return await run_in_threadpool(self.participants_of, request_id)
