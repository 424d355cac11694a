"""Pydantic schemas for class requests."""
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Participant(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    studentId: str
    fullName: str
    class_: str = Field(alias="class")


class CreateClassRequest(BaseModel):
    """Creator identity plus any descriptive fields the client defines
    (subject, time, notes, ...), which are stored unchanged."""

    model_config = ConfigDict(extra="allow")

    room: str
    creatorName: str
    creatorStudentId: str
    creatorClass: str


class ClassRequest(CreateClassRequest):
    id: str
    participants: List[Participant]
    participantCount: int
    createdAt: str


class DeleteClassRequestResponse(BaseModel):
    success: bool
