# backend/gymchat/models/models.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class Role(str, Enum):
    """Account types. Wire payloads use capitalised model names ("Trainer")."""

    GYM = "gym"
    TRAINER = "trainer"
    MEMBER = "member"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Accept both roles ("trainer") and model names ("Trainer")."""
        if isinstance(value, Role):
            return value
        return cls(str(value).strip().lower())

    @property
    def model_name(self) -> str:
        return self.value.capitalize()


class Identity(BaseModel):
    """Caller identity established by the auth collaborator."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Message(WireModel):
    id: str = Field(default_factory=new_id, alias="_id")
    sender: str
    sender_model: str = Field(alias="senderModel")
    receiver: str
    receiver_model: str = Field(alias="receiverModel")
    gym: str
    message: str
    timestamp: datetime = Field(default_factory=utcnow)


class Announcement(WireModel):
    id: str = Field(default_factory=new_id, alias="_id")
    gym: str
    sender: str
    sender_model: str = Field(default="Gym", alias="senderModel")
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class SendMessageRequest(WireModel):
    """Payload of the ``sendMessage`` client event."""

    sender_id: str = Field(alias="senderId")
    sender_model: str = Field(alias="senderModel")
    receiver_id: str = Field(alias="receiverId")
    receiver_model: str = Field(alias="receiverModel")
    gym_id: str = Field(alias="gymId")
    message: str = ""


class Result(BaseModel):
    """Tagged outcome of one client event: ``ok`` with data, or an error kind."""

    ok: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, data: Any = None) -> "Result":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, kind: str, message: str) -> "Result":
        return cls(ok=False, error=kind, message=message)


class AnnouncementRequest(BaseModel):
    message: str = ""


class GymRoster(BaseModel):
    gym_id: str
    gym_name: str = ""
    trainers: List[str] = []
    members: List[str] = []
    # Display names of trainers and members, by id
    names: Dict[str, str] = {}


class Contact(WireModel):
    """Someone the caller is allowed to message."""

    id: str = Field(alias="_id")
    name: str = ""
    role: Role
