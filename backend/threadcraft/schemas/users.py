"""Pydantic schemas for user endpoints."""
from uuid import UUID

from pydantic import BaseModel, EmailStr


class UserOut(BaseModel):
    id: UUID
    clerk_id: str | None
    email: str
    name: str | None
    points: int

    model_config = {"from_attributes": True}


class UserSyncRequest(BaseModel):
    """Profile the frontend reads from its Clerk session."""

    email: EmailStr
    name: str = ""


class UserSyncResponse(BaseModel):
    id: UUID
    created: bool
    points: int


class PointsOut(BaseModel):
    points: int
