"""Pydantic schemas for content generation and history."""
import base64
import binascii
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ContentType(str, Enum):
    """Supported social formats."""

    twitter = "twitter"
    instagram = "instagram"
    linkedin = "linkedin"


class GenerateRequest(BaseModel):
    """Generation request; the image is only used for Instagram captions."""

    content_type: ContentType
    prompt: str = Field(min_length=1)
    image_base64: Optional[str] = None
    image_mime_type: Optional[str] = None

    @model_validator(mode="after")
    def validate_image(self):
        if self.image_base64 is None:
            return self
        try:
            base64.b64decode(self.image_base64, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("image_base64 is not valid base64")
        if not self.image_mime_type:
            raise ValueError("image_mime_type is required when image_base64 is set")
        if not self.image_mime_type.startswith("image/"):
            raise ValueError(f"Unsupported image type: {self.image_mime_type}")
        return self

    def image_bytes(self) -> bytes | None:
        if self.image_base64 is None:
            return None
        return base64.b64decode(self.image_base64)


class GenerateResponse(BaseModel):
    content_type: ContentType
    units: list[str]
    points: int
    history_id: Optional[UUID] = None
    error: bool = False


class HistoryItemOut(BaseModel):
    id: UUID
    content_type: str
    prompt: str
    content: str
    units: list[str]
    created_at: datetime
