"""Content generation and history endpoints."""
from functools import lru_cache
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from threadcraft.api.deps import get_current_user_id
from threadcraft.core.config import settings
from threadcraft.core.errors import GenerationError, InsufficientPointsError
from threadcraft.db import crud
from threadcraft.db.models.generated_content import GeneratedContent
from threadcraft.db.session import get_db
from threadcraft.schemas.content import GenerateRequest, GenerateResponse, HistoryItemOut
from threadcraft.services.content_generator import (
    ContentGenerator,
    ImageInput,
    split_saved_content,
)

router = APIRouter(prefix="/api", tags=["content"])


@lru_cache
def get_content_generator() -> ContentGenerator:
    return ContentGenerator()


def _history_to_out(item: GeneratedContent) -> HistoryItemOut:
    return HistoryItemOut(
        id=item.id,
        content_type=item.content_type,
        prompt=item.prompt,
        content=item.content,
        units=split_saved_content(item.content_type, item.content),
        created_at=item.created_at,
    )


@router.post("/generate", response_model=GenerateResponse)
def generate_content(
    payload: GenerateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    generator: ContentGenerator = Depends(get_content_generator),
):
    image_data = payload.image_bytes()
    image = ImageInput(data=image_data, mime_type=payload.image_mime_type) if image_data else None

    try:
        result = generator.generate(db, user_id, payload.content_type, payload.prompt, image)
    except InsufficientPointsError as e:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=str(e))
    except GenerationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return GenerateResponse(
        content_type=result.content_type,
        units=result.units,
        points=result.points,
        history_id=result.history_id,
        error=result.error,
    )


@router.get("/history", response_model=list[HistoryItemOut])
def list_history(
    limit: int = Query(default=settings.HISTORY_DEFAULT_LIMIT, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Most recent generations first."""
    return [_history_to_out(item) for item in crud.list_history(db, user_id, limit)]


@router.get("/history/{item_id}", response_model=HistoryItemOut)
def get_history_item(
    item_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    item = crud.get_history_item(db, user_id, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="History item not found")
    return _history_to_out(item)
