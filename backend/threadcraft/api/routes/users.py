"""User and points endpoints."""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from threadcraft.api.deps import get_current_user_id
from threadcraft.db import crud
from threadcraft.db.session import get_db
from threadcraft.notifications.email_sender import send_welcome_email
from threadcraft.schemas.users import PointsOut, UserOut, UserSyncRequest, UserSyncResponse

router = APIRouter(prefix="/api", tags=["users"])


@router.get("/users/me", response_model=UserOut)
def get_me(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    user = crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/points", response_model=PointsOut)
def get_points(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return PointsOut(points=crud.get_points(db, user_id))


@router.post("/users/sync", response_model=UserSyncResponse)
def sync_user(
    payload: UserSyncRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create or link the user row, called when the frontend sees no points."""
    user, match = crud.upsert_user(db, user_id, payload.email, payload.name)
    if match is not crud.UserMatch.FOUND:
        background_tasks.add_task(send_welcome_email, user.email, user.name or "")
    return UserSyncResponse(id=user.id, created=match is crud.UserMatch.NOT_FOUND, points=user.points)
