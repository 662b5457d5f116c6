"""Generated content history model."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import TIMESTAMP, ForeignKey, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from threadcraft.db.base import Base


class GeneratedContent(Base):
    """Append-only record of one generation request and its result."""

    __tablename__ = "generated_content"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(Text, nullable=False)  # twitter | instagram | linkedin

    # Python-side default keeps sub-second ordering on every backend.
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        index=True,
    )

    user: Mapped["User"] = relationship("User", back_populates="generated_content")
