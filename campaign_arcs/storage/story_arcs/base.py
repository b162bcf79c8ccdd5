from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, text as sa_text
from sqlalchemy.orm import Mapped, mapped_column

from campaign_arcs.storage.base import Base


class StoryArcRecord(Base):
    __tablename__ = "story_arcs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    campaign_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    theme: Mapped[str] = mapped_column(Text, nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=sa_text("CURRENT_TIMESTAMP"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=sa_text("CURRENT_TIMESTAMP"), nullable=False
    )
