from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def import_all_models() -> None:
    from campaign_arcs.storage.story_arcs.base import StoryArcRecord

    _ = (StoryArcRecord,)
