"""Story arc storage model and CRUD helpers."""

from campaign_arcs.storage.story_arcs.base import StoryArcRecord
from campaign_arcs.storage.story_arcs import crud

__all__ = ["StoryArcRecord", "crud"]
