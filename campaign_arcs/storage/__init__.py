"""Storage layer for SQLite via SQLAlchemy async."""

from campaign_arcs.storage import story_arcs

__all__ = ["story_arcs"]
