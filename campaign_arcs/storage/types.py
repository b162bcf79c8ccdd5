from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class InsertResult:
    id: int
    inserted: bool


@dataclass
class StoryArcRow:
    id: int
    campaign_id: str
    theme: str
    payload_json: str
    version: int
    created_at: datetime
    updated_at: datetime
