from __future__ import annotations


class CampaignArcsError(Exception):
    """Base class for errors surfaced to callers of the orchestration layer."""


class StoryArcNotFoundError(CampaignArcsError):
    def __init__(self, campaign_id: str):
        super().__init__(f"Story arc not found for campaign {campaign_id}")
        self.campaign_id = campaign_id


class StoryArcExistsError(CampaignArcsError):
    def __init__(self, campaign_id: str):
        super().__init__(f"Story arc already exists for campaign {campaign_id}")
        self.campaign_id = campaign_id


class BeatNotFoundError(CampaignArcsError):
    def __init__(self, campaign_id: str, beat_id: str):
        super().__init__(f"Story beat {beat_id} not found in campaign {campaign_id}")
        self.campaign_id = campaign_id
        self.beat_id = beat_id


class QuestLinkNotFoundError(CampaignArcsError):
    def __init__(self, campaign_id: str, quest_id: str):
        super().__init__(f"Quest {quest_id} is not linked to the story arc of campaign {campaign_id}")
        self.campaign_id = campaign_id
        self.quest_id = quest_id


class StaleStoryArcError(CampaignArcsError):
    """Raised when a save would overwrite a newer version of the same story arc."""

    def __init__(self, campaign_id: str, expected_version: int):
        super().__init__(
            f"Story arc for campaign {campaign_id} was modified concurrently (expected version {expected_version})"
        )
        self.campaign_id = campaign_id
        self.expected_version = expected_version
