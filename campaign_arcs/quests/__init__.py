"""Quest-to-story-beat integration."""

from campaign_arcs.quests.integration import QuestStoryIntegration
from campaign_arcs.quests.templates import STORY_QUEST_TEMPLATES, StoryQuestTemplate

__all__ = ["QuestStoryIntegration", "STORY_QUEST_TEMPLATES", "StoryQuestTemplate"]
