from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from campaign_arcs.domain.quest_links import QuestStoryType, StoryImpact


class StoryQuestTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    name: str
    description: str
    story_type: QuestStoryType
    story_impact: StoryImpact
    objectives: tuple[str, ...] = ()
    character_development_opportunities: tuple[str, ...] = ()
    world_state_changes: tuple[str, ...] = ()
    tags: tuple[str, ...] = Field(default=())


STORY_QUEST_TEMPLATES: tuple[StoryQuestTemplate, ...] = (
    StoryQuestTemplate(
        id="story_setup_introduction",
        name="Introduction to the Main Plot",
        description="A quest that introduces the main story elements and key characters",
        story_type="setup",
        story_impact="major",
        objectives=(
            "Meet the quest giver and learn about the main conflict",
            "Gather initial information about the threat",
        ),
        character_development_opportunities=(
            "First encounter with main antagonist",
            "Introduction to key allies",
            "Discovery of personal connection to plot",
        ),
        world_state_changes=(
            "Main plot thread introduced",
            "Key locations revealed",
            "Important NPCs established",
        ),
        tags=("story", "setup", "introduction"),
    ),
    StoryQuestTemplate(
        id="story_development_character_growth",
        name="Character Development Arc",
        description="A quest focused on character growth and relationship building",
        story_type="development",
        story_impact="moderate",
        objectives=(
            "Face a personal challenge or fear",
            "Help an ally with their own challenge",
        ),
        character_development_opportunities=(
            "Personal growth milestone",
            "Relationship strengthening",
            "Skill development",
        ),
        world_state_changes=("Character relationships deepened", "Personal stakes raised"),
        tags=("story", "development", "character"),
    ),
    StoryQuestTemplate(
        id="story_climax_major_confrontation",
        name="Major Story Confrontation",
        description="The climactic battle or confrontation with the main antagonist",
        story_type="climax",
        story_impact="critical",
        objectives=(
            "Confront the main antagonist",
            "Resolve the main conflict",
        ),
        character_development_opportunities=(
            "Ultimate test of character growth",
            "Final character arc resolution",
            "Heroic moment achievement",
        ),
        world_state_changes=(
            "Main conflict resolved",
            "World state permanently changed",
            "New era begins",
        ),
        tags=("story", "climax", "final_battle"),
    ),
    StoryQuestTemplate(
        id="story_resolution_epilogue",
        name="Story Resolution and Epilogue",
        description="Tie up loose ends and show the consequences of the main story",
        story_type="resolution",
        story_impact="major",
        objectives=(
            "Deal with remaining loose ends",
            "Witness the consequences of your actions",
        ),
        character_development_opportunities=(
            "Final character reflection",
            "Legacy establishment",
            "Future goal setting",
        ),
        world_state_changes=(
            "Story consequences realized",
            "New status quo established",
            "Future possibilities opened",
        ),
        tags=("story", "resolution", "epilogue"),
    ),
)
