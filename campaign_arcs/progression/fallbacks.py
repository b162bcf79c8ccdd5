from __future__ import annotations

from campaign_arcs.llm.responses import BeatSuggestion, StoryImprovements


def fallback_suggestions(context: str) -> list[BeatSuggestion]:
    """Stable suggestions returned whenever generation cannot be used."""
    return [
        BeatSuggestion(
            title="The Challenge",
            description=f"A significant challenge related to {context} that tests the party's abilities.",
            type="development",
            importance="moderate",
            consequences=["Character growth", "Plot advancement", "Skill development"],
            npcs=["Challenger", "Helper"],
            objectives=["Overcome the challenge", "Learn from the experience", "Gain new insights"],
            reasoning="Fallback suggestion for story progression",
        ),
        BeatSuggestion(
            title="The Discovery",
            description="An important discovery that reveals new information or opportunities.",
            type="setup",
            importance="minor",
            consequences=["Information gain", "New possibilities", "Character motivation"],
            npcs=["Informant", "Witness"],
            objectives=["Investigate the discovery", "Understand its significance", "Plan next steps"],
            reasoning="Fallback suggestion for information gathering",
        ),
        BeatSuggestion(
            title="The Confrontation",
            description="A confrontation that tests the party's resolve and teamwork.",
            type="climax",
            importance="major",
            consequences=["Character development", "Relationship changes", "Plot resolution"],
            npcs=["Antagonist", "Ally"],
            objectives=["Resolve the conflict", "Protect allies", "Achieve objectives"],
            reasoning="Fallback suggestion for dramatic tension",
        ),
    ]


def fallback_improvements() -> StoryImprovements:
    return StoryImprovements(
        pacing=[
            "Consider adding more story beats to chapters with few events",
            "Balance story beats across all acts for better pacing",
        ],
        character_development=[
            "Add character milestones for completed story beats",
            "Include more relationship development opportunities",
        ],
        world_building=[
            "Link world state changes to story events",
            "Add more environmental and faction developments",
        ],
        plot_structure=[
            "Ensure story beats build upon each other logically",
            "Add more plot twists and character motivations",
        ],
    )
