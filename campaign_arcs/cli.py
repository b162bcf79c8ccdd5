from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Any, get_args

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.pretty import Pretty
from rich.table import Table

from campaign_arcs.config import AppConfigRoot, load_config
from campaign_arcs.config.loader import masked_env_snapshot
from campaign_arcs.domain.models import BeatType, Importance, MilestoneType, StoryArc, WorldChangeType, WorldImpact
from campaign_arcs.domain.quest_links import objectives_progress
from campaign_arcs.errors import CampaignArcsError
from campaign_arcs.llm.client import NarrativeGenerator, build_generator
from campaign_arcs.progression.gate import AdvancementCheck, ProgressionGate
from campaign_arcs.quests.integration import QuestStoryIntegration
from campaign_arcs.service import ArcOrchestrator
from campaign_arcs.storage.db import init_db_service, session_scope, shutdown_db_service
from campaign_arcs.utils.logging import setup_logging
from campaign_arcs.validation.types import ValidationReport
from campaign_arcs.validation.validator import ConsistencyValidator, default_rules

console = Console()

BEAT_TYPES = list(get_args(BeatType))
IMPORTANCE = list(get_args(Importance))
MILESTONE_TYPES = list(get_args(MilestoneType))
WORLD_CHANGE_TYPES = list(get_args(WorldChangeType))
WORLD_IMPACT = list(get_args(WorldImpact))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="campaign-arcs")
    parser.add_argument("--config", type=Path, default=None, help="Path to custom config YAML")
    parser.add_argument("--profile", type=str, default=None, help="Config profile name")
    parser.add_argument("--data-dir", type=Path, default=None, help="Override data directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("config", help="Validate and print effective config")
    subparsers.add_parser("list", help="List campaigns that have a story arc")

    create_parser = subparsers.add_parser("create", help="Create a story arc for a campaign")
    create_parser.add_argument("--campaign", required=True, help="Campaign id")
    create_parser.add_argument("--theme", required=True, help="Campaign theme")
    create_parser.add_argument("--tone", choices=["light", "serious", "dark", "humorous", "mysterious"], default=None)
    create_parser.add_argument("--pacing", choices=["slow", "normal", "fast"], default=None)
    create_parser.add_argument("--chapters", type=int, default=None, help="Total chapters")

    show_parser = subparsers.add_parser("show", help="Show story arc beats and state")
    show_parser.add_argument("--campaign", required=True, help="Campaign id")

    beat_parser = subparsers.add_parser("add-beat", help="Add a story beat")
    beat_parser.add_argument("--campaign", required=True, help="Campaign id")
    beat_parser.add_argument("--title", required=True)
    beat_parser.add_argument("--description", required=True)
    beat_parser.add_argument("--type", choices=BEAT_TYPES, default="development")
    beat_parser.add_argument("--importance", choices=IMPORTANCE, default="moderate")
    beat_parser.add_argument("--chapter", type=int, default=None, help="Defaults to the current chapter")
    beat_parser.add_argument("--act", type=int, default=None, help="Defaults to the current act")
    beat_parser.add_argument("--character", action="append", default=[], help="Character id (repeatable)")
    beat_parser.add_argument("--npc", action="append", default=[], help="NPC name (repeatable)")
    beat_parser.add_argument("--consequence", action="append", default=[], help="Consequence (repeatable)")
    beat_parser.add_argument("--location", default=None)

    complete_parser = subparsers.add_parser("complete-beat", help="Mark a story beat completed")
    complete_parser.add_argument("--campaign", required=True, help="Campaign id")
    complete_parser.add_argument("--beat-id", required=True)
    complete_parser.add_argument("--outcome", default=None)
    complete_parser.add_argument("--notes", default=None)

    milestone_parser = subparsers.add_parser("add-milestone", help="Record a character milestone")
    milestone_parser.add_argument("--campaign", required=True, help="Campaign id")
    milestone_parser.add_argument("--character", required=True, help="Character id")
    milestone_parser.add_argument("--title", required=True)
    milestone_parser.add_argument("--description", required=True)
    milestone_parser.add_argument("--type", choices=MILESTONE_TYPES, default="story")
    milestone_parser.add_argument("--impact", choices=IMPORTANCE, default="moderate")
    milestone_parser.add_argument("--beat-id", default=None, help="Story beat this milestone came from")

    change_parser = subparsers.add_parser("add-world-change", help="Record a world state change")
    change_parser.add_argument("--campaign", required=True, help="Campaign id")
    change_parser.add_argument("--title", required=True)
    change_parser.add_argument("--description", required=True)
    change_parser.add_argument("--type", choices=WORLD_CHANGE_TYPES, default="event")
    change_parser.add_argument("--impact", choices=WORLD_IMPACT, default="moderate")
    change_parser.add_argument("--affects", action="append", default=[], help="Affected element (repeatable)")
    change_parser.add_argument("--location", default=None)
    change_parser.add_argument("--permanent", action="store_true")
    change_parser.add_argument("--beat-id", default=None, help="Story beat that caused this change")

    advance_parser = subparsers.add_parser(
        "advance",
        help="Advance to the next chapter (requires milestones and world changes for completed beats unless --force)",
    )
    advance_parser.add_argument("--campaign", required=True, help="Campaign id")
    advance_parser.add_argument("--force", action="store_true", help="Advance even if requirements are unmet")

    progression_parser = subparsers.add_parser("progression", help="Show chapter progression data")
    progression_parser.add_argument("--campaign", required=True, help="Campaign id")

    can_parser = subparsers.add_parser("can-advance", help="Check chapter or act advancement eligibility")
    can_parser.add_argument("--campaign", required=True, help="Campaign id")
    can_parser.add_argument("--level", choices=["chapter", "act"], default="chapter")

    suggest_parser = subparsers.add_parser("suggest", help="Suggest upcoming story beats")
    suggest_parser.add_argument("--campaign", required=True, help="Campaign id")
    suggest_parser.add_argument("--count", type=int, default=3)

    improve_parser = subparsers.add_parser("improve", help="Suggest story improvements")
    improve_parser.add_argument("--campaign", required=True, help="Campaign id")

    validate_parser = subparsers.add_parser("validate", help="Score the story arc for consistency")
    validate_parser.add_argument("--campaign", required=True, help="Campaign id")

    delete_parser = subparsers.add_parser("delete", help="Delete a campaign's story arc")
    delete_parser.add_argument("--campaign", required=True, help="Campaign id")

    return parser


def _build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.data_dir:
        overrides["app"] = {"data_dir": str(args.data_dir)}
    return overrides


def _milestone_payload(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "character_id": args.character,
        "type": args.type,
        "title": args.title,
        "description": args.description,
        "impact": args.impact,
        "story_beat_id": args.beat_id,
    }


def _world_change_payload(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "type": args.type,
        "title": args.title,
        "description": args.description,
        "impact": args.impact,
        "affected_elements": args.affects,
        "location": args.location,
        "permanent": args.permanent,
        "story_beat_id": args.beat_id,
    }


def _quest_rows(arc: StoryArc) -> list[tuple[str, str, str, str, str]]:
    rows = []
    for link in arc.quest_progress:
        done = sum(1 for objective in link.objectives if objective.completed)
        progress = f"{done}/{len(link.objectives)} ({objectives_progress(link):.0%})"
        rows.append((link.quest_id, link.name, link.status, link.story_beat_id or "-", progress))
    return rows


def build_orchestrator(config: AppConfigRoot, generator: NarrativeGenerator) -> ArcOrchestrator:
    gate = ProgressionGate(generator, config.progression, config.llm)
    coherence_generator = generator if config.validation.coherence_enabled else None
    validator = ConsistencyValidator(
        default_rules(coherence_generator, temperature=config.llm.coherence_temperature),
        config.validation,
    )
    return ArcOrchestrator(session_scope, gate, validator, QuestStoryIntegration())


def _print_config(config: AppConfigRoot) -> None:
    console.print(Panel(Pretty(config.model_dump(mode="json")), title="Effective Config"))
    console.print(Panel(Pretty(masked_env_snapshot(config)), title="Env Snapshot"))


def _print_arc(arc: StoryArc) -> None:
    header = Table(title=f"Story Arc: {arc.campaign_id}", show_header=True, header_style="bold")
    header.add_column("Field")
    header.add_column("Value")
    header.add_row("Theme", arc.theme)
    header.add_row("Tone / Pacing", f"{arc.tone} / {arc.pacing}")
    header.add_row("Phase", arc.story_phase)
    header.add_row("Chapter", f"{arc.current_chapter}/{arc.total_chapters}")
    header.add_row("Act", str(arc.current_act))
    header.add_row("Beats (completed/total)", f"{arc.completed_story_beats}/{len(arc.story_beats)}")
    header.add_row("Milestones", str(len(arc.character_milestones)))
    header.add_row("World changes", str(len(arc.world_state_changes)))
    header.add_row("Quest links", str(len(arc.quest_progress)))
    header.add_row("Version", str(arc.version))
    console.print(header)

    beats = Table(title="Story Beats", show_header=True, header_style="bold")
    for column in ("ID", "Title", "Type", "Importance", "Ch", "Act", "Done"):
        beats.add_column(column)
    for beat in arc.story_beats:
        beats.add_row(
            beat.id,
            beat.title,
            beat.type,
            beat.importance,
            str(beat.chapter),
            str(beat.act),
            "yes" if beat.completed else "no",
        )
    console.print(beats)

    quest_rows = _quest_rows(arc)
    if quest_rows:
        quests = Table(title="Quest Links", show_header=True, header_style="bold")
        for column in ("Quest", "Name", "Status", "Beat", "Objectives"):
            quests.add_column(column)
        for row in quest_rows:
            quests.add_row(*row)
        console.print(quests)


def _print_check(title: str, check: AdvancementCheck) -> None:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Requirement")
    table.add_column("Missing")
    for requirement, missing in zip(check.requirements, check.missing):
        table.add_row(requirement, missing)
    console.print(table)
    status = "[green]can advance[/green]" if check.can_advance else "[yellow]requirements unmet[/yellow]"
    console.print(Panel(status, title="Result"))


def _print_report(report: ValidationReport) -> None:
    table = Table(title="Consistency Report", show_header=True, header_style="bold")
    for column in ("Rule", "Passed", "Score", "Issues", "Warnings", "Suggestions"):
        table.add_column(column)
    for result in report.results:
        table.add_row(
            result.rule_name,
            "yes" if result.passed else "no",
            str(result.score),
            str(len(result.issues)),
            str(len(result.warnings)),
            str(len(result.suggestions)),
        )
    console.print(table)
    verdict = "valid" if report.valid else "invalid"
    console.print(Panel(f"Overall score {report.overall_score} ({verdict})", title="Result"))
    if report.recommendations:
        console.print(Panel("\n".join(f"- {item}" for item in report.recommendations), title="Recommendations"))


async def _run_command(args: argparse.Namespace, config: AppConfigRoot, orchestrator: ArcOrchestrator) -> None:
    if args.command == "list":
        table = Table(title="Campaigns", show_header=True, header_style="bold")
        table.add_column("Campaign")
        for campaign_id in await orchestrator.list_campaigns():
            table.add_row(campaign_id)
        console.print(table)
        return

    if args.command == "create":
        arc = await orchestrator.create_story_arc(
            args.campaign,
            args.theme,
            tone=args.tone or config.arcs.tone,
            pacing=args.pacing or config.arcs.pacing,
            total_chapters=args.chapters or config.arcs.total_chapters,
        )
        _print_arc(arc)
        return

    if args.command == "show":
        _print_arc(await orchestrator.get_story_arc(args.campaign))
        return

    if args.command == "add-beat":
        arc = await orchestrator.get_story_arc(args.campaign)
        beat_id = await orchestrator.add_beat(
            args.campaign,
            {
                "title": args.title,
                "description": args.description,
                "type": args.type,
                "importance": args.importance,
                "chapter": args.chapter or arc.current_chapter,
                "act": args.act or arc.current_act,
                "characters": args.character,
                "npcs": args.npc,
                "consequences": args.consequence,
                "location": args.location,
            },
        )
        console.print(Panel(beat_id, title="Beat added"))
        return

    if args.command == "complete-beat":
        changed = await orchestrator.complete_beat(args.campaign, args.beat_id, outcome=args.outcome, notes=args.notes)
        message = "Beat completed" if changed else "Beat was already completed"
        console.print(Panel(message, title=args.beat_id))
        return

    if args.command == "add-milestone":
        await orchestrator.add_milestone(args.campaign, _milestone_payload(args))
        console.print(Panel(args.title, title="Milestone recorded"))
        return

    if args.command == "add-world-change":
        change_id = await orchestrator.add_world_change(args.campaign, _world_change_payload(args))
        console.print(Panel(change_id, title="World change recorded"))
        return

    if args.command == "advance":
        if not args.force:
            check = await orchestrator.check_chapter_advance(args.campaign)
            if not check.can_advance:
                _print_check("Chapter Advancement", check)
                console.print("Use --force to advance anyway.")
                return
        advanced = await orchestrator.advance_chapter(args.campaign)
        arc = await orchestrator.get_story_arc(args.campaign)
        message = (
            f"Now at chapter {arc.current_chapter}, act {arc.current_act} ({arc.story_phase})"
            if advanced
            else "Already at the final chapter"
        )
        console.print(Panel(message, title="Advance"))
        return

    if args.command == "progression":
        data = await orchestrator.get_chapter_progression_data(args.campaign)
        console.print(Panel(Pretty(data.model_dump(mode="json")), title="Chapter Progression"))
        return

    if args.command == "can-advance":
        if args.level == "act":
            _print_check("Act Advancement", await orchestrator.check_act_advance(args.campaign))
        else:
            _print_check("Chapter Advancement", await orchestrator.check_chapter_advance(args.campaign))
        return

    if args.command == "suggest":
        suggestions = await orchestrator.suggest_story_beats(args.campaign, count=args.count)
        table = Table(title="Story Beat Suggestions", show_header=True, header_style="bold")
        for column in ("Title", "Type", "Importance", "Description", "Reasoning"):
            table.add_column(column)
        for suggestion in suggestions:
            table.add_row(
                suggestion.title,
                suggestion.type,
                suggestion.importance,
                suggestion.description,
                suggestion.reasoning,
            )
        console.print(table)
        return

    if args.command == "improve":
        improvements = await orchestrator.suggest_story_improvements(args.campaign)
        console.print(Panel(Pretty(improvements.model_dump()), title="Story Improvements"))
        return

    if args.command == "validate":
        _print_report(await orchestrator.validate_story_arc(args.campaign))
        return

    if args.command == "delete":
        await orchestrator.delete_story_arc(args.campaign)
        console.print(Panel(f"Deleted story arc for {args.campaign}", title="Delete"))
        return

    raise ValueError(f"Unsupported command: {args.command}")


async def _main_async(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    config = load_config(
        config_path=args.config,
        profile=args.profile,
        overrides=_build_overrides(args),
    )

    setup_logging(config.app.log_level, config.app.data_dir / "logs" if config.app.log_to_file else None)
    logger.info("Loaded configuration")

    if args.command == "config":
        _print_config(config)
        return 0

    await init_db_service(config.storage.sqlite_path)
    generator = build_generator(config)
    try:
        await _run_command(args, config, build_orchestrator(config, generator))
    except CampaignArcsError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    finally:
        generator.close()
        await shutdown_db_service()
    return 0


def main(argv: list[str] | None = None) -> None:
    raise SystemExit(asyncio.run(_main_async(argv)))


if __name__ == "__main__":
    main()
