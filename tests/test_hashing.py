from __future__ import annotations

from campaign_arcs.domain.hashing import arc_snapshot_hash, prompt_cache_key, sha256_text
from campaign_arcs.domain.models import StoryArc


def test_sha256_text_deterministic() -> None:
    assert sha256_text("hello") == sha256_text("hello")
    assert sha256_text("hello") != sha256_text("world")
    assert len(sha256_text("hello")) == 64


def test_prompt_cache_key_depends_on_every_part() -> None:
    base = prompt_cache_key("story_progression", "m", "prompt", 0.5)

    assert base == prompt_cache_key("story_progression", "m", "prompt", 0.5)
    assert base != prompt_cache_key("story_beat_generation", "m", "prompt", 0.5)
    assert base != prompt_cache_key("story_progression", "other", "prompt", 0.5)
    assert base != prompt_cache_key("story_progression", "m", "prompt!", 0.5)
    assert base != prompt_cache_key("story_progression", "m", "prompt", 0.7)
    assert base != prompt_cache_key("story_progression", "m", "prompt", 0.5, prompt_version="v2")


def test_arc_snapshot_hash_ignores_version_only() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Mystery")
    before = arc_snapshot_hash(arc)

    arc.version = 7
    assert arc_snapshot_hash(arc) == before

    arc.current_chapter = 2
    assert arc_snapshot_hash(arc) != before
