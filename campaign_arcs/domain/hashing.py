from __future__ import annotations

import hashlib

import orjson

from campaign_arcs.domain.models import StoryArc


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def arc_snapshot_json(arc: StoryArc) -> str:
    payload = arc.model_dump(mode="json", exclude={"version", "updated_at"})
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS).decode("utf-8")


def arc_snapshot_hash(arc: StoryArc) -> str:
    return sha256_text(arc_snapshot_json(arc))


def prompt_cache_key(task_type: str, model: str, prompt: str, temperature: float, prompt_version: str = "-") -> str:
    return sha256_text(f"{task_type}::{prompt_version}::{model}::{temperature}::{sha256_text(prompt)}")
