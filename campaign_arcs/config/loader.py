from __future__ import annotations

from pathlib import Path
from typing import Any
import os

import yaml
from loguru import logger

from campaign_arcs.config.schema import AppConfigRoot, resolve_paths

ENV_DATA_DIR = "CAMPAIGN_ARCS_DATA_DIR"
ENV_LOG_LEVEL = "CAMPAIGN_ARCS_LOG_LEVEL"
ENV_LLM_BASE_URL = "CAMPAIGN_ARCS_LLM_BASE_URL"
ENV_LLM_MODEL = "CAMPAIGN_ARCS_LLM_MODEL"

# Environment variable -> (section, key) it overrides.
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    ENV_DATA_DIR: ("app", "data_dir"),
    ENV_LOG_LEVEL: ("app", "log_level"),
    ENV_LLM_BASE_URL: ("llm", "base_url"),
    ENV_LLM_MODEL: ("llm", "model"),
}


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _parse_dotenv_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    if line.startswith("export "):
        line = line[len("export ") :]
    key, value = line.split("=", 1)
    return key.strip(), value.strip().strip("\"'")


def _load_dotenv(dotenv_path: Path) -> None:
    """Populate ``os.environ`` from ``.env`` without overriding the shell."""
    if not dotenv_path.exists():
        return
    for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
        parsed = _parse_dotenv_line(raw_line)
        if parsed is not None:
            os.environ.setdefault(*parsed)


def _apply_env(config_data: dict[str, Any]) -> dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config_data.setdefault(section, {})[key] = value
    return config_data


def load_config(
    config_path: Path | None = None,
    profile: str | None = None,
    overrides: dict[str, Any] | None = None,
    base_dir: Path | None = None,
) -> AppConfigRoot:
    base_dir = base_dir or Path.cwd()
    _load_dotenv(base_dir / ".env")

    sources = [base_dir / "configs" / "default.yaml"]
    if profile:
        sources.append(base_dir / "configs" / "profiles" / f"{profile}.yaml")
    if config_path:
        sources.append(config_path)

    config_data: dict[str, Any] = {}
    for source in sources:
        config_data = _deep_merge(config_data, _read_yaml(source))
    if overrides:
        config_data = _deep_merge(config_data, overrides)
    config_data = _apply_env(config_data)

    config = resolve_paths(AppConfigRoot.model_validate(config_data), base_dir)
    logger.debug(
        "Loaded config base_dir={} sources={}",
        base_dir,
        [str(source) for source in sources if source.exists()],
    )
    return config


def masked_env_snapshot(config: AppConfigRoot | None = None) -> dict[str, str | None]:
    snapshot: dict[str, str | None] = {name: os.getenv(name) for name in ENV_OVERRIDES}
    if config is None:
        return snapshot

    snapshot["llm.base_url"] = config.llm.base_url
    snapshot["llm.model"] = config.llm.model
    if config.llm.api_key_env:
        snapshot[config.llm.api_key_env] = "***" if os.getenv(config.llm.api_key_env) else None
    return snapshot
