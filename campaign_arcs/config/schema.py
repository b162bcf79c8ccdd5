from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data_dir: Path = Field(default=Path("./data"))
    log_level: str = Field(default="INFO")
    log_to_file: bool = False


class ArcDefaultsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tone: Literal["light", "serious", "dark", "humorous", "mysterious"] = "serious"
    pacing: Literal["slow", "normal", "fast"] = "normal"
    total_chapters: int = 10

    @field_validator("total_chapters")
    @classmethod
    def _positive_chapters(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("total_chapters must be positive")
        return value


class ProgressionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    require_milestones: bool = True
    require_world_changes: bool = True
    min_beats_per_chapter: int = 2
    min_beats_per_act: int = 3
    milestone_coverage: float = 0.8
    world_change_coverage: float = 0.6
    # Heuristic average used by estimated_beats_remaining.
    beats_per_chapter_estimate: int = 3

    @field_validator("min_beats_per_chapter", "min_beats_per_act", "beats_per_chapter_estimate")
    @classmethod
    def _non_negative_int(cls, value: int) -> int:
        if value < 0:
            raise ValueError("progression integer settings must be non-negative")
        return value

    @field_validator("milestone_coverage", "world_change_coverage")
    @classmethod
    def _coverage_range(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError("coverage thresholds must be between 0 and 1")
        return value


class ValidationConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    valid_threshold: int = 70
    good_threshold: int = 85
    max_priority_suggestions: int = 3
    max_warning_recommendations: int = 2
    max_recommendations: int = 5
    coherence_enabled: bool = True

    @field_validator("valid_threshold", "good_threshold")
    @classmethod
    def _score_range(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError("score thresholds must be between 0 and 100")
        return value

    @field_validator("max_priority_suggestions", "max_warning_recommendations", "max_recommendations")
    @classmethod
    def _non_negative_caps(cls, value: int) -> int:
        if value < 0:
            raise ValueError("recommendation caps must be non-negative")
        return value

    @model_validator(mode="after")
    def _validate_tiers(self) -> "ValidationConfig":
        if self.good_threshold < self.valid_threshold:
            raise ValueError("good_threshold must be >= valid_threshold")
        return self


class LLMConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["openai_compatible", "disabled"] = "openai_compatible"
    base_url: str | None = None
    api_key_env: str | None = "OPENAI_API_KEY"
    model: str = "gpt-4.1-mini"
    timeout_s: int = 60
    max_concurrency: int = 4
    retries: int = 2
    max_tokens: int | None = None
    beat_suggestion_temperature: float = 0.7
    improvement_temperature: float = 0.5
    coherence_temperature: float = 0.3

    @field_validator("beat_suggestion_temperature", "improvement_temperature", "coherence_temperature")
    @classmethod
    def _temperature_range(cls, value: float) -> float:
        if not 0 <= value <= 2:
            raise ValueError("temperature must be between 0 and 2")
        return value

    @field_validator("timeout_s", "max_concurrency", "retries")
    @classmethod
    def _non_negative_int(cls, value: int) -> int:
        if value < 0:
            raise ValueError("llm integer settings must be non-negative")
        return value

    @field_validator("max_tokens")
    @classmethod
    def _positive_optional_max_tokens(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError("max_tokens must be positive when provided")
        return value


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sqlite_path: Path = Field(default=Path("./data/campaign_arcs.db"))


class CacheConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    backend: str = "sqlite"
    ttl_seconds: int = 604_800


class ObservabilityConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    log_json_error_payload: bool = True
    json_error_payload_max_chars: int = 2000
    log_retry_attempts: bool = True

    @field_validator("json_error_payload_max_chars")
    @classmethod
    def _non_negative_chars(cls, value: int) -> int:
        if value < 0:
            raise ValueError("json_error_payload_max_chars must be non-negative")
        return value


class AppConfigRoot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    app: AppConfig = AppConfig()
    arcs: ArcDefaultsConfig = ArcDefaultsConfig()
    progression: ProgressionConfig = ProgressionConfig()
    validation: ValidationConfig = ValidationConfig()
    llm: LLMConfig = LLMConfig()
    storage: StorageConfig = StorageConfig()
    cache: CacheConfig = CacheConfig()
    observability: ObservabilityConfig = ObservabilityConfig()


def resolve_paths(config: AppConfigRoot, base_dir: Path) -> AppConfigRoot:
    def _resolve(path_value: Path) -> Path:
        return path_value if path_value.is_absolute() else (base_dir / path_value).resolve()

    config.app.data_dir = _resolve(config.app.data_dir)
    config.storage.sqlite_path = _resolve(config.storage.sqlite_path)
    return config
