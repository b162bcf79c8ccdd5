from __future__ import annotations

import asyncio
from dataclasses import dataclass
import os
import time
from typing import Any, Literal, Protocol, runtime_checkable

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from loguru import logger

from campaign_arcs.config.schema import AppConfigRoot, LLMConfig
from campaign_arcs.domain.hashing import prompt_cache_key, sha256_text
from campaign_arcs.llm.cache import ResponseCache
from campaign_arcs.llm.json_utils import JsonPayloadError, safe_load_json_dict, safe_load_json_list
from campaign_arcs.llm.prompts import SYSTEM_PROMPT

TaskType = Literal["story_beat_generation", "story_progression", "story_consistency_check"]


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    task_type: TaskType
    temperature: float = 0.5
    prompt_version: str = "-"


@dataclass(frozen=True)
class GenerationResponse:
    success: bool
    content: str
    cached: bool = False


@runtime_checkable
class NarrativeGenerator(Protocol):
    """Anything that can turn a prompt into a (hopefully JSON) text response."""

    async def generate(self, request: GenerationRequest) -> GenerationResponse: ...


def _short_key(value: str | None, length: int = 12) -> str:
    if not value:
        return "-"
    return value[:length]


def _is_json_document(text: str) -> bool:
    for loader in (safe_load_json_dict, safe_load_json_list):
        try:
            loader(text)
            return True
        except JsonPayloadError:
            continue
    return False


def _resolve_api_key(config: LLMConfig) -> str | None:
    if not config.api_key_env:
        return None
    api_key = os.getenv(config.api_key_env)
    if not api_key:
        raise ValueError(f"Missing required API key env for narrative generation: {config.api_key_env}")
    return api_key


def _build_chat_model(config: LLMConfig) -> ChatOpenAI:
    kwargs: dict[str, Any] = {
        "model": config.model,
        "timeout": config.timeout_s,
        # Retries are counted by ChatNarrativeGenerator; SDK retries would multiply them.
        "max_retries": 0,
    }
    if config.max_tokens:
        kwargs["max_tokens"] = config.max_tokens
    if config.base_url:
        kwargs["base_url"] = config.base_url
    api_key = _resolve_api_key(config)
    if api_key:
        kwargs["api_key"] = api_key
    return ChatOpenAI(**kwargs)


class ChatNarrativeGenerator:
    """OpenAI-compatible chat model wrapped in the generation-service contract.

    Never raises for provider failures: after the final retry it answers with
    ``success=False`` so callers can take their fallback path.
    """

    def __init__(self, config: AppConfigRoot, cache: ResponseCache | None = None):
        self.config = config
        self.cache = cache or ResponseCache.disabled()
        self.model = _build_chat_model(config.llm)
        self.model_identifier = config.llm.model
        self._semaphore = asyncio.Semaphore(max(1, config.llm.max_concurrency))

    def close(self) -> None:
        self.cache.close()

    def _log(self, request: GenerationRequest, **extra: Any):
        return logger.bind(
            task_type=request.task_type,
            model=self.model_identifier,
            prompt_version=request.prompt_version,
            **extra,
        )

    def _format_payload_for_log(self, payload: str) -> str:
        max_chars = int(self.config.observability.json_error_payload_max_chars)
        if max_chars <= 0 or len(payload) <= max_chars:
            return payload
        head = max_chars // 2
        tail = max_chars - head
        omitted = len(payload) - max_chars
        return f"{payload[:head]}\n...[truncated {omitted} chars]...\n{payload[-tail:]}"

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        cache_key = prompt_cache_key(
            request.task_type,
            self.model_identifier,
            request.prompt,
            request.temperature,
            prompt_version=request.prompt_version,
        )
        log = self._log(request, cache_key=_short_key(cache_key))

        cached = self.cache.get(cache_key)
        if cached.hit and cached.value is not None:
            log.debug("Generation cache hit")
            return GenerationResponse(success=True, content=cached.value, cached=True)

        try:
            text = await self._ainvoke_with_retry(request, cache_key=cache_key)
        except RuntimeError:
            log.warning("Narrative generation unavailable; reporting unsuccessful response")
            return GenerationResponse(success=False, content="")

        if _is_json_document(text):
            self.cache.set(cache_key, text, task_type=request.task_type)
        else:
            log.warning(
                "Generation returned non-JSON content raw_len={} raw_hash={}",
                len(text),
                _short_key(sha256_text(text)),
            )
            if self.config.observability.log_json_error_payload:
                log.warning("Generation raw_response={}", self._format_payload_for_log(text))
        return GenerationResponse(success=True, content=text)

    async def _ainvoke_with_retry(self, request: GenerationRequest, *, cache_key: str) -> str:
        attempts = max(1, self.config.llm.retries + 1)
        last_exc: Exception | None = None
        messages = [SystemMessage(SYSTEM_PROMPT), HumanMessage(request.prompt)]
        runnable = self.model.bind(temperature=request.temperature)

        for attempt in range(attempts):
            attempt_started = time.perf_counter()
            try:
                async with self._semaphore:
                    response = await runnable.ainvoke(messages)
                text = str(response.content).strip()
                if not text:
                    raise ValueError("Empty generation response")
                return text
            except Exception as exc:  # noqa: BLE001
                last_exc = exc
                elapsed_ms = int((time.perf_counter() - attempt_started) * 1000)
                log = self._log(request, cache_key=_short_key(cache_key), attempt=f"{attempt + 1}/{attempts}")
                if self.config.observability.log_retry_attempts:
                    log.warning(
                        "Generation call failed elapsed_ms={} error_type={} error={}",
                        elapsed_ms,
                        type(exc).__name__,
                        exc,
                    )
                if attempt == attempts - 1:
                    log.exception("Generation call failed on final attempt")
                else:
                    await asyncio.sleep(min(0.5 * (2**attempt), 4.0))

        raise RuntimeError("Generation call failed after retries") from last_exc


class DisabledNarrativeGenerator:
    """Stand-in used when no provider is configured; every call takes the fallback path."""

    model_identifier = "disabled"

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        logger.bind(task_type=request.task_type).debug("Narrative generation disabled")
        return GenerationResponse(success=False, content="")

    def close(self) -> None:
        pass


def build_generator(config: AppConfigRoot) -> ChatNarrativeGenerator | DisabledNarrativeGenerator:
    if config.llm.kind == "disabled":
        return DisabledNarrativeGenerator()

    cache = ResponseCache(
        config.cache.enabled,
        config.cache.backend,
        config.app.data_dir,
        ttl_seconds=config.cache.ttl_seconds,
    )
    try:
        return ChatNarrativeGenerator(config, cache=cache)
    except ValueError as exc:
        logger.warning("Narrative generation disabled: {}", exc)
        cache.close()
        return DisabledNarrativeGenerator()
