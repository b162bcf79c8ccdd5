from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

# Extras every record carries so the format string never raises KeyError.
_DEFAULT_CONTEXT = {
    "campaign_id": "-",
    "rule": "-",
    "task_type": "-",
    "attempt": "-",
    "cache_key": "-",
}

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> "
    "| <level>{level:<8}</level> "
    "| <cyan>{extra[campaign_id]}</cyan> "
    "rule={extra[rule]} task={extra[task_type]} attempt={extra[attempt]} cache={extra[cache_key]} "
    "| {message}"
)

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{line} "
    "| campaign={extra[campaign_id]} rule={extra[rule]} task={extra[task_type]} "
    "attempt={extra[attempt]} cache={extra[cache_key]} | {message}"
)


def _inject_default_context(record: dict) -> None:
    extra = record["extra"]
    for key, value in _DEFAULT_CONTEXT.items():
        extra.setdefault(key, value)


def setup_logging(level: str, log_dir: Path | None = None) -> None:
    """Configure loguru for CLI runs.

    Console output goes to stderr. When ``log_dir`` is given, DEBUG and above
    is also written to a rotating ``campaign_arcs.log`` there.
    """
    logger.remove()
    logger.configure(patcher=_inject_default_context)
    logger.add(sys.stderr, level=level.upper(), backtrace=True, diagnose=False, format=_CONSOLE_FORMAT)
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "campaign_arcs.log",
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
            backtrace=True,
            diagnose=False,
            format=_FILE_FORMAT,
        )
