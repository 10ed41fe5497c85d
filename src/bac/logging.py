from __future__ import annotations
import sys
import uuid
from contextlib import contextmanager
from typing import Optional, Any, Dict, Iterator
from loguru import logger

_configured = False

CONSOLE_FORMAT = "<level>{level: <8}</level> | <green>{time:HH:mm:ss}</green> | <cyan>{message}</cyan>"


def setup_console(level: str = "INFO") -> None:
    global _configured
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT, enqueue=True, backtrace=False, diagnose=False)
    _configured = True


def setup_json(path: str, level: str = "DEBUG") -> None:
    logger.add(path, level=level.upper(), serialize=True, enqueue=True)


def configure_logging(log_level: str = "INFO", log_json_path: Optional[str] = None) -> None:
    """Human console sink plus an optional JSON lines file for structured events."""
    setup_console(log_level)
    if log_json_path:
        setup_json(log_json_path)


def is_configured() -> bool:
    return _configured


@contextmanager
def bind_run(run_id: Optional[str] = None) -> Iterator[str]:
    """Tag records logged inside the block with a batch run id; yields the id.

    The id lives in the current context only, so concurrent batches keep
    their own ids.
    """
    rid = run_id or uuid.uuid4().hex[:12]
    with logger.contextualize(run_id=rid):
        yield rid


def get_logger():
    return logger


def log_event(action: str, **fields: Any) -> None:
    # None values are dropped; `msg` and `level` are taken out of the fields.
    clean: Dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
    msg = clean.pop("msg", action)
    level = clean.pop("level", "INFO").upper()
    logger.bind(action=action, **clean).log(level, msg)


def truncate(text: str, max_len: int = 4096, max_lines: int = 20) -> str:
    """Keep the tail of encoder output: at most `max_lines` lines and `max_len` chars."""
    if not text:
        return ""
    lines = text.strip().splitlines()
    if len(lines) > max_lines:
        text = "\n".join(["... (truncated)"] + lines[-max_lines:])
    else:
        text = "\n".join(lines)

    if len(text) > max_len:
        text = "... (truncated)\n" + text[-max_len:]
    return text
