"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging

configure() selects the rendering (JSONL or a compact text line for
interactive use) and a minimum level. Events carrying an "error" field are
WARNING; everything else is INFO.
"""

from __future__ import annotations

import json
import sys
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}

_json_logs: bool = True
_min_level: int = _LEVELS["INFO"]


def configure(*, json_logs: bool = True, level: str = "INFO") -> None:
    """
    Set rendering and minimum level for subsequent log_event() calls.

    Unknown level names fall back to INFO.
    """
    global _json_logs, _min_level  # pylint: disable=global-statement
    _json_logs = json_logs
    _min_level = _LEVELS.get(level.upper(), _LEVELS["INFO"])


def _level_of(event: Mapping[str, Any]) -> int:
    return _LEVELS["WARNING"] if event.get("error") else _LEVELS["INFO"]


def _render_text(event: Mapping[str, Any]) -> str:
    head = str(event.get("event_type", "EVENT"))
    rest = " ".join(
        f"{k}={v}" for k, v in event.items()
        if k not in ("event_type", "ts_ms") and v not in (None, {}, "")
    )
    return f"{head} {rest}".rstrip()


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single event line to stdout.

    The caller is responsible for:
    - Supplying a fully-formed event dict
    - Including ts_ms, session_id, turn_state, etc.

    This function:
    - Serializes to JSON (or text when JSON logs are off)
    - Writes exactly one line, or nothing if below the minimum level
    - Flushes immediately (no buffering)
    - Never raises
    """
    if _level_of(event) < _min_level:
        return

    if not _json_logs:
        _print(_render_text(event))
        return

    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the engine
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
