"""Structured turn telemetry for the question engine.

Every ``log_event`` call produces one human-readable line on stdout. With
``ENABLE_FILE_LOGS`` set, the same event is also appended as a JSON line to
``LOG_FILE`` and as a human line to the sibling ``-human.log`` file.
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any, Dict, Tuple

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "0") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/interview.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

HUMAN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Fields echoed on the human line, in this order.
HUMAN_KEYS: Tuple[str, ...] = ("node", "stage", "depth", "pattern", "source", "outcome", "reason", "turns", "ms")

_logger = logging.getLogger("interview.turns")
_logger.setLevel(LOG_LEVEL)
_logger.propagate = False


def _human_file_name(path: str) -> str:
    base = path if path.endswith(".log") else f"{path}.log"
    return base[: -len(".log")] + "-human.log"


def _rotating(path: str, formatter: logging.Formatter, *, json_lines: bool) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
    handler.setLevel(LOG_LEVEL)
    handler.setFormatter(formatter)
    handler.addFilter(lambda record: getattr(record, "is_json", False) is json_lines)
    return handler


def _ensure_handlers() -> None:
    if _logger.handlers:
        return

    console = logging.StreamHandler(stream=sys.stdout)
    console.setLevel(LOG_LEVEL)
    console.setFormatter(logging.Formatter(HUMAN_FORMAT, datefmt=DATE_FORMAT))
    console.addFilter(lambda record: getattr(record, "is_json", False) is False)
    _logger.addHandler(console)

    if not ENABLE_FILE_LOGS:
        return

    log_dir = os.path.dirname(LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    _logger.addHandler(_rotating(LOG_FILE, logging.Formatter("%(message)s"), json_lines=True))
    _logger.addHandler(
        _rotating(_human_file_name(LOG_FILE), logging.Formatter(HUMAN_FORMAT, datefmt=DATE_FORMAT), json_lines=False)
    )


def _format_human(evt: Dict[str, Any]) -> str:
    parts = [f"session={evt.get('session_id')}", f"kind={evt.get('kind')}"]
    parts.extend(f"{key}={evt[key]}" for key in HUMAN_KEYS if evt.get(key) is not None)
    return " ".join(parts)


def _emit(message: str, *, is_json: bool) -> None:
    record = _logger.makeRecord(_logger.name, logging.INFO, "", 0, message, (), None)
    record.is_json = is_json  # type: ignore[attr-defined]
    _logger.handle(record)


def log_event(kind: str, session_id: str, **fields: Any) -> None:
    """Emit one turn event (``turn.start``, ``node.end``, ``turn.end`` ...)."""

    _ensure_handlers()
    payload: Dict[str, Any] = {"ts": time.time(), "trace": str(uuid.uuid4()), "kind": kind, "session_id": session_id}
    payload.update(fields)

    _emit(_format_human(payload), is_json=False)
    if ENABLE_FILE_LOGS:
        _emit(json.dumps(payload, ensure_ascii=False, default=str), is_json=True)


__all__ = ["log_event"]
