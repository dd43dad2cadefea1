from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict, Optional


Json = Dict[str, Any]

_CONFIGURED_FLAG = "_ledgermsg_configured"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.environ.get("LEDGERMSG_LOG_LEVEL") or "INFO").strip().upper()
    return getattr(logging, name, logging.INFO)


def configure_structured_logging(level: Optional[str] = None) -> None:
    """Send ledgermsg's JSONL events to stderr, one object per line.

    ``level`` is usually CodecConfig.log_level; without it LEDGERMSG_LOG_LEVEL
    (then INFO) applies. A second call only changes the level.
    """
    lvl = _resolve_level(level)
    root = logging.getLogger()
    if getattr(root, _CONFIGURED_FLAG, False):
        root.setLevel(lvl)
        for h in root.handlers:
            h.setLevel(lvl)
        return

    handler = logging.StreamHandler()
    handler.setLevel(lvl)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root.handlers = [handler]
    root.setLevel(lvl)
    setattr(root, _CONFIGURED_FLAG, True)


def log_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Log ``event`` and its fields as one sorted, compact JSON object.

    Values json cannot encode fall back to a ``key=repr`` line.
    """
    payload: Json = {"ts_ms": _now_ms(), "event": str(event)}
    payload.update(fields)
    try:
        line = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        line = " ".join([f"event={event}"] + [f"{k}={fields[k]!r}" for k in sorted(fields)])
    logger.info(line)
