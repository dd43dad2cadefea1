# src/ledgermsg/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

Json = Dict[str, Any]


class ConfigError(ValueError):
    pass


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


@dataclass(frozen=True)
class CodecConfig:
    # None -> packaged request_schema.yaml
    schema_path: Optional[str]

    max_depth: int
    max_element_bytes: int

    log_level: str


_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_codec_config(cfg: CodecConfig) -> None:
    """Fail-fast validation; a bad limit should never reach the decoder."""

    if int(cfg.max_depth) < 1 or int(cfg.max_depth) > 1024:
        raise ConfigError(f"max_depth must be 1..1024; got: {cfg.max_depth}")

    if int(cfg.max_element_bytes) < 1:
        raise ConfigError(f"max_element_bytes must be > 0; got: {cfg.max_element_bytes}")

    level = str(cfg.log_level or "").strip().upper()
    if level not in _ALLOWED_LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {sorted(_ALLOWED_LOG_LEVELS)}; got: {cfg.log_level!r}")

    if cfg.schema_path is not None and not Path(cfg.schema_path).is_file():
        raise ConfigError(f"schema_path does not exist or is not a file: {cfg.schema_path!r}")


def default_codec_config() -> CodecConfig:
    return CodecConfig(
        schema_path=None,
        max_depth=32,
        max_element_bytes=16 * 1024 * 1024,
        log_level="INFO",
    )


def _apply_env_overrides(cfg: CodecConfig) -> CodecConfig:
    env = os.environ
    return replace(
        cfg,
        schema_path=_as_opt_str(env.get("LEDGERMSG_SCHEMA_PATH")) or cfg.schema_path,
        max_depth=_as_int(env.get("LEDGERMSG_MAX_DEPTH"), cfg.max_depth),
        max_element_bytes=_as_int(env.get("LEDGERMSG_MAX_ELEMENT_BYTES"), cfg.max_element_bytes),
        log_level=_as_str(env.get("LEDGERMSG_LOG_LEVEL"), cfg.log_level),
    )


def read_codec_config_file(path: str | Path) -> CodecConfig:
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {p}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"config file is not valid JSON: {p}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError("codec config must be a JSON object")

    d = default_codec_config()

    schema_path = _as_opt_str(raw.get("schema_path"))
    if schema_path is not None and not Path(schema_path).is_absolute():
        # relative schema paths are relative to the config file
        schema_path = str((p.parent / schema_path).resolve())

    cfg = CodecConfig(
        schema_path=schema_path,
        max_depth=_as_int(raw.get("max_depth"), d.max_depth),
        max_element_bytes=_as_int(raw.get("max_element_bytes"), d.max_element_bytes),
        log_level=_as_str(raw.get("log_level"), d.log_level),
    )

    validate_codec_config(cfg)
    return cfg


def load_codec_config(*, config_path: Optional[str] = None) -> CodecConfig:
    """File (argument or LEDGERMSG_CONFIG_PATH) or defaults, then env overrides."""
    p = config_path or os.environ.get("LEDGERMSG_CONFIG_PATH")
    cfg = read_codec_config_file(p) if p else default_codec_config()
    cfg = _apply_env_overrides(cfg)
    validate_codec_config(cfg)
    return cfg


def apply_codec_config_to_env(cfg: CodecConfig) -> None:
    validate_codec_config(cfg)
    if cfg.schema_path:
        os.environ["LEDGERMSG_SCHEMA_PATH"] = cfg.schema_path
    os.environ["LEDGERMSG_MAX_DEPTH"] = str(int(cfg.max_depth))
    os.environ["LEDGERMSG_MAX_ELEMENT_BYTES"] = str(int(cfg.max_element_bytes))
    os.environ["LEDGERMSG_LOG_LEVEL"] = str(cfg.log_level).strip().upper()
