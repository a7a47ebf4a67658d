from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from newscollector.core.errors import ConfigError

DEFAULT_OUTPUT_DIR = "./data"
DEFAULT_MAX_CONCURRENT = 3
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_DELAY_MS = 1000

# NC_* environment variable -> config key
_ENV_KEYS: Dict[str, str] = {
    "NC_OUTPUT_DIR": "output_dir",
    "NC_MAX_CONCURRENT": "max_concurrent",
    "NC_RETRY_ATTEMPTS": "retry_attempts",
    "NC_DELAY_MS": "delay_between_requests_ms",
    "NC_INCLUDE_CONTENT": "include_content",
    "NC_SOURCES": "sources",
    "NC_SELECTORS_FILE": "selectors_file",
    "NC_USE_PLAYWRIGHT": "use_playwright",
    "NC_SCRAPER_TIMEOUT": "scraper_timeout_s",
}


def load_config_file(path: Optional[str | Path]) -> Dict[str, Any]:
    """加载 YAML/JSON 配置文件，返回字典。"""
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        return {}

    try:
        with p.open("r", encoding="utf-8") as f:
            if p.suffix.lower() in (".yml", ".yaml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f) or {}
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {p}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {p} must contain a mapping")
    return data


def load_env() -> Dict[str, Any]:
    """读取 NC_* 环境变量，仅返回已设置的项。"""
    out: Dict[str, Any] = {}
    for env_name, key in _ENV_KEYS.items():
        v = os.getenv(env_name)
        if v is not None and v.strip() != "":
            out[key] = v.strip()
    return out


def merge_config(*layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge mappings left to right; later non-None values win."""
    merged: Dict[str, Any] = {}
    for layer in layers:
        for k, v in (layer or {}).items():
            if v is not None:
                merged[k] = v
    return merged


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(conf: Mapping[str, Any], key: str, default: int, minimum: int) -> int:
    raw = conf.get(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class CollectorOptions:
    output_dir: str = DEFAULT_OUTPUT_DIR
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    delay_between_requests_ms: int = DEFAULT_DELAY_MS
    # informational only; extraction always follows the configured selectors
    include_content: bool = False
    scraper_timeout_s: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ConfigError("max_concurrent must be >= 1")
        if self.retry_attempts < 1:
            raise ConfigError("retry_attempts must be >= 1")
        if self.delay_between_requests_ms < 0:
            raise ConfigError("delay_between_requests_ms must be >= 0")

    @classmethod
    def from_mapping(cls, conf: Mapping[str, Any]) -> "CollectorOptions":
        timeout = conf.get("scraper_timeout_s")
        try:
            timeout_s = float(timeout) if timeout not in (None, "") else None
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"scraper_timeout_s must be a number, got {timeout!r}") from exc
        return cls(
            output_dir=str(conf.get("output_dir") or DEFAULT_OUTPUT_DIR),
            max_concurrent=_as_int(conf, "max_concurrent", DEFAULT_MAX_CONCURRENT, 1),
            retry_attempts=_as_int(conf, "retry_attempts", DEFAULT_RETRY_ATTEMPTS, 1),
            delay_between_requests_ms=_as_int(
                conf, "delay_between_requests_ms", DEFAULT_DELAY_MS, 0
            ),
            include_content=as_bool(conf.get("include_content", False)),
            scraper_timeout_s=timeout_s if timeout_s and timeout_s > 0 else None,
        )
