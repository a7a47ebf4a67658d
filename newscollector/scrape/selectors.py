from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from newscollector.core.config import as_bool
from newscollector.core.errors import ConfigError
from newscollector.infra.logging import get_unified_logger
from newscollector.scrape.fetcher import (
    ARTICLE_SETTLE_MS,
    ARTICLE_TIMEOUT_MS,
    LISTING_TIMEOUT_MS,
)

logger = get_unified_logger("scrape", "selectors")


@dataclass(frozen=True)
class Selectors:
    """Selector table: one CSS selector per article field."""

    article_links: str
    title: str
    summary: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[str] = None
    image_url: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.article_links or not self.title:
            raise ConfigError("article_links and title selectors are required")


@dataclass(frozen=True)
class Pagination:
    enabled: bool = False
    next_page_selector: Optional[str] = None
    max_pages: int = 1

    def __post_init__(self) -> None:
        if self.max_pages < 1:
            raise ConfigError("max_pages must be >= 1")


@dataclass(frozen=True)
class SiteConfig:
    key: str
    name: str
    base_url: str
    selectors: Selectors
    page_url: Callable[[int], str] = field(compare=False)
    pagination: Pagination = Pagination()
    # inter-request delay; None falls back to 1000 ms after a listing load
    # and 2000 ms between pages
    delay_ms: Optional[int] = None
    listing_timeout_ms: int = LISTING_TIMEOUT_MS
    article_timeout_ms: int = ARTICLE_TIMEOUT_MS
    article_settle_ms: int = ARTICLE_SETTLE_MS

    @property
    def max_pages(self) -> int:
        return self.pagination.max_pages if self.pagination.enabled else 1


def load_selector_overrides(path: str | Path) -> Dict[str, Dict[str, Any]]:
    """Read a YAML/JSON overrides file keyed by source key (``cnn``, ``bbc`` ...)."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Selectors file not found: {p}")
    try:
        text = p.read_text(encoding="utf-8")
        if p.suffix.lower() in (".yml", ".yaml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read selectors file {p}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Selectors file {p} must contain a mapping")

    # normalize structure: source key -> dict of override sections
    out: Dict[str, Dict[str, Any]] = {}
    for key, rules in data.items():
        if isinstance(rules, dict):
            out[str(key).strip().lower()] = rules
    return out


def _check_known(cls: type, values: Mapping[str, Any], section: str) -> None:
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown {section} field(s): {', '.join(sorted(unknown))}")


def _selector_fields(values: Mapping[str, Any]) -> Dict[str, Any]:
    _check_known(Selectors, values, "selector")
    out: Dict[str, Any] = {}
    for key, value in values.items():
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"selector {key} must be a string, got {value!r}")
        out[key] = value
    return out


def _pagination_fields(values: Mapping[str, Any]) -> Dict[str, Any]:
    _check_known(Pagination, values, "pagination")
    out: Dict[str, Any] = {}
    if "enabled" in values:
        out["enabled"] = as_bool(values["enabled"])
    if "next_page_selector" in values:
        sel = values["next_page_selector"]
        out["next_page_selector"] = str(sel) if sel else None
    if "max_pages" in values:
        raw = values["max_pages"]
        if isinstance(raw, bool):
            raise ConfigError(f"max_pages must be an integer, got {raw!r}")
        try:
            out["max_pages"] = int(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"max_pages must be an integer, got {raw!r}") from exc
    return out


def apply_overrides(config: SiteConfig, rules: Mapping[str, Any]) -> SiteConfig:
    """Return a new SiteConfig with ``rules`` merged over ``config``."""
    changes: Dict[str, Any] = {}
    sel = rules.get("selectors")
    if isinstance(sel, dict):
        changes["selectors"] = replace(config.selectors, **_selector_fields(sel))
    pag = rules.get("pagination")
    if isinstance(pag, dict):
        changes["pagination"] = replace(config.pagination, **_pagination_fields(pag))
    for key in ("base_url", "name"):
        if rules.get(key):
            changes[key] = str(rules[key])
    for key in ("delay_ms", "listing_timeout_ms", "article_timeout_ms", "article_settle_ms"):
        if rules.get(key) is not None:
            try:
                changes[key] = int(rules[key])
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"{key} must be an integer") from exc
    return replace(config, **changes) if changes else config


def merge_site_overrides(
    sites: Mapping[str, SiteConfig], overrides: Mapping[str, Mapping[str, Any]]
) -> Dict[str, SiteConfig]:
    out = dict(sites)
    for key, rules in overrides.items():
        if key not in out:
            logger.warning("ignoring selector overrides for unknown source %r", key)
            continue
        out[key] = apply_overrides(out[key], rules)
    return out
