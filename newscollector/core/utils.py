from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urljoin, urlparse

from dateutil import parser as date_parser


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def file_stamp(moment: Optional[datetime] = None) -> str:
    """返回适合文件名的 ISO-8601 时间戳（``:`` 与 ``.`` 替换为 ``-``）。

    >>> file_stamp(datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc))
    '2026-01-02T03-04-05-678Z'
    """
    return iso_timestamp(moment).replace(":", "-").replace(".", "-")


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    m = (moment or utc_now()).astimezone(timezone.utc)
    return m.strftime("%Y-%m-%dT%H:%M:%S.") + f"{m.microsecond // 1000:03d}Z"


def ensure_directory(path: Union[str, Path]) -> Path:
    """确保目录存在（递归创建），返回 Path。"""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def is_absolute_url(url: str) -> bool:
    pu = urlparse(url)
    return bool(pu.scheme and pu.netloc)


def resolve_url(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve ``href`` against ``base_url``; absolute links pass through unchanged."""
    if not href:
        return None
    h = href.strip()
    if not h:
        return None
    if is_absolute_url(h):
        return h
    return urljoin(base_url, h)


def parse_published(text: Optional[str]) -> Optional[datetime]:
    """Parse a free-form published date (ISO-8601, RFC 2822, "1 March 2026" ...).

    Naive values are taken as UTC. Returns None when nothing matches.
    """
    if not text or not text.strip():
        return None
    try:
        dt = date_parser.parse(text.strip())
    except (ValueError, OverflowError):
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
