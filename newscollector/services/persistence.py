from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from newscollector.core.errors import OutputError
from newscollector.core.models import CollectionReport
from newscollector.core.utils import ensure_directory, file_stamp, iso_timestamp, utc_now
from newscollector.infra.logging import log_file_operation


def prepare_output_dir(path: Union[str, Path]) -> Path:
    """创建输出目录（递归），失败时抛出 OutputError。"""
    try:
        return ensure_directory(path)
    except OSError as exc:
        raise OutputError(f"Cannot create output directory {path}: {exc}") from exc


def write_json(path: Path, payload: Any) -> Path:
    try:
        text = json.dumps(payload, ensure_ascii=False, indent=2)
        path.write_text(text, encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        raise OutputError(f"Cannot write {path}: {exc}") from exc
    log_file_operation("collect", "save", "write", str(path), len(text.encode("utf-8")))
    return path


def save_report(
    report: CollectionReport,
    output_dir: Union[str, Path],
    *,
    moment: Optional[datetime] = None,
) -> Dict[str, Path]:
    """Write articles/results/summary JSON plus the ``*-latest.json`` copies.

    Returns the written paths keyed by ``articles``, ``results``, ``summary``,
    ``articles_latest`` and ``summary_latest``.
    """
    out = prepare_output_dir(output_dir)
    when = moment or utc_now()
    stamp = file_stamp(when)

    articles = [a.to_dict() for a in report.articles]
    results = [o.to_dict() for o in report.outcomes]
    summary = report.summary(iso_timestamp(when))

    return {
        "articles": write_json(out / f"articles-{stamp}.json", articles),
        "results": write_json(out / f"results-{stamp}.json", results),
        "summary": write_json(out / f"summary-{stamp}.json", summary),
        "articles_latest": write_json(out / "articles-latest.json", articles),
        "summary_latest": write_json(out / "summary-latest.json", summary),
    }
