from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from newscollector.core.utils import iso_timestamp


@dataclass(frozen=True)
class Article:
    title: str
    url: str
    source: str
    published_at: datetime
    summary: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    category: Optional[str] = None
    tags: Tuple[str, ...] = ()
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "title": self.title,
            "url": self.url,
            "summary": self.summary,
            "content": self.content,
            "author": self.author,
            "publishedAt": iso_timestamp(self.published_at),
            "source": self.source,
            "category": self.category,
            "tags": list(self.tags),
            "imageUrl": self.image_url,
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass(frozen=True)
class ScrapeOutcome:
    """Result of one scraper run: articles, error messages and duration."""

    source: str
    articles: Tuple[Article, ...] = ()
    errors: Tuple[str, ...] = ()
    execution_time_ms: int = 0
    # run aborted by a scraper-level failure (browser/session, listing page)
    fatal: bool = False

    @property
    def total_scraped(self) -> int:
        return len(self.articles)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "articles": [a.to_dict() for a in self.articles],
            "totalScraped": self.total_scraped,
            "errors": list(self.errors),
            "executionTime": self.execution_time_ms,
        }


@dataclass(frozen=True)
class CollectionReport:
    articles: Tuple[Article, ...] = ()
    outcomes: Tuple[ScrapeOutcome, ...] = ()
    total_errors: int = 0
    execution_time_ms: int = 0

    @property
    def total_articles(self) -> int:
        return len(self.articles)

    def summary(self, timestamp: str) -> Dict[str, Any]:
        sources: List[Dict[str, Any]] = [
            {
                "name": o.source,
                "articleCount": o.total_scraped,
                "errorCount": len(o.errors),
                "executionTime": o.execution_time_ms,
            }
            for o in self.outcomes
        ]
        return {
            "timestamp": timestamp,
            "totalArticles": self.total_articles,
            "totalErrors": self.total_errors,
            "totalExecutionTime": sum(o.execution_time_ms for o in self.outcomes),
            "sources": sources,
        }


@dataclass
class ReportBuilder:
    """Accumulates outcomes batch by batch, then freezes into a report."""

    articles: List[Article] = field(default_factory=list)
    outcomes: List[ScrapeOutcome] = field(default_factory=list)
    errors: int = 0

    def add(self, outcome: ScrapeOutcome) -> None:
        self.outcomes.append(outcome)
        self.articles.extend(outcome.articles)
        self.errors += len(outcome.errors)

    def add_failure(self) -> None:
        self.errors += 1

    def build(self, execution_time_ms: int) -> CollectionReport:
        return CollectionReport(
            articles=tuple(self.articles),
            outcomes=tuple(self.outcomes),
            total_errors=self.errors,
            execution_time_ms=execution_time_ms,
        )
