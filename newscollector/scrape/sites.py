"""Built-in news sources.

Each source is a :class:`SiteConfig` value plus its listing-URL rule: page 1 is
the canonical front page, later pages append a ``page`` query parameter.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from newscollector.scrape.fetcher import SessionFactory
from newscollector.scrape.scraper import SiteScraper
from newscollector.scrape.selectors import Pagination, Selectors, SiteConfig


def paged_url(first: str, template: str) -> Callable[[int], str]:
    """Listing-URL rule: ``first`` for page 1, ``template.format(page=n)`` afterwards."""

    def page_url(page: int) -> str:
        return first if page <= 1 else template.format(page=page)

    return page_url


_DEFAULT_PAGINATION = Pagination(enabled=True, max_pages=3)

CNN = SiteConfig(
    key="cnn",
    name="CNN",
    base_url="https://www.cnn.com",
    selectors=Selectors(
        article_links='a[data-link-type="article"]',
        title='h1[data-module="ArticleHeadline"]',
        summary=".article__content p",
        content=".article__content",
        author=".metadata__byline__author",
        published_at=".update-time",
        category=".metadata__section",
        tags=".metadata__tags a",
    ),
    page_url=paged_url("https://www.cnn.com", "https://www.cnn.com/sitemap.html?page={page}"),
    pagination=_DEFAULT_PAGINATION,
    delay_ms=2000,
)

BBC = SiteConfig(
    key="bbc",
    name="BBC",
    base_url="https://www.bbc.com",
    selectors=Selectors(
        article_links='a[data-testid="internal-link"]',
        title='h1[data-testid="headline"]',
        summary='[data-testid="summary"]',
        content='[data-testid="main-content"]',
        author='[data-testid="byline"]',
        published_at='time[data-testid="timestamp"]',
        category='[data-testid="section"]',
        tags='[data-testid="tags"] a',
    ),
    page_url=paged_url("https://www.bbc.com/news", "https://www.bbc.com/news?page={page}"),
    pagination=_DEFAULT_PAGINATION,
    delay_ms=2000,
)

REUTERS = SiteConfig(
    key="reuters",
    name="Reuters",
    base_url="https://www.reuters.com",
    selectors=Selectors(
        article_links='a[data-testid="Link"]',
        title='h1[data-testid="Headline"]',
        summary='[data-testid="Body"] p',
        content='[data-testid="Body"]',
        author='[data-testid="Byline"]',
        published_at='time[data-testid="Timestamp"]',
        category='[data-testid="Section"]',
        tags='[data-testid="Tags"] a',
    ),
    page_url=paged_url("https://www.reuters.com", "https://www.reuters.com/?page={page}"),
    pagination=_DEFAULT_PAGINATION,
    delay_ms=2000,
)

GUARDIAN = SiteConfig(
    key="guardian",
    name="The Guardian",
    base_url="https://www.theguardian.com",
    selectors=Selectors(
        article_links='a[data-link-name="article"]',
        title='h1[data-testid="headline"]',
        summary='[data-testid="summary"]',
        content='[data-testid="maincontent"]',
        author='[data-testid="byline"]',
        published_at='time[data-testid="timestamp"]',
        category='[data-testid="section"]',
        tags='[data-testid="tags"] a',
    ),
    page_url=paged_url(
        "https://www.theguardian.com", "https://www.theguardian.com?page={page}"
    ),
    pagination=_DEFAULT_PAGINATION,
    delay_ms=2000,
)

SITES: Dict[str, SiteConfig] = {s.key: s for s in (CNN, BBC, REUTERS, GUARDIAN)}

DISPLAY_NAMES: Dict[str, str] = {
    "cnn": "CNN News",
    "bbc": "BBC News",
    "reuters": "Reuters",
    "guardian": "The Guardian",
}


def parse_sources(raw: Optional[str | Iterable[str]]) -> List[str]:
    """Split a comma-separated source list; None means every built-in source."""
    if raw is None:
        return list(SITES)
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    out: List[str] = []
    for p in parts:
        k = str(p).strip().lower()
        if k and k not in out:
            out.append(k)
    return out


def resolve_sites(
    names: Iterable[str], sites: Optional[Mapping[str, SiteConfig]] = None
) -> Tuple[List[SiteConfig], List[str]]:
    """Return (known configs in registry order, unknown names)."""
    table = SITES if sites is None else sites
    wanted = list(names)
    known = [cfg for key, cfg in table.items() if key in wanted]
    unknown = [n for n in wanted if n not in table]
    return known, unknown


def build_scrapers(
    names: Optional[str | Iterable[str]] = None,
    *,
    sites: Optional[Mapping[str, SiteConfig]] = None,
    sessions: Optional[SessionFactory] = None,
) -> List[SiteScraper]:
    """One :class:`SiteScraper` per known source in ``names``; unknown names are dropped."""
    known, _ = resolve_sites(parse_sources(names), sites)
    return [SiteScraper(cfg, sessions=sessions) for cfg in known]
