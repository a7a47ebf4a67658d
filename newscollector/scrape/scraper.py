from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Set

from bs4 import BeautifulSoup

from newscollector.core.models import Article, ScrapeOutcome
from newscollector.core.utils import parse_published, resolve_url, utc_now
from newscollector.infra.logging import (
    get_unified_logger,
    log_task_end,
    log_task_start,
    mdc_scope,
)
from newscollector.scrape.extractor import FieldExtractor
from newscollector.scrape.fetcher import PageFetcher, SessionFactory, session_factory
from newscollector.scrape.selectors import SiteConfig

Sleep = Callable[[float], Awaitable[None]]

_LISTING_SETTLE_MS = 1000
_PAGE_DELAY_MS = 2000

logger = get_unified_logger("scrape", "site")


class SiteScraper:
    """Walks a source's listing pages and turns each linked page into an Article.

    The same algorithm serves every source; what varies is the
    :class:`SiteConfig` (selectors, pagination, listing-URL rule).
    """

    def __init__(
        self,
        config: SiteConfig,
        *,
        sessions: Optional[SessionFactory] = None,
        extractor: Optional[FieldExtractor] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self.sessions = sessions or session_factory()
        self.extractor = extractor or FieldExtractor()
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.config.name

    def __repr__(self) -> str:
        return f"SiteScraper({self.config.key!r})"

    async def run(self) -> ScrapeOutcome:
        started = time.monotonic()
        articles: List[Article] = []
        errors: List[str] = []
        fatal = False

        with mdc_scope(source=self.config.key):
            log_task_start(
                "scrape", "site", {"source": self.name, "max_pages": self.config.max_pages}
            )
            try:
                async with self.sessions() as fetcher:
                    await self._scrape_pages(fetcher, articles, errors)
            except Exception as exc:
                fatal = True
                errors.append(f"Failed to scrape {self.name}: {exc}")
                logger.error("scrape aborted: %s", exc)

            outcome = ScrapeOutcome(
                source=self.name,
                articles=tuple(articles),
                errors=tuple(errors),
                execution_time_ms=int((time.monotonic() - started) * 1000),
                fatal=fatal,
            )
            log_task_end(
                "scrape",
                "site",
                not fatal,
                {"articles": outcome.total_scraped, "errors": len(errors)},
            )
        return outcome

    async def _scrape_pages(
        self, fetcher: PageFetcher, articles: List[Article], errors: List[str]
    ) -> None:
        cfg = self.config
        max_pages = cfg.max_pages
        seen: Set[str] = set()

        for page in range(1, max_pages + 1):
            page_url = cfg.page_url(page)
            logger.info("page %d/%d: %s", page, max_pages, page_url)
            html = await fetcher.load(
                page_url,
                wait_until="networkidle",
                timeout_ms=cfg.listing_timeout_ms,
                settle_ms=cfg.delay_ms if cfg.delay_ms is not None else _LISTING_SETTLE_MS,
            )
            doc = self.extractor.parse(html)

            links = self.extract_links(doc, seen)
            logger.info("found %d article links on page %d", len(links), page)
            for link in links:
                try:
                    article = await self.scrape_article(fetcher, link)
                except Exception as exc:
                    errors.append(f"Failed to scrape article {link}: {exc}")
                    logger.warning("article failed %s: %s", link, exc)
                    continue
                if article is not None:
                    articles.append(article)

            if page >= max_pages:
                break
            if not self.has_next_page(doc):
                logger.info("no next page after page %d", page)
                break
            delay_ms = cfg.delay_ms if cfg.delay_ms is not None else _PAGE_DELAY_MS
            await self._sleep(delay_ms / 1000)

    def extract_links(self, doc: BeautifulSoup, seen: Set[str]) -> List[str]:
        """Absolute article links in page order, skipping ones already seen this run."""
        out: List[str] = []
        for href in self.extractor.all_attributes(doc, self.config.selectors.article_links, "href"):
            url = resolve_url(href, self.config.base_url)
            if url and url not in seen:
                seen.add(url)
                out.append(url)
        return out

    def has_next_page(self, doc: BeautifulSoup) -> bool:
        return self.extractor.exists(doc, self.config.pagination.next_page_selector)

    async def scrape_article(self, fetcher: PageFetcher, url: str) -> Optional[Article]:
        """Load one article page; None when the title selector yields nothing."""
        cfg = self.config
        html = await fetcher.load(
            url,
            wait_until="networkidle",
            timeout_ms=cfg.article_timeout_ms,
            settle_ms=cfg.article_settle_ms,
        )
        doc = self.extractor.parse(html)
        sel = cfg.selectors
        ex = self.extractor

        title = ex.first_text(doc, sel.title)
        if not title:
            logger.debug("no title at %s", url)
            return None

        # unparseable or missing dates fall back to collection time
        published = parse_published(ex.first_text(doc, sel.published_at)) or utc_now()
        image = resolve_url(ex.attribute(doc, sel.image_url, "src"), cfg.base_url)
        return Article(
            title=title,
            url=url,
            source=cfg.name,
            published_at=published,
            summary=ex.first_text(doc, sel.summary) or None,
            content=ex.first_text(doc, sel.content) or None,
            author=ex.first_text(doc, sel.author) or None,
            category=ex.first_text(doc, sel.category) or None,
            tags=tuple(ex.all(doc, sel.tags)),
            image_url=image,
        )
