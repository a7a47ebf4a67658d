# -*- coding: utf-8 -*-
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from fakes import (
    BASE,
    FakeFetcher,
    SleepRecorder,
    article_html,
    fake_sessions,
    listing_html,
    site_config,
)

from newscollector.core.errors import BrowserError, FetchError
from newscollector.scrape.scraper import SiteScraper


def _scraper(config, pages, events=None, sleep=None, fail_on_enter=None):
    fetcher = FakeFetcher(pages)
    scraper = SiteScraper(
        config,
        sessions=fake_sessions(fetcher, events, fail_on_enter),
        sleep=sleep or SleepRecorder(),
    )
    return scraper, fetcher


def test_scrape_single_page_builds_articles():
    cfg = site_config()
    pages = {
        f"{BASE}/latest": listing_html(
            ["/world/one", "https://elsewhere.example.org/two", "/world/one", ""]
        ),
        f"{BASE}/world/one": article_html("First story"),
        "https://elsewhere.example.org/two": article_html(
            "Second story", image="https://cdn.example.net/p.png"
        ),
    }
    events: list = []
    scraper, fetcher = _scraper(cfg, pages, events)

    outcome = asyncio.run(scraper.run())

    assert outcome.source == "Example News"
    assert outcome.errors == ()
    assert not outcome.fatal
    assert [a.url for a in outcome.articles] == [
        f"{BASE}/world/one",
        "https://elsewhere.example.org/two",
    ]
    first = outcome.articles[0]
    assert first.title == "First story"
    assert first.summary == "A short summary."
    assert first.author == "Jane Reporter"
    assert first.category == "World"
    assert first.tags == ("World", "Politics")
    assert first.image_url == f"{BASE}/img/lead.jpg"
    assert first.published_at == datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert outcome.articles[1].image_url == "https://cdn.example.net/p.png"
    # duplicate link visited once
    assert fetcher.urls().count(f"{BASE}/world/one") == 1
    assert events == ["open", "close"]


def test_articles_always_have_title_and_absolute_url():
    cfg = site_config()
    pages = {
        f"{BASE}/latest": listing_html(["a", "/b", "../c"]),
        f"{BASE}/a": article_html("A"),
        f"{BASE}/b": article_html("B"),
        f"{BASE}/c": article_html("C"),
    }
    scraper, _ = _scraper(cfg, pages)
    outcome = asyncio.run(scraper.run())
    assert len(outcome.articles) == 3
    for a in outcome.articles:
        assert a.title
        assert a.url.startswith("https://")


def test_fetch_policy_timeouts_and_settle():
    cfg = site_config(delay_ms=750)
    pages = {
        f"{BASE}/latest": listing_html(["/one"]),
        f"{BASE}/one": article_html(),
    }
    scraper, fetcher = _scraper(cfg, pages)
    asyncio.run(scraper.run())
    assert fetcher.loaded[0] == (f"{BASE}/latest", 30000, 750)
    assert fetcher.loaded[1] == (f"{BASE}/one", 15000, 500)


def test_next_page_missing_stops_after_first_page():
    cfg = site_config(max_pages=3, enabled=True, next_page="a.next")
    pages = {
        f"{BASE}/latest": listing_html(["/one"], next_link=False),
        f"{BASE}/one": article_html(),
    }
    sleep = SleepRecorder()
    scraper, fetcher = _scraper(cfg, pages, sleep=sleep)

    outcome = asyncio.run(scraper.run())

    listing_loads = [u for u in fetcher.urls() if "/latest" in u]
    assert listing_loads == [f"{BASE}/latest"]
    assert len(outcome.articles) == 1
    assert sleep.calls == []


def test_pagination_walks_until_max_pages():
    cfg = site_config(max_pages=3, enabled=True, next_page="a.next", delay_ms=1500)
    pages = {
        f"{BASE}/latest": listing_html(["/p1"], next_link=True),
        f"{BASE}/latest?page=2": listing_html(["/p2", "/p1"], next_link=True),
        f"{BASE}/latest?page=3": listing_html(["/p3"], next_link=True),
        f"{BASE}/p1": article_html("P1"),
        f"{BASE}/p2": article_html("P2"),
        f"{BASE}/p3": article_html("P3"),
    }
    sleep = SleepRecorder()
    scraper, fetcher = _scraper(cfg, pages, sleep=sleep)

    outcome = asyncio.run(scraper.run())

    assert [a.title for a in outcome.articles] == ["P1", "P2", "P3"]
    assert [u for u in fetcher.urls() if "/latest" in u] == [
        f"{BASE}/latest",
        f"{BASE}/latest?page=2",
        f"{BASE}/latest?page=3",
    ]
    # delay between pages only, none after the last one
    assert sleep.calls == [1.5, 1.5]


def test_pagination_disabled_scrapes_one_page():
    cfg = site_config(max_pages=3, enabled=False, next_page="a.next")
    pages = {
        f"{BASE}/latest": listing_html([], next_link=True),
    }
    scraper, fetcher = _scraper(cfg, pages)
    outcome = asyncio.run(scraper.run())
    assert fetcher.urls() == [f"{BASE}/latest"]
    assert outcome.articles == ()


def test_empty_title_is_silent_skip():
    cfg = site_config()
    pages = {
        f"{BASE}/latest": listing_html(["/blank", "/ok"]),
        f"{BASE}/blank": article_html("   "),
        f"{BASE}/ok": article_html("Fine"),
    }
    scraper, _ = _scraper(cfg, pages)
    outcome = asyncio.run(scraper.run())
    assert [a.title for a in outcome.articles] == ["Fine"]
    assert outcome.errors == ()


def test_bad_article_link_is_recorded_and_skipped():
    cfg = site_config()
    pages = {
        f"{BASE}/latest": listing_html(["/broken", "/ok"]),
        f"{BASE}/broken": FetchError("Navigation timeout", f"{BASE}/broken"),
        f"{BASE}/ok": article_html("Fine"),
    }
    scraper, _ = _scraper(cfg, pages)
    outcome = asyncio.run(scraper.run())
    assert [a.title for a in outcome.articles] == ["Fine"]
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith(f"Failed to scrape article {BASE}/broken")
    assert not outcome.fatal


def test_listing_failure_is_fatal_and_keeps_collected_articles():
    cfg = site_config(max_pages=2, enabled=True, next_page="a.next")
    pages = {
        f"{BASE}/latest": listing_html(["/one"], next_link=True),
        f"{BASE}/one": article_html("One"),
        f"{BASE}/latest?page=2": FetchError("net::ERR_CONNECTION_RESET"),
    }
    events: list = []
    scraper, _ = _scraper(cfg, pages, events)

    outcome = asyncio.run(scraper.run())

    assert outcome.fatal
    assert [a.title for a in outcome.articles] == ["One"]
    assert outcome.errors == ("Failed to scrape Example News: net::ERR_CONNECTION_RESET",)
    assert events == ["open", "close"]


def test_session_start_failure_is_fatal():
    cfg = site_config()
    scraper, fetcher = _scraper(
        cfg, {}, fail_on_enter=BrowserError("Browser launch failed: no chromium")
    )
    outcome = asyncio.run(scraper.run())
    assert outcome.fatal
    assert outcome.articles == ()
    assert outcome.errors == ("Failed to scrape Example News: Browser launch failed: no chromium",)
    assert fetcher.loaded == []


def test_unparseable_date_falls_back_to_now():
    cfg = site_config()
    pages = {
        f"{BASE}/latest": listing_html(["/one"]),
        f"{BASE}/one": article_html(published="Updated 5 minutes ago"),
    }
    scraper, _ = _scraper(cfg, pages)
    before = datetime.now(timezone.utc)
    outcome = asyncio.run(scraper.run())
    after = datetime.now(timezone.utc)
    published = outcome.articles[0].published_at
    assert before - timedelta(seconds=1) <= published <= after + timedelta(seconds=1)


def test_optional_fields_absent_without_selectors():
    cfg = site_config(summary="", author="", tags="", image_url="")
    pages = {
        f"{BASE}/latest": listing_html(["/one"]),
        f"{BASE}/one": article_html("Only title"),
    }
    scraper, _ = _scraper(cfg, pages)
    article = asyncio.run(scraper.run()).articles[0]
    assert article.summary is None
    assert article.author is None
    assert article.tags == ()
    assert article.image_url is None
    assert "imageUrl" not in article.to_dict()
