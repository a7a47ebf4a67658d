from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from newscollector import __version__
from newscollector.core.config import (
    CollectorOptions,
    as_bool,
    load_config_file,
    load_env,
    merge_config,
)
from newscollector.core.errors import CollectorError
from newscollector.infra.logging import init_logging, log_error
from newscollector.scrape.fetcher import session_factory, use_playwright_default
from newscollector.scrape.selectors import load_selector_overrides, merge_site_overrides
from newscollector.scrape.sites import DISPLAY_NAMES, SITES, parse_sources, resolve_sites
from newscollector.scrape.scraper import SiteScraper
from newscollector.services.collecting import Collector

app = typer.Typer(
    help="News collector: scrape articles from news websites into JSON files",
    no_args_is_help=True,
)

console = Console(highlight=False)

DEFAULT_SOURCES = ",".join(SITES)


@app.callback()
def _main() -> None:
    init_logging()


@app.command()
def scrape(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory for scraped data [default: ./data]"
    ),
    concurrent: Optional[int] = typer.Option(
        None, "--concurrent", "-c", min=1, help="Maximum concurrent scrapers [default: 3]"
    ),
    retry: Optional[int] = typer.Option(
        None, "--retry", "-r", min=1, help="Number of attempts per scraper [default: 3]"
    ),
    delay: Optional[int] = typer.Option(
        None, "--delay", "-d", min=0, help="Delay between batches in milliseconds [default: 1000]"
    ),
    include_content: bool = typer.Option(
        False, "--include-content", help="Include full article content (slower)"
    ),
    sources: Optional[str] = typer.Option(
        None, "--sources", help=f"Comma-separated sources to scrape [default: {DEFAULT_SOURCES}]"
    ),
    selectors: Optional[Path] = typer.Option(
        None, "--selectors", exists=True, dir_okay=False, readable=True,
        help="YAML/JSON file overriding per-source selectors",
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Fetch static HTML with requests instead of a headless browser"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", min=0, help="Per-attempt deadline for one scraper run, in seconds"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", exists=True, dir_okay=False, readable=True
    ),
) -> None:
    """Scrape news from the configured sources and save JSON results."""
    try:
        conf = merge_config(
            load_config_file(config),
            load_env(),
            {
                "output_dir": str(output) if output else None,
                "max_concurrent": concurrent,
                "retry_attempts": retry,
                "delay_between_requests_ms": delay,
                "include_content": include_content or None,
                "sources": sources,
                "selectors_file": str(selectors) if selectors else None,
                "use_playwright": False if no_browser else None,
                "scraper_timeout_s": timeout,
            },
        )
        options = CollectorOptions.from_mapping(conf)

        sites = dict(SITES)
        if conf.get("selectors_file"):
            sites = merge_site_overrides(sites, load_selector_overrides(conf["selectors_file"]))
    except CollectorError as exc:
        console.print(f"[red]Error:[/] {escape(exc.message)}")
        raise typer.Exit(code=1)

    raw_sources = conf.get("sources")
    wanted = parse_sources(DEFAULT_SOURCES if raw_sources is None else raw_sources)
    known, unknown = resolve_sites(wanted, sites)
    for name in unknown:
        console.print(f"[yellow]Unknown source ignored:[/] {escape(name)}")
    if not known:
        console.print("[red]No valid sources specified[/]")
        raise typer.Exit(code=1)

    use_pw = (
        as_bool(conf["use_playwright"]) if "use_playwright" in conf else use_playwright_default()
    )
    sessions = session_factory(use_playwright=use_pw)
    scrapers = [SiteScraper(cfg, sessions=sessions) for cfg in known]

    collector = Collector(scrapers, options)
    try:
        with console.status(f"Scraping news from {len(scrapers)} sources..."):
            report = collector.collect_sync()
    except Exception as exc:
        log_error("cli", "scrape", exc, "collection failed")
        console.print("[red]Failed to collect news[/]")
        console.print(f"[red]Error:[/] {escape(str(exc))}")
        raise typer.Exit(code=1)

    console.print(f"[green]Successfully collected {report.total_articles} articles[/]")
    if report.total_errors > 0:
        console.print(f"[yellow]{report.total_errors} errors occurred during scraping[/]")
    console.print(f"[blue]Results saved to: {escape(options.output_dir)}[/]")
    console.print(f"[dim]Execution time: {report.execution_time_ms / 1000:.2f}s[/]")


@app.command("list-sources")
def list_sources() -> None:
    """List available news sources."""
    console.print("[blue]Available news sources:[/]")
    for key in SITES:
        console.print(f"[green]  - {key} - {DISPLAY_NAMES.get(key, SITES[key].name)}[/]")


@app.command()
def info() -> None:
    """Show information about the news collector."""
    console.print(f"[bold blue]News Collector v{__version__}[/]")
    console.print("[dim]Collects articles from news websites with a headless browser[/]")
    console.print(
        "[dim]\nFeatures:\n"
        "  - Multiple news source support\n"
        "  - Concurrent scraping in fixed-size batches\n"
        "  - Retry logic with linear backoff (attempt x 2s)\n"
        "  - JSON output with timestamps\n"
        "  - Configurable delays, limits and selector overrides[/]"
    )
    console.print(
        "[dim]\nUsage:\n"
        "  news-collector scrape                       # Scrape all sources\n"
        "  news-collector scrape --sources cnn,bbc     # Scrape specific sources\n"
        "  news-collector scrape --help                # Show all options[/]"
    )


def main() -> None:  # console_scripts entrypoint wrapper
    app()


if __name__ == "__main__":
    main()
