"""Collection orchestrator: batched concurrent scraper runs with retry.

Scrapers run in consecutive batches of at most ``max_concurrent``. Every run
is wrapped in a retry loop whose wait after failed attempt ``k`` is
``k * 2`` seconds (linear, not exponential). Outcomes are appended in
declaration order once the whole batch has finished.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Protocol, Sequence

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_incrementing,
)

from newscollector.core.config import CollectorOptions
from newscollector.core.errors import CollectorError
from newscollector.core.models import CollectionReport, ReportBuilder, ScrapeOutcome
from newscollector.infra.logging import (
    get_unified_logger,
    log_batch_processing,
    log_error,
    log_task_end,
    log_task_start,
)
from newscollector.services.persistence import prepare_output_dir, save_report

# linear backoff step: wait after attempt k is k * BACKOFF_STEP_S
BACKOFF_STEP_S = 2.0

Sleep = Callable[[float], Awaitable[None]]

logger = get_unified_logger("collect", "run")
retry_logger = get_unified_logger("collect", "retry")


class Scraper(Protocol):
    @property
    def name(self) -> str: ...

    async def run(self) -> ScrapeOutcome: ...


def scraper_name(scraper: object) -> str:
    return str(getattr(scraper, "name", "") or type(scraper).__name__)


class Collector:
    def __init__(
        self,
        scrapers: Sequence[Scraper],
        options: Optional[CollectorOptions] = None,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scrapers = list(scrapers)
        self.options = options or CollectorOptions()
        self._sleep = sleep
        self._clock = clock
        self.saved: Dict[str, Path] = {}

    def batches(self) -> Iterator[List[Scraper]]:
        size = self.options.max_concurrent
        for i in range(0, len(self.scrapers), size):
            yield self.scrapers[i : i + size]

    async def collect(self) -> CollectionReport:
        opts = self.options
        started = self._clock()
        log_task_start(
            "collect",
            "run",
            {
                "scrapers": len(self.scrapers),
                "max_concurrent": opts.max_concurrent,
                "retry_attempts": opts.retry_attempts,
                "output_dir": opts.output_dir,
                "include_content": opts.include_content,
            },
        )
        out_dir = prepare_output_dir(opts.output_dir)

        builder = ReportBuilder()
        batches = list(self.batches())
        for number, batch in enumerate(batches, start=1):
            batch_started = self._clock()
            results = await asyncio.gather(
                *(self.run_with_retry(s) for s in batch), return_exceptions=True
            )
            failed = 0
            for scraper, result in zip(batch, results):
                if isinstance(result, BaseException):
                    failed += 1
                    builder.add_failure()
                    log_error("collect", "run", result, f"failed to run {scraper_name(scraper)}")
                    continue
                builder.add(result)
                logger.info("%d articles from %s", result.total_scraped, result.source)
                if result.errors:
                    logger.warning("%d errors occurred in %s", len(result.errors), result.source)
            log_batch_processing(
                "collect",
                "run",
                f"batch {number}/{len(batches)}",
                len(batch),
                len(batch) - failed,
                failed,
                round(self._clock() - batch_started, 3),
            )
            if number < len(batches):
                await self._sleep(opts.delay_between_requests_ms / 1000)

        report = builder.build(int((self._clock() - started) * 1000))
        self.saved = save_report(report, out_dir)
        log_task_end(
            "collect",
            "run",
            True,
            {
                "articles": report.total_articles,
                "errors": report.total_errors,
                "execution_time_ms": report.execution_time_ms,
            },
        )
        return report

    def collect_sync(self) -> CollectionReport:
        return asyncio.run(self.collect())

    async def run_with_retry(self, scraper: Scraper) -> ScrapeOutcome:
        """Run ``scraper`` up to ``retry_attempts`` times.

        An attempt fails when ``run()`` raises or returns a fatal outcome. After
        the last failed attempt the result is an empty outcome holding only the
        last failure message.
        """
        name = scraper_name(scraper)
        attempts = self.options.retry_attempts

        def before(state: RetryCallState) -> None:
            retry_logger.info("running %s (attempt %d/%d)", name, state.attempt_number, attempts)

        def before_sleep(state: RetryCallState) -> None:
            delay_s = state.next_action.sleep if state.next_action else 0
            retry_logger.warning(
                "attempt %d failed for %s: %s; retrying in %dms",
                state.attempt_number,
                name,
                _failure_message(state),
                int(delay_s * 1000),
            )

        def exhausted(state: RetryCallState) -> ScrapeOutcome:
            retry_logger.error("%s failed after %d attempts", name, state.attempt_number)
            return ScrapeOutcome(source=name, errors=(_failure_message(state),), fatal=True)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(start=BACKOFF_STEP_S, increment=BACKOFF_STEP_S),
            retry=retry_if_exception_type(Exception) | retry_if_result(_is_fatal),
            before=before,
            before_sleep=before_sleep,
            retry_error_callback=exhausted,
            sleep=self._sleep,
        )
        return await retrying(self._attempt, scraper)

    async def _attempt(self, scraper: Scraper) -> ScrapeOutcome:
        timeout = self.options.scraper_timeout_s
        if timeout is None:
            return await scraper.run()
        try:
            return await asyncio.wait_for(scraper.run(), timeout)
        except asyncio.TimeoutError as exc:
            raise CollectorError(f"{scraper_name(scraper)} timed out after {timeout:g}s") from exc


def _is_fatal(outcome: object) -> bool:
    return bool(getattr(outcome, "fatal", False))


def _failure_message(state: RetryCallState) -> str:
    outcome = state.outcome
    if outcome is None:
        return "Unknown error"
    if outcome.failed:
        return str(outcome.exception()) or "Unknown error"
    errors = getattr(outcome.result(), "errors", ())
    return errors[-1] if errors else "Unknown error"


async def collect(
    scrapers: Sequence[Scraper], options: Optional[CollectorOptions] = None
) -> CollectionReport:
    return await Collector(scrapers, options).collect()
