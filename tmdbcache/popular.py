"""
Collection fetcher: caches every page of TMDb's popular-movies list.

Page 1 tells us how many pages exist. Each missing page is then fetched once,
written straight to the store, and skipped on later runs. A page that keeps
failing is recorded and the walk moves on, so one bad page never costs the
rest of the collection.
"""

from typing import Optional

from .client import TMDbClient, logging_callbacks, redact
from .config import Config
from .logger import StructuredLogger, get_logger
from .report import FetchReport
from .retry import RetryError, sleep_ms
from .schema import validate_page, total_pages
from .store import CacheStore, page_key

# TMDb refuses page numbers above 500
HARD_PAGE_CAP = 500


def effective_end_page(total: int, override: Optional[int] = None, cap: int = HARD_PAGE_CAP) -> int:
    """Upper page bound: the remote total, clamped by the cap and any override."""
    end = min(total, cap)
    if override is not None:
        end = min(end, override)
    return end


def _cached_first_page(store: CacheStore, logger: StructuredLogger) -> Optional[dict]:
    key = page_key(1)
    if not store.has(key):
        return None
    try:
        data = store.get(key)
    except ValueError as e:
        logger.warning(f"Cached page 1 is unreadable, refetching: {e}")
        return None
    if validate_page(data) or total_pages(data) is None:
        logger.warning("Cached page 1 has no usable total_pages, refetching")
        return None
    return data


def learn_total_pages(
    client: TMDbClient,
    store: CacheStore,
    config: Config,
    logger: Optional[StructuredLogger] = None,
    report: Optional[FetchReport] = None,
) -> int:
    """Return the collection's page count, caching page 1 if it is missing.

    A well-formed cached page 1 is trusted unless config.refresh_total is set.
    Raises RetryError if page 1 has to be fetched and cannot be.
    """
    logger = logger or get_logger()
    key = page_key(1)
    data = None if config.refresh_total else _cached_first_page(store, logger)

    if data is not None:
        logger.info("Using total_pages from cached page 1")
        logger.record_fetch_skipped("page")
        if report is not None:
            report.skipped += 1
    else:
        logger.info("Fetching page 1 to learn total_pages...")
        logger.record_fetch_attempt("page")
        try:
            data = client.popular_page(
                1,
                attempts=config.pages.retries,
                delay=config.pages.delay_seconds,
                **logging_callbacks(logger, "page 1", config.api_key),
            )
        except RetryError as e:
            logger.record_fetch_failure("page", type(e.__cause__).__name__)
            logger.error(
                f"Could not fetch page 1 after {e.attempts} attempts: "
                f"{redact(str(e.__cause__), config.api_key)}"
            )
            raise
        logger.record_fetch_success("page")

        # an existing entry is never overwritten, even a broken one
        if not store.has(key):
            store.put(key, data)
            logger.info(f"Saved page 1 -> {key}")
            if report is not None:
                report.fetched += 1
        else:
            logger.info("Page 1 already exists, skipping write.")
            if report is not None:
                report.skipped += 1
        sleep_ms(config.pages.delay_ms)

    total = total_pages(data)
    if total is None:
        logger.warning("Page 1 did not report a usable total_pages, assuming 1")
        total = 1
    return total


def fetch_popular_pages(
    client: TMDbClient,
    store: CacheStore,
    config: Config,
    logger: Optional[StructuredLogger] = None,
) -> FetchReport:
    """Cache every popular page in [start_page, end] that is not cached yet.

    Raises RetryError if page 1 is needed and cannot be fetched; every other
    page failure is recorded in the returned report.
    """
    logger = logger or get_logger()
    report = FetchReport(kind="pages")

    remote_total = learn_total_pages(client, store, config, logger, report)
    end_page = effective_end_page(remote_total, config.end_page)
    first = max(config.start_page, 2)

    logger.info(f"TMDb reports total_pages = {remote_total}, capping at {min(remote_total, HARD_PAGE_CAP)}.")
    logger.info(f"Will fetch pages {config.start_page} -> {end_page}.")
    report.planned = 1 + max(0, end_page - first + 1)

    for page in range(first, end_page + 1):
        key = page_key(page)
        if store.has(key):
            logger.info(f"page {page} already cached, skipping.")
            logger.record_fetch_skipped("page")
            report.skipped += 1
            continue

        logger.record_fetch_attempt("page")
        try:
            data = client.popular_page(
                page,
                attempts=config.pages.retries,
                delay=config.pages.delay_seconds,
                **logging_callbacks(logger, f"page {page}", config.api_key),
            )
        except RetryError as e:
            logger.record_fetch_failure("page", type(e.__cause__).__name__)
            logger.error(
                f"Giving up on page {page} after {e.attempts} attempts: "
                f"{redact(str(e.__cause__), config.api_key)}"
            )
            report.failed.append(key)
        else:
            store.put(key, data)
            logger.record_fetch_success("page")
            results = data.get("results") if isinstance(data, dict) else None
            logger.info(f"Saved: {key} (results: {len(results) if isinstance(results, list) else 0})")
            report.fetched += 1

        sleep_ms(config.pages.delay_ms)

    logger.info(f"All done (or attempted). {report.summary()}")
    if report.failed:
        logger.warning(f"Pages not cached this run: {', '.join(report.failed)}")
    return report
