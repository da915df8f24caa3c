"""
Detail fetcher: caches the full record (with credits) of every movie that
appears on a cached popular page.
"""

from typing import List, Optional

from .client import TMDbClient, logging_callbacks, redact
from .config import Config
from .logger import StructuredLogger, get_logger
from .report import FetchReport
from .retry import RetryError, sleep_ms
from .schema import validate_page, movie_ids
from .store import CacheStore, detail_key


class CacheEmptyError(Exception):
    """Raised when there are no cached popular pages to read ids from."""
    pass


def collect_movie_ids(
    store: CacheStore,
    report: Optional[FetchReport] = None,
    logger: Optional[StructuredLogger] = None,
) -> List[int]:
    """
    Scan every cached popular page and return the unique movie ids, ascending.

    Pages that are not JSON or lack a `results` list are logged and skipped
    (and listed in report.malformed when a report is given).
    """
    logger = logger or get_logger()
    ids = set()

    for key in store.page_keys():
        try:
            data = store.get(key)
        except (ValueError, KeyError) as e:
            logger.warning(f"Failed to parse {key}: {e}")
            if report is not None:
                report.malformed.append(key)
            continue

        errors = validate_page(data)
        if errors:
            logger.warning(f"Skipping {key}: {'; '.join(errors)}")
            if report is not None:
                report.malformed.append(key)
            continue

        ids.update(movie_ids(data))

    return sorted(ids)


def fetch_movie_details(
    client: TMDbClient,
    store: CacheStore,
    config: Config,
    logger: Optional[StructuredLogger] = None,
) -> FetchReport:
    """
    Cache a detail record for every movie id found on the cached pages.

    Raises:
        CacheEmptyError: If the store holds no popular pages

    Returns:
        FetchReport; ids that failed every attempt are listed in report.failed
    """
    logger = logger or get_logger()
    report = FetchReport(kind="details")

    if not store.page_keys():
        raise CacheEmptyError(
            f"No popular_page_*.json entries in {store!r}. Run fetch-pages first."
        )

    ids = collect_movie_ids(store, report, logger)
    total = len(ids)
    report.planned = total
    logger.info(f"Found {total} unique movie IDs from popular_page_*.json")

    for done, movie_id in enumerate(ids, start=1):
        key = detail_key(movie_id)
        if store.has(key):
            logger.info(f"[{done}/{total}] {key} exists, skipping")
            logger.record_fetch_skipped("detail")
            report.skipped += 1
            continue

        logger.record_fetch_attempt("detail")
        try:
            data = client.movie_details(
                movie_id,
                attempts=config.details.retries,
                delay=config.details.delay_seconds,
                **logging_callbacks(logger, f"[{done}/{total}] details for ID {movie_id}", config.api_key),
            )
        except RetryError as e:
            logger.record_fetch_failure("detail", type(e.__cause__).__name__)
            logger.error(
                f"[{done}/{total}] Giving up on ID {movie_id} after {e.attempts} attempts: "
                f"{redact(str(e.__cause__), config.api_key)}"
            )
            report.failed.append(key)
        else:
            store.put(key, data)
            logger.record_fetch_success("detail")
            logger.info(f"[{done}/{total}] Saved: {key}")
            report.fetched += 1

        sleep_ms(config.details.delay_ms)

    logger.info(f"Done fetching movie details. {report.summary()}")
    if report.failed:
        logger.warning(f"Movies not cached this run: {', '.join(report.failed)}")
    if report.malformed:
        logger.warning(f"Unreadable pages skipped: {', '.join(report.malformed)}")
    return report
