import argparse
from pathlib import Path

from .env import load_env

from . import __version__
from .client import TMDbClient
from .config import Config, ConfigError, FetchSettings, LOG_LEVELS
from .details import CacheEmptyError, fetch_movie_details
from .logger import get_logger, reset_logger
from .popular import fetch_popular_pages
from .report import FetchReport
from .retry import RetryError
from .server import serve
from .store import CacheStore, open_store


def build_config(args: argparse.Namespace) -> Config:
    """Environment first, then whatever was given on the command line."""
    try:
        config = Config.from_env()
    except ConfigError as e:
        raise SystemExit(f"ERROR: {e}")

    overrides = {
        "cache_dir": Path(args.cache_dir) if args.cache_dir else None,
        "backend": args.backend,
        "log_level": args.log_level,
        "api_key": getattr(args, "api_key", None),
        "start_page": getattr(args, "start_page", None),
        "end_page": getattr(args, "end_page", None),
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
    }
    if getattr(args, "refresh_total", False):
        overrides["refresh_total"] = True

    delay_ms = getattr(args, "delay_ms", None)
    retries = getattr(args, "retries", None)
    target = getattr(args, "settings_target", None)
    if target and (delay_ms is not None or retries is not None):
        current = getattr(config, target)
        overrides[target] = FetchSettings(
            delay_ms=current.delay_ms if delay_ms is None else delay_ms,
            retries=current.retries if retries is None else retries,
        )
    return config.with_overrides(**overrides)


def _setup(args: argparse.Namespace):
    config = build_config(args)
    reset_logger()
    logger = get_logger(
        level=config.log_level,
        log_dir=config.log_dir,
        enable_file=config.log_dir is not None,
    )
    return config, logger


def _finish(report: FetchReport, logger) -> None:
    logger.log_metrics_summary()
    print(f"Done. {report.summary()}")
    if not report.complete:
        print("Completed with omissions:")
        for key in report.failed:
            print(f" - failed: {key}")
        for key in report.malformed:
            print(f" - malformed: {key}")


def _open_client(config: Config) -> TMDbClient:
    try:
        return TMDbClient.from_config(config)
    except ConfigError as e:
        raise SystemExit(f"ERROR: {e}")


def cmd_fetch_pages(args: argparse.Namespace) -> None:
    config, logger = _setup(args)
    client = _open_client(config)
    store = open_store(config.backend, config.cache_dir)
    try:
        report = fetch_popular_pages(client, store, config, logger)
    except RetryError as e:
        raise SystemExit(f"Fatal error: could not learn total_pages ({e.attempts} attempts failed)")
    finally:
        client.close()
    _finish(report, logger)


def cmd_fetch_details(args: argparse.Namespace) -> None:
    config, logger = _setup(args)
    client = _open_client(config)
    store = open_store(config.backend, config.cache_dir)
    try:
        report = fetch_movie_details(client, store, config, logger)
    except CacheEmptyError as e:
        raise SystemExit(f"ERROR: {e}")
    finally:
        client.close()
    _finish(report, logger)


def cmd_serve(args: argparse.Namespace) -> None:
    config, logger = _setup(args)
    store = open_store(config.backend, config.cache_dir)
    serve(store, host=config.host, port=config.port, logger=logger)


def cmd_status(args: argparse.Namespace) -> None:
    config, _ = _setup(args)
    store: CacheStore = open_store(config.backend, config.cache_dir)
    pages = store.page_keys()
    details = store.detail_keys()
    print(f"Cache: {store!r}")
    print(f"  Popular pages: {len(pages)}")
    print(f"  Movie details: {len(details)}")


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--cache-dir", help="Cache directory (default: $CACHE_DIR or ./cache)")
    p.add_argument("--backend", choices=["file", "sqlite"], help="Cache backend (default: $CACHE_BACKEND or file)")
    p.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, help="Console log level (default: $LOG_LEVEL or INFO)")


def _add_pacing(p: argparse.ArgumentParser, target: str) -> None:
    p.add_argument("--api-key", help="TMDb API key (or set TMDB_API_KEY)")
    p.add_argument("--delay-ms", type=_non_negative, help="Delay between requests in milliseconds (default 250)")
    p.add_argument("--retries", type=_positive, help="Attempts per item (default 3)")
    p.set_defaults(settings_target=target)


def _positive(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return n


def _non_negative(value: str) -> int:
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return n


def main(argv=None):
    # Load .env if present (TMDB_API_KEY, CACHE_DIR, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="tmdbcache", description="TMDb popular-movie cache builder and server")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    pages = subparsers.add_parser("fetch-pages", help="Cache every popular-movies page (up to 500)")
    _add_common(pages)
    _add_pacing(pages, "pages")
    pages.add_argument("--start-page", type=_positive, help="First page (default: $START_PAGE or 1)")
    pages.add_argument("--end-page", type=_positive, help="Last page; capped by TMDb's total and 500 (default: $END_PAGE)")
    pages.add_argument("--refresh-total", action="store_true", help="Refetch page 1 for total_pages even when it is cached")
    pages.set_defaults(func=cmd_fetch_pages)

    details = subparsers.add_parser("fetch-details", help="Cache details + credits for every movie on the cached pages")
    _add_common(details)
    _add_pacing(details, "details")
    details.set_defaults(func=cmd_fetch_details)

    srv = subparsers.add_parser("serve", help="Serve the cache over HTTP (/ping, /cache/<name>)")
    _add_common(srv)
    srv.add_argument("--host", help="Bind address (default: $HOST or 127.0.0.1)")
    srv.add_argument("--port", type=_positive, help="Port (default: $PORT or 3000)")
    srv.set_defaults(func=cmd_serve)

    st = subparsers.add_parser("status", help="Count cached pages and movie details")
    _add_common(st)
    st.set_defaults(func=cmd_status)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
