"""
Tests for the popular-pages fetcher.
"""

import json

import pytest
from dataclasses import replace

from tmdbcache.popular import (
    HARD_PAGE_CAP,
    effective_end_page,
    fetch_popular_pages,
    learn_total_pages,
)
from tmdbcache.retry import RetryError
from tmdbcache.store import FileStore, page_key


class TestEffectiveEndPage:
    """Test upper-bound clamping."""

    def test_remote_total_below_cap(self):
        assert effective_end_page(42) == 42

    def test_clamped_to_hard_cap(self):
        """A remote total of 1000 is capped at 500."""
        assert HARD_PAGE_CAP == 500
        assert effective_end_page(1000) == 500

    def test_larger_override_does_not_lift_cap(self):
        assert effective_end_page(1000, override=2000) == 500

    def test_override_respected(self):
        assert effective_end_page(1000, override=10) == 10

    def test_override_above_remote_total(self):
        assert effective_end_page(7, override=10) == 7


class TestFetchPopularPages:
    """Test the page walk against a fake TMDb."""

    def test_fetches_every_page_into_empty_store(self, make_client, memory_store, config, quiet_logger):
        client, fake = make_client(total_pages=5)

        report = fetch_popular_pages(client, memory_store, config, quiet_logger)

        assert memory_store.page_keys() == [page_key(p) for p in range(1, 6)]
        assert fake.calls == [("page", p) for p in range(1, 6)]
        assert report.fetched == 5
        assert report.failed == []
        assert report.complete

    def test_entries_are_verbatim_pretty_json(self, make_client, memory_store, config, quiet_logger):
        client, fake = make_client(total_pages=1)

        fetch_popular_pages(client, memory_store, config, quiet_logger)

        raw = memory_store.get_raw(page_key(1))
        assert raw == json.dumps(fake.page_payload(1), indent=2, ensure_ascii=False)

    def test_second_run_makes_no_calls_and_changes_nothing(self, make_client, tmp_path, config, quiet_logger):
        """Fully populated cache: zero network calls, byte-identical files."""
        store = FileStore(tmp_path / "cache")
        client, fake = make_client(total_pages=4)
        fetch_popular_pages(client, store, config, quiet_logger)
        before = {p.name: p.read_bytes() for p in (tmp_path / "cache").iterdir()}

        client, fake = make_client(total_pages=4)
        report = fetch_popular_pages(client, store, config, quiet_logger)

        assert fake.calls == []
        assert report.fetched == 0
        assert report.skipped == 4
        assert quiet_logger.get_metrics()["kind_success_rate"]["page"]["skipped"] == report.skipped
        after = {p.name: p.read_bytes() for p in (tmp_path / "cache").iterdir()}
        assert after == before

    def test_resume_fetches_only_missing_pages(self, make_client, memory_store, config, quiet_logger, page_payload):
        """Pages {1,2,3} cached, range 1-5: only 4 and 5 hit the network."""
        for p in (1, 2, 3):
            memory_store.put(page_key(p), page_payload([p], total_pages=5, page=p))
        client, fake = make_client(total_pages=5)

        report = fetch_popular_pages(client, memory_store, config, quiet_logger)

        assert fake.calls == [("page", 4), ("page", 5)]
        assert report.fetched == 2
        assert report.skipped == 3

    def test_end_page_override(self, make_client, memory_store, config, quiet_logger):
        client, fake = make_client(total_pages=1000)

        fetch_popular_pages(client, memory_store, replace(config, end_page=3), quiet_logger)

        assert fake.calls == [("page", 1), ("page", 2), ("page", 3)]

    def test_start_page_still_caches_page_one(self, make_client, memory_store, config, quiet_logger):
        client, fake = make_client(total_pages=5)

        fetch_popular_pages(client, memory_store, replace(config, start_page=4), quiet_logger)

        assert fake.calls == [("page", 1), ("page", 4), ("page", 5)]
        assert memory_store.has(page_key(1))
        assert not memory_store.has(page_key(2))

    def test_failing_page_is_retried_then_skipped(self, make_client, memory_store, config, quiet_logger):
        """Every attempt fails: exactly `retries` attempts, then the walk goes on."""
        client, fake = make_client(total_pages=5, failing=[("page", 3)])

        report = fetch_popular_pages(client, memory_store, config, quiet_logger)

        assert fake.count(("page", 3)) == config.pages.retries
        assert not memory_store.has(page_key(3))
        assert memory_store.has(page_key(4))
        assert memory_store.has(page_key(5))
        assert report.failed == [page_key(3)]
        assert not report.complete
        assert quiet_logger.metrics["fetches_failed"] == 1
        assert quiet_logger.metrics["errors_by_type"] == {"FetchError": 1}

    def test_retry_count_is_configurable(self, make_client, memory_store, config, quiet_logger):
        client, fake = make_client(total_pages=2, failing=[("page", 2)])
        config = replace(config, pages=replace(config.pages, retries=5))

        fetch_popular_pages(client, memory_store, config, quiet_logger)

        assert fake.count(("page", 2)) == 5

    def test_api_calls_are_counted(self, make_client, memory_store, config, quiet_logger):
        client, fake = make_client(total_pages=3, failing=[("page", 2)])

        fetch_popular_pages(client, memory_store, config, quiet_logger)

        assert quiet_logger.metrics["api_calls"] == len(fake.calls) == 1 + 3 + 1


class TestLearnTotalPages:
    """Test how page 1 and total_pages are handled."""

    def test_uses_cached_page_one(self, make_client, memory_store, config, quiet_logger, page_payload):
        memory_store.put(page_key(1), page_payload([1], total_pages=9))
        client, fake = make_client(total_pages=5)

        assert learn_total_pages(client, memory_store, config, quiet_logger) == 9
        assert fake.calls == []
        assert quiet_logger.metrics["fetches_skipped"] == 1

    def test_refresh_fetches_but_never_overwrites(self, make_client, memory_store, config, quiet_logger, page_payload):
        memory_store.put(page_key(1), page_payload([1], total_pages=9))
        original = memory_store.get_raw(page_key(1))
        client, fake = make_client(total_pages=5)

        total = learn_total_pages(client, memory_store, replace(config, refresh_total=True), quiet_logger)

        assert total == 5
        assert fake.calls == [("page", 1)]
        assert memory_store.get_raw(page_key(1)) == original

    def test_corrupt_cached_page_one_is_refetched_not_replaced(self, make_client, memory_store, config, quiet_logger):
        memory_store.put_raw(page_key(1), "{broken")
        client, fake = make_client(total_pages=5)

        assert learn_total_pages(client, memory_store, config, quiet_logger) == 5
        assert fake.calls == [("page", 1)]
        assert memory_store.get_raw(page_key(1)) == "{broken"

    def test_missing_total_pages_assumes_one(self, make_client, memory_store, config, quiet_logger):
        client, fake = make_client(total_pages=5)
        fake.total_pages = None

        report = fetch_popular_pages(client, memory_store, config, quiet_logger)

        assert fake.calls == [("page", 1)]
        assert report.fetched == 1
        assert report.planned == 1
        assert "total_pages" not in memory_store.get(page_key(1))

    def test_page_one_failure_is_fatal(self, make_client, memory_store, config, quiet_logger):
        client, fake = make_client(total_pages=5, failing=[("page", 1)])

        with pytest.raises(RetryError):
            fetch_popular_pages(client, memory_store, config, quiet_logger)

        assert fake.calls == [("page", 1)] * config.pages.retries
        assert memory_store.keys() == []
