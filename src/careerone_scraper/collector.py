"""
Job Collector - drives the crawl from seed URLs to saved records
Handles pagination, budget-aware enqueueing and the detail worker pool
"""

import logging
import queue
import threading
from typing import Callable, Dict, List, Optional, Tuple

from careerone_scraper.crawl_state import CrawlState
from careerone_scraper.detail_extractor import extract_detail
from careerone_scraper.errors import FetchError
from careerone_scraper.fetcher import Fetcher, build_fetcher
from careerone_scraper.listing_extractor import extract_listings
from careerone_scraper.models import SOURCE_NAME, JobRecord, Listings
from careerone_scraper.output_writer import DatasetSink
from careerone_scraper.paginator import next_page
from careerone_scraper.run_metrics import RunMetrics

logger = logging.getLogger(__name__)

LISTING_WAIT_SELECTOR = "a[href*='/jobview/']"
DETAIL_WAIT_SELECTOR = "h1"

DetailTask = Tuple[str, Optional[JobRecord]]

_STOP = object()


class DetailWorkerPool:
    """
    Fixed set of threads working through detail tasks.

    Each thread keeps its own fetcher (Playwright objects are bound to the
    thread that created them), so `on_thread_exit` runs inside every worker
    thread as it shuts down.
    """

    def __init__(self, handler: Callable[[DetailTask], None], size: int,
                 on_thread_exit: Optional[Callable[[], None]] = None):
        self.handler = handler
        self.size = max(int(size), 1)
        self.on_thread_exit = on_thread_exit
        self.tasks: "queue.Queue" = queue.Queue()
        self.threads: List[threading.Thread] = []

    def start(self) -> None:
        for i in range(self.size):
            thread = threading.Thread(target=self._run, name=f"detail-worker-{i + 1}", daemon=True)
            thread.start()
            self.threads.append(thread)

    def _run(self) -> None:
        try:
            while True:
                task = self.tasks.get()
                try:
                    if task is _STOP:
                        return
                    self.handler(task)
                except Exception:
                    logger.exception("Detail worker crashed on %s", task)
                finally:
                    self.tasks.task_done()
        finally:
            if self.on_thread_exit is not None:
                self.on_thread_exit()

    def submit(self, task: DetailTask) -> None:
        self.tasks.put(task)

    def wait(self) -> None:
        """Block until every submitted task has finished."""
        self.tasks.join()

    def shutdown(self) -> None:
        for _ in self.threads:
            self.tasks.put(_STOP)
        for thread in self.threads:
            thread.join()
        self.threads = []


class JobCollector:
    """Collects job records from CareerOne results and detail pages"""

    def __init__(self, config, sink: Optional[DatasetSink] = None,
                 state: Optional[CrawlState] = None,
                 fetcher_factory: Optional[Callable[[], Fetcher]] = None,
                 metrics: Optional[RunMetrics] = None):
        self.config = config
        self.sink = sink if sink is not None else DatasetSink()
        self.state = state or CrawlState(
            results_wanted=config.get_results_wanted(),
            max_pages=config.get_max_pages(),
            dedupe=config.is_dedupe_enabled(),
        )
        self.fetcher_factory = fetcher_factory or (lambda: build_fetcher(config))
        self.metrics = metrics or RunMetrics(source=SOURCE_NAME)
        self.query = config.get_search_query()
        self.collect_details = config.is_collect_details_enabled()
        self.use_embedded_state = config.use_embedded_state()
        self.max_empty_pages = config.get_max_empty_pages()
        self._local = threading.local()

    # === Fetchers ===

    def _thread_fetcher(self) -> Fetcher:
        fetcher = getattr(self._local, "fetcher", None)
        if fetcher is None:
            fetcher = self.fetcher_factory()
            self._local.fetcher = fetcher
        return fetcher

    def _close_thread_fetcher(self) -> None:
        fetcher = getattr(self._local, "fetcher", None)
        if fetcher is None:
            return
        self._local.fetcher = None
        try:
            fetcher.close()
        except Exception:
            logger.debug("Fetcher close failed", exc_info=True)
        self.metrics.inc("blocked_retries", fetcher.blocked_retries)

    # === Saving ===

    def _save(self, record: JobRecord) -> None:
        record.with_context(self.query)
        self.sink.push(record)
        self.state.record_saved()
        self.metrics.inc("records_saved")
        logger.info(
            "Saved job: %s (%s/%s)", record.title or record.url,
            self.state.saved_count, self.state.results_wanted,
        )

    def _fail(self, url: str, exc: Exception, counter: str, event: str) -> None:
        """Give back the URL's budget slot and count the failure."""
        self.state.release()
        self.metrics.inc(counter)
        self.metrics.record_event(event, url=url, error=str(exc))
        logger.warning("%s %s: %s", event.upper(), url, exc)

    def _skip_reason(self) -> str:
        return "budget" if self.state.is_exhausted else "duplicate"

    # === Listing pages ===

    def _dispatch(self, urls: List[str], inline_by_url: Dict[str, JobRecord],
                  pool: Optional[DetailWorkerPool]) -> Tuple[int, List[str]]:
        """Claim urls in order until the budget runs out; return (claimed, untried)."""
        claimed = 0
        for i, url in enumerate(urls):
            if not self.state.claim(url):
                if self._skip_reason() == "budget":
                    return claimed, urls[i:]
                self.metrics.inc("duplicates_skipped")
                continue
            claimed += 1

            if self.collect_details and pool is not None:
                pool.submit((url, inline_by_url.get(url)))
                continue
            try:
                self._save(inline_by_url.get(url) or JobRecord(url=url))
            except Exception as exc:
                self._fail(url, exc, "save_failures", "save_failed")
        return claimed, []

    def process_listings(self, listings: Listings, pool: Optional[DetailWorkerPool]) -> int:
        """
        Claim and dispatch what a results page yielded. Returns how many were claimed.

        Listings left over when the budget filled up stay queued: once the
        page's detail tasks finish, slots freed by failed details go to them
        before pagination moves on.
        """
        inline_by_url = {record.url: record for record in listings.inline_records}
        pending = listings.all_urls()
        claimed = 0

        while True:
            count, pending = self._dispatch(pending, inline_by_url, pool)
            claimed += count
            if pool is not None:
                pool.wait()
            if not pending or self.state.is_exhausted:
                break
            logger.info(
                "%s budget slots freed; retrying %s remaining listings on this page",
                self.state.remaining_budget(), len(pending),
            )

        if pending:
            logger.info("Results budget reached; %s listings on this page left untried", len(pending))
        if claimed:
            action = "Enqueued" if self.collect_details else "Saved"
            logger.info("%s %s listings", action, claimed)
        return claimed

    # === Detail pages ===

    def handle_detail(self, task: DetailTask) -> None:
        """Fetch, extract and save one detail page. Failures stay with this URL."""
        url, inline = task
        try:
            page = self._thread_fetcher().fetch(url, wait_for=DETAIL_WAIT_SELECTOR)
            record = extract_detail(page.html, url)
            if inline is not None:
                record.merge_missing(inline)
        except Exception as exc:
            self._fail(url, exc, "detail_failures", "detail_failed")
            return

        self.metrics.inc("details_fetched")
        try:
            self._save(record)
        except Exception as exc:
            self._fail(url, exc, "detail_failures", "detail_failed")

    # === Seeds ===

    def crawl_seed(self, seed: str, pool: Optional[DetailWorkerPool] = None) -> None:
        """Walk one seed's results pages until budget, page ceiling or no next page"""
        fetcher = self._thread_fetcher()
        url: Optional[str] = seed
        empty_streak = 0

        while url:
            page_no = self.state.start_page(seed)
            if page_no is None:
                logger.info("Max pages reached for %s", seed)
                break

            logger.info("Searching: %s (page %s/%s)", url, page_no, self.state.max_pages)
            print(f"\n🔍 Page {page_no}/{self.state.max_pages}: {url}")
            try:
                page = fetcher.fetch(url, wait_for=LISTING_WAIT_SELECTOR)
            except FetchError as exc:
                logger.error("Results page failed, stopping this seed: %s", exc)
                print(f"   ✗ Failed to load results page: {exc}")
                self.metrics.inc("listing_failures")
                break
            self.metrics.inc("pages_fetched")

            listings = extract_listings(page.html, page.url, use_embedded_state=self.use_embedded_state)
            found = len(listings.all_urls())
            source = "embedded state" if listings.inline_records else "links"
            logger.info("Found %s job listings on page %s (%s)", found, page_no, source)
            print(f"   Found {found} listings")

            if listings.is_empty:
                empty_streak += 1
                self.metrics.inc("empty_pages")
            else:
                empty_streak = 0

            self.process_listings(listings, pool)
            print(f"   ✓ Saved {self.state.saved_count}/{self.state.results_wanted}")

            if empty_streak > self.max_empty_pages:
                logger.info("No listings on %s consecutive pages; stopping %s", empty_streak, seed)
                break

            url = next_page(
                page.html, url, page_no,
                saved_count=self.state.saved_count,
                results_wanted=self.state.results_wanted,
                max_pages=self.state.max_pages,
            )

    def collect_all(self, seeds: List[str]) -> List[JobRecord]:
        """Crawl every seed in order and return the saved records"""
        print("\n" + "=" * 60)
        print("🤖 STARTING JOB COLLECTION")
        print("=" * 60)
        logger.info(
            "Target: %s results, max pages: %s, collect details: %s",
            self.state.results_wanted, self.state.max_pages, self.collect_details,
        )

        pool = None
        if self.collect_details:
            pool = DetailWorkerPool(
                self.handle_detail,
                size=self.config.get_max_concurrency(),
                on_thread_exit=self._close_thread_fetcher,
            )
            pool.start()

        try:
            for seed in seeds:
                if self.state.is_exhausted:
                    logger.info("Results budget reached; skipping remaining start URLs")
                    break
                self.crawl_seed(seed, pool)
        except KeyboardInterrupt:
            logger.warning("Interrupted during collection; returning partial results")
            print("\n⚠️  Interrupted - returning partial results")
        finally:
            if pool is not None:
                pool.shutdown()
            self._close_thread_fetcher()
            self.metrics.capture_state(self.state)
            self.metrics.finish()

        records = list(self.sink.records)
        print(f"\n📊 Total: {len(records)} jobs saved")
        print("=" * 60 + "\n")
        logger.info(f"Collection complete: {self.metrics.summary()}")
        return records
