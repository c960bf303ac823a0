import asyncio
import random

from loguru import logger

from sitesearch.errors import CriticalError, NetworkError
from sitesearch.fetcher import FetchResult, PageFetcher
from sitesearch.monitoring.metrics_server import (
    FETCH_FAILURES,
    PAGES_FETCHED,
    SKIPPED_LINKS,
)
from sitesearch.morphology.lemmatizer import Lemmatizer
from sitesearch.parsing.html_extractor import extract_text, strip_non_bmp
from sitesearch.storage import repository
from sitesearch.utils.config_loader import Config
from sitesearch.utils.filters import is_valid_link
from sitesearch.utils.url_utils import extract_path, normalize_url


class PageFetchTask:
    """Fetch, persist and expand one page of a crawl session."""

    def __init__(self, session, fetcher: PageFetcher, lemmatizer: Lemmatizer, config: Config):
        self.session = session
        self.fetcher = fetcher
        self.lemmatizer = lemmatizer
        self.config = config

    async def _politeness_delay(self) -> None:
        low = self.config.delay_min_ms
        high = max(low, self.config.delay_max_ms)
        delay_ms = random.uniform(low, high)
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

    # --------------------------
    #  Main processing
    # --------------------------
    async def compute(self, url: str, depth: int = 0) -> None:
        session = self.session
        if session.stop_requested:
            return

        url = normalize_url(url)
        if not session.claim(url):
            logger.debug(f"[{session.name}] Already fetched: {url}")
            return

        await self._politeness_delay()
        if session.stop_requested:
            return

        path = extract_path(url)

        # --------------------------
        # 1) Fetch stage
        # --------------------------
        try:
            result = await self.fetcher.fetch(url)
        except NetworkError as exc:
            FETCH_FAILURES.labels(site=session.domain).inc()
            logger.warning(f"[{session.name}] Network error: {exc}")
            await repository.save_page(session.site_id, path, 0)
            session.pages_saved += 1
            await session.touch()
            return

        # --------------------------
        # 2) Storage stage
        # --------------------------
        content = ""
        text = ""
        if result.is_html:
            content = strip_non_bmp(result.body)
            text = extract_text(content)

        await repository.save_page(session.site_id, path, result.status_code, content, text)
        session.pages_saved += 1
        PAGES_FETCHED.labels(site=session.domain).inc()
        await session.touch()

        logger.info(
            f"[{session.name}] Crawled: {url} (status={result.status_code}, "
            f"length={len(content)}, links={len(result.links)})"
        )

        if result.status_code != 200 or not result.is_html:
            return

        # --------------------------
        # 3) Lemma stage
        # --------------------------
        lemmas = self.lemmatizer.extract_lemmas(text)
        session.record_lemmas(path, lemmas)

        # --------------------------
        # 4) Link enqueue stage
        # --------------------------
        self._schedule_links(result, depth)

    def _schedule_links(self, result: FetchResult, depth: int) -> None:
        session = self.session
        next_depth = depth + 1
        max_depth = self.config.max_depth
        max_pages = self.config.max_pages

        if max_depth is not None and next_depth > max_depth:
            SKIPPED_LINKS.labels(reason="max_depth").inc(len(result.links))
            return

        for link in result.links:
            if session.stop_requested:
                break

            if not is_valid_link(session.domain, link):
                SKIPPED_LINKS.labels(reason="invalid_link").inc()
                continue

            if max_pages is not None and session.scheduled_count >= max_pages:
                SKIPPED_LINKS.labels(reason="max_pages").inc()
                logger.info(f"[{session.name}] Max pages reached; not scheduling more links")
                break

            session.schedule(normalize_url(link), next_depth)


class Worker:
    """One member of a session's pool; drains the frontier until cancelled."""

    def __init__(self, session, task: PageFetchTask, worker_id: int):
        self.session = session
        self.task = task
        self.worker_id = worker_id
        self.name = f"{session.name}/worker-{worker_id}"

    async def run(self) -> None:
        frontier = self.session.frontier
        logger.debug(f"{self.name} started.")
        while True:
            url, depth = await frontier.get()
            try:
                await self.task.compute(url, depth)
            except Exception as exc:
                logger.exception(f"[{self.name}] Fatal error processing {url}")
                error = exc if isinstance(exc, CriticalError) else CriticalError(f"{url}: {exc}")
                self.session.fail(error)
            finally:
                frontier.task_done()
