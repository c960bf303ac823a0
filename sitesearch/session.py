"""Crawl sessions and the registry that owns them.

A session is one crawl of one site: its worker pool, frontier queue,
visited set, stop flag and the lemma counts collected while crawling. The
registry starts sessions in the background, stops them on request and runs
the completion handler (index build and final status) once the frontier
has drained.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from sitesearch.errors import CriticalError
from sitesearch.fetcher import PageFetcher
from sitesearch.indexer import IndexBuilder
from sitesearch.monitoring.metrics_server import ACTIVE_SESSIONS
from sitesearch.morphology.lemmatizer import Lemmatizer
from sitesearch.storage import repository
from sitesearch.storage.models import ConfigSite, Site, SiteStatus
from sitesearch.utils.config_loader import Config
from sitesearch.utils.url_utils import extract_path, get_domain, normalize_url
from sitesearch.worker import PageFetchTask, Worker


STOPPED_BY_USER = "stopped by user"


class SessionState(str, Enum):
    IDLE = "IDLE"
    CRAWLING = "CRAWLING"
    COMPLETED = "COMPLETED"
    STOPPED = "STOPPED"
    FAILED = "FAILED"


class CrawlSession:
    def __init__(self, site: Site):
        self.site_id: int = site.id
        self.site_url: str = site.url
        self.name: str = site.name
        self.domain: str = get_domain(site.url)
        self.root_url: str = normalize_url(site.url)

        self.state = SessionState.IDLE
        self.stop_requested = False
        self.user_stopped = False
        self.fatal_error: Optional[str] = None

        # Keyed by page path: http/https and www variants of a link are one page
        self.visited: set[str] = {extract_path(self.root_url)}
        self.fetched: set[str] = set()
        self.frontier: asyncio.Queue = asyncio.Queue()
        self.frontier.put_nowait((self.root_url, 0))

        self.page_lemmas: Dict[Tuple[int, str], Dict[str, int]] = {}
        self.lemma_doc_freq: Counter = Counter()
        self.pages_saved = 0

        self.status_lock = asyncio.Lock()
        self.task: Optional[asyncio.Task] = None
        self.done = asyncio.Event()

    # -------------------------------------------------------
    # Frontier / dedup
    # -------------------------------------------------------

    @property
    def scheduled_count(self) -> int:
        return len(self.visited)

    def schedule(self, url: str, depth: int) -> bool:
        """Atomically mark ``url`` visited and queue it; False if seen before."""
        path = extract_path(url)
        if self.stop_requested or path in self.visited:
            return False
        self.visited.add(path)
        self.frontier.put_nowait((url, depth))
        return True

    def claim(self, url: str) -> bool:
        """Reserve ``url`` for fetching; a URL is fetched at most once per crawl."""
        path = extract_path(url)
        if path in self.fetched:
            return False
        self.fetched.add(path)
        return True

    def _abandon_frontier(self) -> int:
        abandoned = 0
        while True:
            try:
                self.frontier.get_nowait()
            except asyncio.QueueEmpty:
                return abandoned
            self.frontier.task_done()
            abandoned += 1

    def request_stop(self, *, by_user: bool) -> None:
        self.stop_requested = True
        if by_user:
            self.user_stopped = True
        abandoned = self._abandon_frontier()
        if abandoned:
            logger.info(f"[{self.name}] Abandoned {abandoned} scheduled URLs")

    def fail(self, error: CriticalError) -> None:
        if self.fatal_error is None:
            self.fatal_error = str(error)
        self.request_stop(by_user=False)

    # -------------------------------------------------------
    # Lemma accumulation
    # -------------------------------------------------------

    def record_lemmas(self, path: str, lemmas: Dict[str, int]) -> None:
        key = (self.site_id, path)
        if key in self.page_lemmas:
            return
        self.page_lemmas[key] = lemmas
        self.lemma_doc_freq.update(lemmas.keys())

    def clear_caches(self) -> None:
        self.page_lemmas.clear()
        self.lemma_doc_freq.clear()

    def release(self) -> None:
        self.clear_caches()
        self.visited.clear()
        self.fetched.clear()
        self._abandon_frontier()

    # -------------------------------------------------------
    # Status (single writer per site)
    # -------------------------------------------------------

    async def write_status(
        self,
        status: Optional[SiteStatus] = None,
        last_error: Optional[str] = None,
        *,
        clear_error: bool = False,
    ) -> None:
        async with self.status_lock:
            await repository.write_site_status(
                self.site_id,
                status=status,
                last_error=last_error,
                clear_error=clear_error,
            )

    async def touch(self) -> None:
        await self.write_status()


@dataclass
class SiteState:
    url: str
    name: str
    status: str
    session_state: Optional[str]
    last_error: Optional[str]
    pages: int
    lemmas: int


class CrawlRegistry:
    """Starts, stops and tracks one crawl session per site."""

    def __init__(
        self,
        config: Config,
        lemmatizer: Lemmatizer,
        *,
        index_builder: Optional[IndexBuilder] = None,
        fetcher_factory: Optional[Callable[[], PageFetcher]] = None,
    ):
        self.config = config
        self.lemmatizer = lemmatizer
        self.index_builder = index_builder or IndexBuilder(config)
        self.fetcher_factory = fetcher_factory or self._default_fetcher
        self.sessions: Dict[int, CrawlSession] = {}
        self._starting: set[str] = set()
        # Sites stopped while start() was still resetting their data
        self._stop_on_start: set[str] = set()

    def _default_fetcher(self) -> PageFetcher:
        return PageFetcher(
            user_agent=self.config.user_agent,
            referrer=self.config.referrer,
            timeout_ms=self.config.request_timeout_ms,
        )

    # -------------------------------------------------------
    # Lookup
    # -------------------------------------------------------

    def session_for(self, site_url: str) -> Optional[CrawlSession]:
        for session in self.sessions.values():
            if session.site_url == site_url:
                return session
        return None

    def is_active(self, site_url: str) -> bool:
        return site_url in self._starting or self.session_for(site_url) is not None

    def is_indexing(self) -> bool:
        return bool(self.sessions or self._starting)

    # -------------------------------------------------------
    # Start
    # -------------------------------------------------------

    async def start(self, site_url: str, name: str) -> bool:
        if self.is_active(site_url):
            logger.warning(f"Crawl of {site_url} is already running")
            return False

        self._starting.add(site_url)
        try:
            await repository.delete_all_by_site_url(site_url)
            site = await repository.create_site(site_url, name)

            session = CrawlSession(site)
            self.sessions[site.id] = session
            if site_url in self._stop_on_start:
                session.request_stop(by_user=True)
                logger.info(f"Crawl of {site_url} stopped before it began")
            session.task = asyncio.create_task(self._run(session))
        finally:
            self._starting.discard(site_url)
            self._stop_on_start.discard(site_url)

        ACTIVE_SESSIONS.inc()
        logger.info(f"Started crawl of {site_url}")
        return True

    async def start_all(self) -> bool:
        targets = await ConfigSite.all().order_by("id")
        if not targets:
            logger.warning("No registered sites to crawl")
            return False

        logger.info(f"Starting crawl of all sites. Total: {len(targets)}")
        pause = self.config.start_pause_ms / 1000
        for index, target in enumerate(targets):
            if self.is_active(target.url):
                logger.info(f"Site {target.url} is already crawling, skipping")
                continue
            await self.start(target.url, target.name)
            if pause > 0 and index < len(targets) - 1:
                await asyncio.sleep(pause)
        return True

    # -------------------------------------------------------
    # Stop
    # -------------------------------------------------------

    async def stop(self, site_url: Optional[str] = None) -> bool:
        """Stop one site's crawl, or every active crawl when no URL is given."""
        targets: List[CrawlSession] = [
            session
            for session in list(self.sessions.values())
            if site_url is None or session.site_url == site_url
        ]
        pending = [url for url in self._starting if site_url is None or url == site_url]
        self._stop_on_start.update(pending)
        if not targets and not pending:
            logger.warning("No active crawl to stop")
            return False

        for session in targets:
            session.request_stop(by_user=True)
            await session.write_status(SiteStatus.FAILED, STOPPED_BY_USER)
            logger.info(f"Crawl of {session.site_url} stopped")
        return True

    # -------------------------------------------------------
    # Wait
    # -------------------------------------------------------

    async def wait(self, site_url: Optional[str] = None) -> None:
        sessions = [
            session
            for session in list(self.sessions.values())
            if site_url is None or session.site_url == site_url
        ]
        await asyncio.gather(*(session.done.wait() for session in sessions))

    # -------------------------------------------------------
    # Status
    # -------------------------------------------------------

    async def status(self, site_url: str) -> Optional[SiteState]:
        site = await repository.find_site_by_url(site_url)
        if site is None:
            return None
        session = self.session_for(site_url)
        return SiteState(
            url=site.url,
            name=site.name,
            status=site.status.value,
            session_state=session.state.value if session else None,
            last_error=site.last_error,
            pages=await repository.count_pages_by_site(site.id),
            lemmas=await repository.count_lemmas_by_site(site.id),
        )

    # -------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------

    async def _crawl(self, session: CrawlSession) -> None:
        worker_count = max(1, self.config.crawler_workers)
        async with self.fetcher_factory() as fetcher:
            task = PageFetchTask(session, fetcher, self.lemmatizer, self.config)
            workers = [
                asyncio.create_task(Worker(session, task, i).run())
                for i in range(worker_count)
            ]
            try:
                await session.frontier.join()
            finally:
                for worker in workers:
                    worker.cancel()
                await asyncio.gather(*workers, return_exceptions=True)

    async def _run(self, session: CrawlSession) -> None:
        session.state = SessionState.CRAWLING
        try:
            await self._crawl(session)

            if not session.user_stopped and session.fatal_error is None:
                await self.index_builder.build(session)

            if session.user_stopped:
                session.state = SessionState.STOPPED
                await session.write_status(SiteStatus.FAILED, STOPPED_BY_USER)
                logger.info(f"Crawl of {session.site_url} was stopped by user")
            elif session.fatal_error is not None:
                session.state = SessionState.FAILED
                await session.write_status(SiteStatus.FAILED, session.fatal_error)
                logger.error(f"Crawl of {session.site_url} failed: {session.fatal_error}")
            else:
                session.state = SessionState.COMPLETED
                await session.write_status(SiteStatus.INDEXED, clear_error=True)
                logger.info(
                    f"Crawl of {session.site_url} finished. Pages: {session.pages_saved}"
                )
        except Exception as exc:
            logger.exception(f"Critical error while crawling {session.site_url}")
            session.fail(CriticalError(f"Critical error: {exc}"))
            session.state = SessionState.FAILED
            await session.write_status(SiteStatus.FAILED, session.fatal_error)
        finally:
            session.release()
            self.sessions.pop(session.site_id, None)
            ACTIVE_SESSIONS.dec()
            session.done.set()
