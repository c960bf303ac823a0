"""Query answering over the persisted lemma index.

A query is lemmatized with the crawler's own lemmatizer, candidate pages
are the intersection of the pages carrying every query lemma (rarest lemma
first), and pages are ordered by the sum of their TF-IDF ranks relative to
the best page.
"""

import re
import time
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Set

from loguru import logger

from sitesearch.indexer import is_suppressed
from sitesearch.monitoring.metrics_server import SEARCH_LATENCY, SEARCH_REQUESTS
from sitesearch.morphology.lemmatizer import Lemmatizer
from sitesearch.parsing.html_extractor import extract_title
from sitesearch.storage import repository
from sitesearch.storage.models import Lemma, Site
from sitesearch.utils.config_loader import Config

SNIPPET_CONTEXT = 100
SNIPPET_FALLBACK = 200


@dataclass
class SearchResult:
    site: str
    site_name: str
    uri: str
    title: str
    snippet: str
    relevance: float


@dataclass
class SearchResponse:
    result: bool = True
    count: int = 0
    data: List[SearchResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def build_snippet(text: str, lemmas: List[str]) -> str:
    if not text:
        return "No content"

    lowered = text.lower()
    for word in lemmas:
        index = lowered.find(word.lower())
        if index == -1:
            continue

        start = max(0, index - SNIPPET_CONTEXT)
        end = min(len(text), index + len(word) + SNIPPET_CONTEXT)
        fragment = re.sub(
            re.escape(word),
            lambda m: f"<b>{m.group(0)}</b>",
            text[start:end],
            flags=re.IGNORECASE,
        )
        if start > 0:
            fragment = "..." + fragment
        if end < len(text):
            fragment += "..."
        return fragment

    return text[:SNIPPET_FALLBACK] + "..."


class SearchEngine:
    def __init__(self, config: Config, lemmatizer: Lemmatizer):
        self.config = config
        self.lemmatizer = lemmatizer

    async def _target_sites(self, site_url: Optional[str]) -> List[Site]:
        if site_url:
            site = await repository.find_site_by_url(site_url)
            return [site] if site else []
        return await repository.all_sites()

    async def _site_lemmas(self, site: Site, query_lemmas: Set[str]) -> List[Lemma]:
        total_pages = await repository.count_pages_by_site(site.id)
        kept: List[Lemma] = []
        for text in sorted(query_lemmas):
            lemma = await repository.find_lemma(site.id, text)
            if lemma is None:
                continue
            if is_suppressed(
                lemma.frequency,
                total_pages,
                self.config.stop_word_threshold,
                self.config.min_sample_pages,
            ):
                logger.debug(f"Lemma '{text}' suppressed on {site.url}")
                continue
            kept.append(lemma)
        return kept

    async def _matching_pages(self, lemmas: List[Lemma]) -> Set[int]:
        ordered = sorted(lemmas, key=lambda lemma: lemma.frequency)
        pages: Optional[Set[int]] = None
        for lemma in ordered:
            entries = await repository.find_by_lemma(lemma.id)
            page_ids = {entry.page_id for entry in entries}
            pages = page_ids if pages is None else pages & page_ids
            if not pages:
                return set()
        return pages or set()

    async def search(
        self,
        query: str,
        site_url: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> SearchResponse:
        SEARCH_REQUESTS.inc()
        started = time.perf_counter()
        try:
            return await self._search(query, site_url, max(0, offset), max(0, limit))
        finally:
            SEARCH_LATENCY.observe(time.perf_counter() - started)

    async def _search(self, query: str, site_url: Optional[str], offset: int, limit: int) -> SearchResponse:
        query_lemmas = self.lemmatizer.lemma_set(query or "")
        if not query_lemmas:
            logger.info(f"Query '{query}' has no searchable lemmas")
            return SearchResponse()

        # page id -> lemma ids of that page's site
        candidates: Dict[int, List[int]] = {}
        for site in await self._target_sites(site_url):
            lemmas = await self._site_lemmas(site, query_lemmas)
            if not lemmas:
                continue
            lemma_ids = [lemma.id for lemma in lemmas]
            for page_id in await self._matching_pages(lemmas):
                candidates[page_id] = lemma_ids

        if not candidates:
            return SearchResponse()

        all_lemma_ids = {lemma_id for ids in candidates.values() for lemma_id in ids}
        ranks = await repository.ranks_for_pages(candidates.keys(), all_lemma_ids)

        absolute: Dict[int, float] = {}
        for page_id, lemma_ids in candidates.items():
            absolute[page_id] = sum(ranks.get((page_id, lemma_id), 0.0) for lemma_id in lemma_ids)
        best = max(absolute.values())

        ordered = sorted(
            absolute.items(),
            key=lambda item: (-(item[1] / best if best > 0 else 0.0), item[0]),
        )
        count = len(ordered)
        window = ordered[offset:offset + limit]

        pages = await repository.pages_by_ids(page_id for page_id, _ in window)
        words = sorted(query_lemmas)
        data: List[SearchResult] = []
        for page_id, score in window:
            page = pages[page_id]
            data.append(
                SearchResult(
                    site=page.site.url,
                    site_name=page.site.name,
                    uri=page.path,
                    title=extract_title(page.content),
                    snippet=build_snippet(page.text, words),
                    relevance=score / best if best > 0 else 0.0,
                )
            )

        logger.info(f"Query '{query}': {count} pages, returning {len(data)}")
        return SearchResponse(result=True, count=count, data=data)
