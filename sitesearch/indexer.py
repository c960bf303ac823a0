import math
from typing import Dict, List, Tuple

from loguru import logger

from sitesearch.monitoring.metrics_server import INDEX_ENTRIES_WRITTEN
from sitesearch.storage import repository
from sitesearch.utils.config_loader import Config


def is_suppressed(doc_freq: int, total_pages: int, threshold: float, min_sample_pages: int) -> bool:
    """A lemma present on too large a share of a big enough site carries no signal."""
    if total_pages <= min_sample_pages:
        return False
    return doc_freq >= threshold * total_pages


class IndexBuilder:
    """Post-crawl pass: lemma frequencies, then TF-IDF ranks per page."""

    def __init__(self, config: Config):
        self.threshold = config.stop_word_threshold
        self.min_sample_pages = config.min_sample_pages
        self.batch_size = max(1, config.index_batch_size)

    def suppressed(self, doc_freq: int, total_pages: int) -> bool:
        return is_suppressed(doc_freq, total_pages, self.threshold, self.min_sample_pages)

    async def build(self, session) -> int:
        """Persist the session's accumulated lemmas and ranks. Returns rows written."""
        site_id = session.site_id
        try:
            total_pages = await repository.count_pages_by_site(site_id)
            if total_pages == 0 or not session.page_lemmas:
                logger.info(f"[{session.name}] Nothing to index")
                return 0

            # 1) lemma frequencies
            frequencies = {
                lemma: min(count, total_pages)
                for lemma, count in session.lemma_doc_freq.items()
            }
            lemmas = await repository.upsert_lemmas(site_id, frequencies, self.batch_size)
            logger.info(f"[{session.name}] Saved {len(lemmas)} lemmas")

            # 2) ranks
            page_ids = await repository.page_ids_by_path(site_id)
            idf_by_df: Dict[int, float] = {}
            rows: List[Tuple[int, int, float]] = []
            written = 0

            for (_, path), page_lemmas in session.page_lemmas.items():
                page_id = page_ids.get(path)
                if page_id is None:
                    logger.warning(f"[{session.name}] No stored page for {path}")
                    continue

                for text, tf in page_lemmas.items():
                    lemma = lemmas.get(text)
                    if lemma is None or lemma.frequency <= 0:
                        continue
                    if self.suppressed(lemma.frequency, total_pages):
                        continue

                    idf = idf_by_df.get(lemma.frequency)
                    if idf is None:
                        idf = math.log(total_pages / lemma.frequency)
                        idf_by_df[lemma.frequency] = idf

                    rows.append((page_id, lemma.id, tf * idf))
                    if len(rows) >= self.batch_size:
                        written += await repository.upsert_index_entries(rows, self.batch_size)
                        rows = []

            if rows:
                written += await repository.upsert_index_entries(rows, self.batch_size)

            INDEX_ENTRIES_WRITTEN.labels(site=session.domain).inc(written)
            logger.info(
                f"[{session.name}] Index built: {written} entries over {total_pages} pages"
            )
            return written
        finally:
            session.clear_caches()
