"""Storage operations used by the crawler, the index builder and search.

Every function runs through Tortoise ORM, so the same code serves the
PostgreSQL deployment and the in-memory SQLite database of the test-suite.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger
from tortoise.transactions import in_transaction

from sitesearch.storage.models import IndexEntry, Lemma, Page, Site, SiteStatus

# Keeps IN (...) lists under the bound-parameter limit of every backend
ID_CHUNK = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _chunks(items: Sequence, size: int) -> Iterable[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


# -------------------------------------------------------
# Sites
# -------------------------------------------------------

async def find_site_by_url(url: str) -> Optional[Site]:
    return await Site.filter(url=url).first()


async def all_sites() -> List[Site]:
    return await Site.all().order_by("id")


async def delete_all_by_site_url(url: str) -> bool:
    """Delete index entries, lemmas, pages and the site row, in that order."""
    site = await find_site_by_url(url)
    if site is None:
        return False

    page_ids = await Page.filter(site_id=site.id).values_list("id", flat=True)
    async with in_transaction() as conn:
        for chunk in _chunks(list(page_ids), ID_CHUNK):
            await IndexEntry.filter(page_id__in=list(chunk)).using_db(conn).delete()
        await Lemma.filter(site_id=site.id).using_db(conn).delete()
        await Page.filter(site_id=site.id).using_db(conn).delete()
        await Site.filter(id=site.id).using_db(conn).delete()

    logger.info(f"Deleted stored data of site {url}")
    return True


async def create_site(url: str, name: str) -> Site:
    return await Site.create(
        url=url,
        name=name,
        status=SiteStatus.INDEXING,
        status_time=utcnow(),
        last_error=None,
    )


async def write_site_status(
    site_id: int,
    *,
    status: Optional[SiteStatus] = None,
    last_error: Optional[str] = None,
    clear_error: bool = False,
) -> Optional[Site]:
    """Read the current row and write only the status columns back.

    Concurrent writers to other columns are never overwritten. Returns the
    stored row, or None when the site no longer exists.
    """
    async with in_transaction() as conn:
        site = (
            await Site.filter(id=site_id)
            .using_db(conn)
            .select_for_update()
            .first()
        )
        if site is None:
            return None

        update_fields = ["status_time"]
        site.status_time = utcnow()
        if status is not None:
            site.status = status
            update_fields.append("status")
        if last_error is not None or clear_error:
            site.last_error = last_error
            update_fields.append("last_error")

        await site.save(using_db=conn, update_fields=update_fields)
    return site


# -------------------------------------------------------
# Pages
# -------------------------------------------------------

async def save_page(site_id: int, path: str, code: int, content: str = "", text: str = "") -> Page:
    return await Page.create(
        site_id=site_id,
        path=path,
        code=code,
        content=content,
        text=text,
    )


async def count_pages_by_site(site_id: int) -> int:
    return await Page.filter(site_id=site_id).count()


async def count_by_site_and_code(site_id: int, code: int) -> int:
    return await Page.filter(site_id=site_id, code=code).count()


async def page_ids_by_path(site_id: int) -> Dict[str, int]:
    rows = await Page.filter(site_id=site_id).values_list("path", "id")
    return {path: page_id for path, page_id in rows}


async def pages_by_ids(page_ids: Iterable[int]) -> Dict[int, Page]:
    ids = list(page_ids)
    pages: Dict[int, Page] = {}
    for chunk in _chunks(ids, ID_CHUNK):
        for page in await Page.filter(id__in=list(chunk)).prefetch_related("site"):
            pages[page.id] = page
    return pages


# -------------------------------------------------------
# Lemmas
# -------------------------------------------------------

async def count_lemmas_by_site(site_id: int) -> int:
    return await Lemma.filter(site_id=site_id).count()


async def find_lemma(site_id: int, text: str) -> Optional[Lemma]:
    return await Lemma.filter(site_id=site_id, lemma=text).first()


async def lemmas_by_text(site_id: int) -> Dict[str, Lemma]:
    return {lemma.lemma: lemma for lemma in await Lemma.filter(site_id=site_id)}


async def upsert_lemmas(site_id: int, frequencies: Dict[str, int], batch_size: int = 1000) -> Dict[str, Lemma]:
    """Create or update the lemma rows of a site and return them keyed by text."""
    existing = await lemmas_by_text(site_id)

    to_update: List[Lemma] = []
    to_create: List[Lemma] = []
    for text, frequency in frequencies.items():
        lemma = existing.get(text)
        if lemma is None:
            to_create.append(Lemma(site_id=site_id, lemma=text, frequency=frequency))
        elif lemma.frequency != frequency:
            lemma.frequency = frequency
            to_update.append(lemma)

    if to_update:
        await Lemma.bulk_update(to_update, fields=["frequency"], batch_size=batch_size)
    if to_create:
        await Lemma.bulk_create(to_create, batch_size=batch_size)

    return await lemmas_by_text(site_id)


# -------------------------------------------------------
# Index
# -------------------------------------------------------

async def find_by_lemma(lemma_id: int) -> List[IndexEntry]:
    return await IndexEntry.filter(lemma_id=lemma_id)


async def find_by_page_and_lemma(page_id: int, lemma_id: int) -> Optional[IndexEntry]:
    return await IndexEntry.filter(page_id=page_id, lemma_id=lemma_id).first()


async def ranks_for_pages(page_ids: Iterable[int], lemma_ids: Iterable[int]) -> Dict[Tuple[int, int], float]:
    """Rank of every stored (page, lemma) pair among the given ids."""
    lemma_list = list(lemma_ids)
    ranks: Dict[Tuple[int, int], float] = {}
    if not lemma_list:
        return ranks
    for chunk in _chunks(list(page_ids), ID_CHUNK):
        rows = await IndexEntry.filter(
            page_id__in=list(chunk), lemma_id__in=lemma_list
        ).values_list("page_id", "lemma_id", "rank")
        for page_id, lemma_id, rank in rows:
            ranks[(page_id, lemma_id)] = rank
    return ranks


async def upsert_index_entries(rows: Sequence[Tuple[int, int, float]], batch_size: int = 1000) -> int:
    """Write ``(page_id, lemma_id, rank)`` rows, updating pairs already stored."""
    written = 0
    for batch in _chunks(list(rows), batch_size):
        page_ids = list({page_id for page_id, _, _ in batch})
        existing: Dict[Tuple[int, int], IndexEntry] = {}
        for chunk in _chunks(page_ids, ID_CHUNK):
            for entry in await IndexEntry.filter(page_id__in=list(chunk)):
                existing[(entry.page_id, entry.lemma_id)] = entry

        to_update: List[IndexEntry] = []
        to_create: List[IndexEntry] = []
        for page_id, lemma_id, rank in batch:
            entry = existing.get((page_id, lemma_id))
            if entry is None:
                to_create.append(IndexEntry(page_id=page_id, lemma_id=lemma_id, rank=rank))
            else:
                entry.rank = rank
                to_update.append(entry)

        if to_update:
            await IndexEntry.bulk_update(to_update, fields=["rank"], batch_size=batch_size)
        if to_create:
            await IndexEntry.bulk_create(to_create, batch_size=batch_size)
        written += len(batch)
    return written
