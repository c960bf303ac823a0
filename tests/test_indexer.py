import math
from collections import Counter

import pytest

from sitesearch.indexer import IndexBuilder, is_suppressed
from sitesearch.storage import repository


class RecordedSession:
    """Crawl session stand-in carrying accumulated lemma maps."""

    def __init__(self, site, page_lemmas):
        self.site_id = site.id
        self.name = site.name
        self.domain = "example.com"
        self.page_lemmas = {(site.id, path): lemmas for path, lemmas in page_lemmas.items()}
        self.lemma_doc_freq = Counter()
        for lemmas in page_lemmas.values():
            self.lemma_doc_freq.update(lemmas.keys())
        self.cleared = False

    def clear_caches(self):
        self.page_lemmas.clear()
        self.lemma_doc_freq.clear()
        self.cleared = True


async def make_site(paths):
    site = await repository.create_site("https://example.com", "Example")
    pages = {}
    for path in paths:
        pages[path] = await repository.save_page(site.id, path, 200)
    return site, pages


@pytest.mark.parametrize(
    "df,total,expected",
    [
        (9, 10, False),   # sample too small
        (10, 11, True),
        (8, 11, False),
        (9, 11, True),    # 9 >= 8.8
    ],
)
def test_is_suppressed(df, total, expected):
    assert is_suppressed(df, total, threshold=0.8, min_sample_pages=10) is expected


@pytest.mark.asyncio
async def test_build_persists_frequencies_and_tf_idf_ranks(db, config):
    site, pages = await make_site(["/p1", "/p2", "/p3"])
    session = RecordedSession(
        site,
        {
            "/p1": {"cat": 2, "dog": 1},
            "/p2": {"cat": 1},
            "/p3": {"bird": 4},
        },
    )

    written = await IndexBuilder(config).build(session)

    assert written == 4
    lemmas = await repository.lemmas_by_text(site.id)
    assert {text: lemma.frequency for text, lemma in lemmas.items()} == {"cat": 2, "dog": 1, "bird": 1}

    cat_p1 = await repository.find_by_page_and_lemma(pages["/p1"].id, lemmas["cat"].id)
    dog_p1 = await repository.find_by_page_and_lemma(pages["/p1"].id, lemmas["dog"].id)
    bird_p3 = await repository.find_by_page_and_lemma(pages["/p3"].id, lemmas["bird"].id)
    assert cat_p1.rank == pytest.approx(2 * math.log(3 / 2))
    assert dog_p1.rank == pytest.approx(math.log(3))
    assert bird_p3.rank == pytest.approx(4 * math.log(3))
    assert session.cleared
    assert session.page_lemmas == {}


@pytest.mark.asyncio
async def test_build_clamps_frequency_to_page_count(db, config):
    site, _ = await make_site(["/p1", "/p2"])
    session = RecordedSession(site, {"/p1": {"cat": 1}, "/p2": {"cat": 1}})
    session.lemma_doc_freq["cat"] = 5

    await IndexBuilder(config).build(session)

    lemma = await repository.find_lemma(site.id, "cat")
    assert lemma.frequency == 2


@pytest.mark.asyncio
async def test_build_skips_suppressed_lemmas(db, config):
    config.min_sample_pages = 2
    config.stop_word_threshold = 0.8
    site, pages = await make_site(["/p1", "/p2", "/p3"])
    session = RecordedSession(
        site,
        {
            "/p1": {"common": 1, "rare": 1},
            "/p2": {"common": 2},
            "/p3": {"common": 1},
        },
    )

    await IndexBuilder(config).build(session)

    lemmas = await repository.lemmas_by_text(site.id)
    # The lemma row is kept, only its index entries are skipped
    assert lemmas["common"].frequency == 3
    assert await repository.find_by_lemma(lemmas["common"].id) == []
    assert len(await repository.find_by_lemma(lemmas["rare"].id)) == 1


@pytest.mark.asyncio
async def test_build_with_nothing_accumulated(db, config):
    site, _ = await make_site(["/"])
    session = RecordedSession(site, {})

    assert await IndexBuilder(config).build(session) == 0
    assert await repository.count_lemmas_by_site(site.id) == 0
    assert session.cleared
