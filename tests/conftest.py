import os
import sys
from pathlib import Path
from typing import Dict, List

import pytest
import pytest_asyncio

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sitesearch.morphology.lemmatizer import Lemmatizer
from sitesearch.morphology.profiles import Language, LanguageProfile
from sitesearch.storage.postgres.postgres_init import close_database, init_database
from sitesearch.utils.config_loader import Config
from sitesearch.utils.env_loader import load_environment


@pytest.fixture(autouse=True)
def load_dotenv_defaults(monkeypatch):
    """Ensure .env defaults are available for every test."""

    # Clear key variables so tests always use the .env baseline unless they
    # explicitly override values via monkeypatch or a custom env file.
    for key in [
        "DATABASE_URL",
        "POSTGRES_USER",
        "POSTGRES_PASSWORD",
        "POSTGRES_HOST",
        "POSTGRES_PORT",
        "POSTGRES_DB",
        "WORKERS",
        "CRAWLER_USER_AGENT",
        "CRAWLER_REFERRER",
        "REQUEST_TIMEOUT_MS",
        "DELAY_MIN_MS",
        "DELAY_MAX_MS",
        "MAX_PAGES",
        "MAX_DEPTH",
        "STOP_WORD_THRESHOLD",
        "SITESEARCH_CONFIG",
        "SITESEARCH_ENV_FILE",
    ]:
        monkeypatch.delenv(key, raising=False)

    load_environment(override=True)

    yield

    # Clean up to avoid leaking state between tests.
    for key in list(os.environ.keys()):
        if key.startswith("TEST_"):
            monkeypatch.delenv(key, raising=False)


@pytest_asyncio.fixture
async def db():
    await init_database("sqlite://:memory:")
    yield
    await close_database()


class FakeProfile(LanguageProfile):
    """Lowercase word is its own lemma, trailing "s" dropped."""

    def __init__(self, functional: List[str] = (), broken: List[str] = ()):
        self.functional = set(functional)
        self.broken = set(broken)

    def normal_forms(self, word: str) -> List[str]:
        if word in self.broken:
            raise RuntimeError(f"cannot analyze {word}")
        if word.endswith("s") and len(word) > 3:
            return [word[:-1], word]
        return [word]

    def is_functional(self, word: str) -> bool:
        return word in self.functional


def make_lemmatizer(**kwargs) -> Lemmatizer:
    profiles: Dict[Language, LanguageProfile] = {
        Language.ENGLISH: FakeProfile(**kwargs),
        Language.RUSSIAN: FakeProfile(**kwargs),
    }
    return Lemmatizer(profiles=profiles)


@pytest.fixture
def lemmatizer() -> Lemmatizer:
    return make_lemmatizer()


@pytest.fixture
def config() -> Config:
    return Config(
        database_url="sqlite://:memory:",
        delay_min_ms=0,
        delay_max_ms=0,
        crawler_workers=2,
        start_pause_ms=0,
        request_timeout_ms=2000,
    )
