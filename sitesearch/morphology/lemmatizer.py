import re
from typing import Callable, Dict, Mapping, Optional, Set

from loguru import logger

from sitesearch.morphology.profiles import Language, LanguageProfile, default_profiles

_TAG = re.compile(r"<[^>]+>")
_ENTITY = re.compile(r"&[^;\s]+;")
_NON_LETTER = re.compile(r"[^a-zA-Zа-яёА-ЯЁ\s]")
_CYRILLIC_WORD = re.compile(r"^[а-яё]+$")
_LATIN_WORD = re.compile(r"^[a-z]+$")

STOP_WORDS = frozenset(
    {
        # ru
        "и", "в", "во", "не", "что", "он", "на", "я", "с", "со", "как", "а", "то",
        "все", "она", "так", "его", "но", "да", "ты", "к", "у", "же", "вы", "за",
        "бы", "по", "только", "ее", "мне", "было", "вот", "от", "меня", "еще", "нет",
        "о", "из", "ему", "теперь", "когда", "даже", "ну", "ли", "если", "уже",
        "или", "ни", "быть", "был", "него", "до", "вас", "нибудь", "опять", "уж",
        # en
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "from", "up", "about", "into", "through", "during", "before",
        "after", "above", "below", "between", "among", "is", "are", "was", "were",
        "be", "been", "being", "have", "has", "had", "do", "does", "did", "will",
        "would", "shall", "should", "may", "might", "must", "can", "could",
    }
)


def clean_text(text: str) -> str:
    """Drop tags, entities and everything that is not a letter."""
    text = _TAG.sub(" ", text or "")
    text = _ENTITY.sub(" ", text)
    text = _NON_LETTER.sub(" ", text)
    return " ".join(text.split())


def detect_language(word: str) -> Optional[Language]:
    if _CYRILLIC_WORD.match(word):
        return Language.RUSSIAN
    if _LATIN_WORD.match(word):
        return Language.ENGLISH
    return None


class Lemmatizer:
    """Turns text into lemma occurrence counts.

    Profiles are built on first use unless passed in, so the analyzers'
    dictionaries load once per process.
    """

    def __init__(
        self,
        profiles: Optional[Mapping[Language, LanguageProfile]] = None,
        profile_factory: Callable[[], Mapping[Language, LanguageProfile]] = default_profiles,
    ):
        self._profiles = dict(profiles) if profiles is not None else None
        self._profile_factory = profile_factory

    @property
    def profiles(self) -> Dict[Language, LanguageProfile]:
        if self._profiles is None:
            self._profiles = dict(self._profile_factory())
        return self._profiles

    def _lemma_of(self, word: str) -> Optional[str]:
        language = detect_language(word)
        if language is None:
            return None

        profile = self.profiles.get(language)
        if profile is None:
            return None

        try:
            if profile.is_functional(word):
                return None
            forms = profile.normal_forms(word)
        except Exception as exc:
            logger.debug(f"Morphology failed for '{word}': {exc}")
            return None

        return forms[0] if forms else None

    def extract_lemmas(self, text: str) -> Dict[str, int]:
        lemmas: Dict[str, int] = {}
        for word in clean_text(text).lower().split():
            if len(word) < 2 or word in STOP_WORDS:
                continue
            lemma = self._lemma_of(word)
            if lemma:
                lemmas[lemma] = lemmas.get(lemma, 0) + 1
        return lemmas

    def lemma_set(self, text: str) -> Set[str]:
        return set(self.extract_lemmas(text))
