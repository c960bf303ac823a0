"""Morphological language profiles.

Each profile answers two questions about a lowercase word: its normal
forms, and whether it is a functional word (preposition, conjunction,
particle, pronoun, article or determiner, interjection) that never becomes
a lemma.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Dict, List, Optional

import nltk
import pymorphy3
from loguru import logger
from nltk.stem import WordNetLemmatizer


class Language(str, Enum):
    RUSSIAN = "ru"
    ENGLISH = "en"


class LanguageProfile:
    language: Language

    def normal_forms(self, word: str) -> List[str]:
        raise NotImplementedError

    def is_functional(self, word: str) -> bool:
        raise NotImplementedError


class RussianProfile(LanguageProfile):
    language = Language.RUSSIAN

    # OpenCorpora grammemes of service parts of speech
    FUNCTIONAL_POS = frozenset({"PREP", "CONJ", "PRCL", "INTJ", "NPRO"})

    def __init__(self, analyzer: Optional[pymorphy3.MorphAnalyzer] = None):
        self.analyzer = analyzer or pymorphy3.MorphAnalyzer(lang="ru")

    def normal_forms(self, word: str) -> List[str]:
        forms: List[str] = []
        for parse in self.analyzer.parse(word):
            if parse.normal_form not in forms:
                forms.append(parse.normal_form)
        return forms

    def is_functional(self, word: str) -> bool:
        parses = self.analyzer.parse(word)
        if not parses:
            return False
        return parses[0].tag.POS in self.FUNCTIONAL_POS


NLTK_RESOURCES = {
    "corpora/wordnet": "wordnet",
    "corpora/omw-1.4": "omw-1.4",
    "taggers/averaged_perceptron_tagger_eng": "averaged_perceptron_tagger_eng",
}


def ensure_nltk_data(data_dir: Optional[str] = None) -> None:
    """Download the corpora the English profile needs, once."""
    if data_dir:
        os.makedirs(data_dir, exist_ok=True)
        if data_dir not in nltk.data.path:
            nltk.data.path.insert(0, data_dir)

    for resource, package in NLTK_RESOURCES.items():
        try:
            nltk.data.find(resource)
        except LookupError:
            logger.info(f"Downloading NLTK resource {package}")
            nltk.download(package, download_dir=data_dir, quiet=True)


class EnglishProfile(LanguageProfile):
    language = Language.ENGLISH

    # Penn Treebank tags of closed word classes
    FUNCTIONAL_TAGS = frozenset(
        {"IN", "CC", "DT", "PDT", "WDT", "PRP", "PRP$", "WP", "WP$", "RP", "TO", "UH", "EX"}
    )

    _WORDNET_POS = {"N": "n", "V": "v", "J": "a", "R": "r"}

    def __init__(self, data_dir: Optional[str] = None):
        ensure_nltk_data(data_dir)
        self.lemmatizer = WordNetLemmatizer()

    def _tag(self, word: str) -> str:
        return nltk.pos_tag([word])[0][1]

    def normal_forms(self, word: str) -> List[str]:
        primary = self._WORDNET_POS.get(self._tag(word)[:1], "n")
        forms: List[str] = []
        for pos in [primary] + [p for p in ("n", "v", "a", "r") if p != primary]:
            form = self.lemmatizer.lemmatize(word, pos)
            if form not in forms:
                forms.append(form)
        return forms

    def is_functional(self, word: str) -> bool:
        return self._tag(word) in self.FUNCTIONAL_TAGS


def default_profiles(nltk_data_dir: Optional[str] = None) -> Dict[Language, LanguageProfile]:
    return {
        Language.RUSSIAN: RussianProfile(),
        Language.ENGLISH: EnglishProfile(nltk_data_dir),
    }
