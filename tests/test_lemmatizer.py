from types import SimpleNamespace

from sitesearch.morphology.lemmatizer import Lemmatizer, clean_text, detect_language
from sitesearch.morphology.profiles import Language, RussianProfile

from conftest import make_lemmatizer


def test_clean_text_drops_tags_entities_and_digits():
    assert clean_text("<p>Hello&nbsp;world 42!</p>") == "Hello world"


def test_detect_language():
    assert detect_language("кошка") is Language.RUSSIAN
    assert detect_language("cats") is Language.ENGLISH
    assert detect_language("catкошка") is None


def test_extract_lemmas_counts_normal_forms():
    lemmatizer = make_lemmatizer()

    lemmas = lemmatizer.extract_lemmas("Cats and dogs. The cat sleeps; кошки спят, кошки.")

    assert lemmas == {"cat": 2, "dog": 1, "sleep": 1, "кошки": 2, "спят": 1}


def test_extract_lemmas_skips_stop_words_short_tokens_and_functional_words():
    lemmatizer = make_lemmatizer(functional=["whose"])

    lemmas = lemmatizer.extract_lemmas("a x и в whose garden")

    assert lemmas == {"garden": 1}


def test_extract_lemmas_skips_mixed_script_tokens():
    lemmatizer = make_lemmatizer()

    assert lemmatizer.extract_lemmas("hello привет helloпривет") == {"hello": 1, "привет": 1}


def test_analyzer_failure_excludes_only_that_token():
    lemmatizer = make_lemmatizer(broken=["garden"])

    assert lemmatizer.extract_lemmas("green garden grows") == {"green": 1, "grow": 1}


def test_extract_lemmas_is_deterministic():
    lemmatizer = make_lemmatizer()
    text = "<div>Books about books, книги о книгах</div>"

    assert lemmatizer.extract_lemmas(text) == lemmatizer.extract_lemmas(text)


def test_lemma_set_and_empty_input():
    lemmatizer = make_lemmatizer()

    assert lemmatizer.lemma_set("Cats cat") == {"cat"}
    assert lemmatizer.extract_lemmas("") == {}
    assert lemmatizer.lemma_set("и в на") == set()


def test_profiles_are_built_lazily():
    calls = []

    def factory():
        calls.append(1)
        return {}

    lemmatizer = Lemmatizer(profile_factory=factory)
    assert calls == []

    assert lemmatizer.extract_lemmas("hello") == {}
    assert lemmatizer.extract_lemmas("world") == {}
    assert calls == [1]


class FakeAnalyzer:
    def __init__(self, parses):
        self.parses = parses

    def parse(self, word):
        return [
            SimpleNamespace(normal_form=form, tag=SimpleNamespace(POS=pos))
            for form, pos in self.parses.get(word, [])
        ]


def test_russian_profile_uses_top_parse_for_functional_check():
    analyzer = FakeAnalyzer(
        {
            "стали": [("стать", "VERB"), ("сталь", "NOUN"), ("стать", "INFN")],
            "потому": [("потому", "ADVB"), ("потому", "CONJ")],
            "но": [("но", "CONJ")],
        }
    )
    profile = RussianProfile(analyzer=analyzer)

    assert profile.normal_forms("стали") == ["стать", "сталь"]
    assert profile.is_functional("но")
    assert not profile.is_functional("потому")
    assert not profile.is_functional("неизвестное")
