import pytest

from sitesearch.utils.url_utils import (
    extract_path,
    get_domain,
    normalize_url,
    resolve_url,
)


def test_normalize_url_drops_fragment_sorts_query_and_trailing_slash():
    normalized = normalize_url("HTTPS://Example.com/path/?b=2&a=1#section")
    assert normalized == "https://example.com/path?a=1&b=2"


def test_normalize_url_keeps_root_path():
    assert normalize_url("https://example.com") == "https://example.com/"
    assert normalize_url("https://example.com///") == "https://example.com/"


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/a/b/?z=1&&y=2#top",
        "http://example.com",
        "https://example.com/catalog?page=2",
    ],
)
def test_normalize_url_is_idempotent(url):
    once = normalize_url(url)
    assert normalize_url(once) == once


def test_extract_path_includes_sorted_query():
    assert extract_path("https://example.com/news/?id=5&cat=2#x") == "/news?cat=2&id=5"
    assert extract_path("https://example.com") == "/"


def test_resolve_url_handles_relative_and_protocol_relative_links():
    assert resolve_url("https://example.com/base/", "../about") == "https://example.com/about"
    assert resolve_url("https://example.com/", "//cdn.example.com/x") == "https://cdn.example.com/x"
    assert resolve_url("https://example.com/", "mailto:me@example.com") is None
    assert resolve_url("https://example.com/", "   ") is None


def test_get_domain_strips_www_and_port():
    assert get_domain("not-a-url") == ""
    assert get_domain("https://WWW.Example.com:8080/x") == "example.com"
    assert get_domain("https://Sub.Example.com") == "sub.example.com"
