from urllib.parse import urljoin, urlsplit, urlunsplit


def _sorted_query(query: str) -> str:
    tokens = [token for token in query.split("&") if token]
    return "&".join(sorted(tokens))


def _normalized_path(path: str) -> str:
    path = path.rstrip("/")
    return path or "/"


def normalize_url(url: str) -> str:
    """Canonical form of a crawled URL.

    The fragment is dropped, query parameters are sorted, and trailing
    slashes are stripped from the path (the root path stays ``/``).
    Applying it twice yields the same string.
    """
    parts = urlsplit(url.strip())
    return urlunsplit(
        (
            parts.scheme.lower(),
            parts.netloc.lower(),
            _normalized_path(parts.path),
            _sorted_query(parts.query),
            "",
        )
    )


def extract_path(url: str) -> str:
    """Site-relative path of a URL, as stored on a page row."""
    parts = urlsplit(url.strip())
    path = _normalized_path(parts.path)
    query = _sorted_query(parts.query)
    return f"{path}?{query}" if query else path


def resolve_url(base_url: str, link: str) -> str | None:
    """Resolve ``link`` against ``base_url``; only http(s) results are kept."""
    raw_link = (link or "").strip()
    if not raw_link:
        return None

    if raw_link.startswith("//"):
        base_scheme = urlsplit(base_url).scheme or "http"
        raw_link = f"{base_scheme}:{raw_link}"

    try:
        url = urljoin(base_url, raw_link)
        parts = urlsplit(url)
    except ValueError:
        return None

    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return url


def get_domain(url: str) -> str:
    """Host of a URL, lowercased, without port and leading ``www.``."""
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    host = host.lower()
    if host.startswith("www."):
        host = host[len("www."):]
    return host

