import re
from urllib.parse import urlsplit

from sitesearch.utils.url_utils import get_domain

# Static resources that are never crawled as pages
BLOCKED_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".ico", ".mp4", ".mp3",
    ".pdf", ".zip", ".rar", ".exe", ".apk", ".iso", ".tar", ".gz", ".7z", ".css", ".js",
)

_BLOCKED_PATTERN = re.compile(
    "(?:" + "|".join(re.escape(ext) for ext in BLOCKED_EXTENSIONS) + r")$",
    re.IGNORECASE,
)


def is_valid_link(base_domain: str, url: str) -> bool:
    """Whether ``url`` is an internal page of the site at ``base_domain``."""
    if re.match(r"^(javascript:|mailto:|tel:)", url, re.I):
        return False

    parsed = urlsplit(url)
    if parsed.scheme not in ("http", "https"):
        return False

    if not parsed.netloc:
        return False

    if _BLOCKED_PATTERN.search(parsed.path):
        return False

    # Subdomains are not part of the site
    return get_domain(url) == base_domain
