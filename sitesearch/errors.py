class SearchEngineError(Exception):
    """Base class for errors raised by the crawler and search core."""


class NetworkError(SearchEngineError):
    """A page could not be fetched (timeout, refused connection, bad body)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ParseError(SearchEngineError):
    """Malformed HTML; only link extraction for that page is skipped."""


class CriticalError(SearchEngineError):
    """Crawl-fatal failure. The session stops and the site is marked failed."""


class ValidationError(SearchEngineError):
    """Rejected site registration. Nothing was written."""
