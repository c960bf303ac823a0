from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    generate_latest,
    Counter,
    Gauge,
    Histogram,
)

# -------------------------
# Crawl Metrics
# -------------------------

PAGES_FETCHED = Counter(
    "sitesearch_pages_fetched_total",
    "Pages fetched and persisted",
    ["site"],
)

FETCH_FAILURES = Counter(
    "sitesearch_fetch_failures_total",
    "Fetches that ended in a network error",
    ["site"],
)

REQUEST_LATENCY = Histogram(
    "sitesearch_request_latency_seconds",
    "Time to fetch a page",
    ["site"],
)

SKIPPED_LINKS = Counter(
    "sitesearch_skipped_links_total",
    "Discovered links that were not scheduled",
    ["reason"],
)

ACTIVE_SESSIONS = Gauge(
    "sitesearch_active_sessions",
    "Crawl sessions currently running",
)

# -------------------------
# Index / Search Metrics
# -------------------------

INDEX_ENTRIES_WRITTEN = Counter(
    "sitesearch_index_entries_written_total",
    "Index rows written by the index builder",
    ["site"],
)

SEARCH_REQUESTS = Counter(
    "sitesearch_search_requests_total",
    "Search queries answered",
)

SEARCH_LATENCY = Histogram(
    "sitesearch_search_latency_seconds",
    "Time to answer a search query",
)


# -------------------------
# /metrics endpoint
# -------------------------

async def metrics_handler(request):
    data = generate_latest()

    # content_type must not carry the charset parameter
    ctype = CONTENT_TYPE_LATEST.split(";")[0]

    return web.Response(
        body=data,
        content_type=ctype
    )


async def start_metrics_server(port=8000):
    app = web.Application()
    app.router.add_get("/metrics", metrics_handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()

    return runner, site
