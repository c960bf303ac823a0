import pytest

from sitesearch.monitoring.metrics_server import PAGES_FETCHED, metrics_handler


@pytest.mark.asyncio
async def test_metrics_handler_exposes_crawl_counters():
    PAGES_FETCHED.labels(site="metrics.test").inc()

    response = await metrics_handler(None)

    assert response.content_type == "text/plain"
    assert b'sitesearch_pages_fetched_total{site="metrics.test"}' in response.body
