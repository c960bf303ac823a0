import argparse
import asyncio
import json
import signal
from dataclasses import asdict
from typing import List, Optional

from loguru import logger

# -------------------------------
# UVLOOP (enabled when installed)
# -------------------------------
try:
    import uvloop
    uvloop.install()
except ImportError:
    logger.warning("uvloop not available, using default asyncio loop.")

# -------------------------------
# INTERNAL IMPORTS
# -------------------------------
from sitesearch.errors import ValidationError
from sitesearch.monitoring.metrics_server import start_metrics_server
from sitesearch.morphology.lemmatizer import Lemmatizer
from sitesearch.morphology.profiles import default_profiles
from sitesearch.search import SearchEngine
from sitesearch.session import CrawlRegistry
from sitesearch.sites import SiteRegistry
from sitesearch.storage.postgres.postgres_init import close_database, init_database
from sitesearch.utils.config_loader import Config, load_config
from sitesearch.utils.logger import setup_logger
from sitesearch.utils.url_utils import normalize_url


def build_lemmatizer(config: Config) -> Lemmatizer:
    return Lemmatizer(profile_factory=lambda: default_profiles(config.nltk_data_dir))


# -------------------------------
# COMMANDS
# -------------------------------
async def run_crawl(config: Config, site_url: Optional[str], metrics: bool) -> int:
    registry = CrawlRegistry(config, build_lemmatizer(config))
    sites = SiteRegistry(registry)

    metrics_runner = None
    if metrics:
        metrics_runner, _ = await start_metrics_server(port=config.metrics_port)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: asyncio.ensure_future(registry.stop()))

    try:
        if site_url:
            targets = {site.url: site for site in await sites.list_sites()}
            url = site_url.rstrip("/")
            target = targets.get(url)
            name = target.name if target else url
            started = await registry.start(url, name)
        else:
            started = await registry.start_all()

        if not started:
            return 1

        await registry.wait()
        return 0
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        if metrics_runner is not None:
            await metrics_runner.shutdown()
            await metrics_runner.cleanup()


async def run_search(config: Config, query: str, site_url: Optional[str], offset: int, limit: int) -> int:
    engine = SearchEngine(config, build_lemmatizer(config))
    response = await engine.search(query, site_url, offset, limit)
    print(json.dumps(response.to_dict(), ensure_ascii=False, indent=2))
    return 0


async def run_stats() -> int:
    stats = await SiteRegistry().statistics()
    print(json.dumps(asdict(stats), ensure_ascii=False, indent=2))
    return 0


async def run_add_site(name: str, url: str) -> int:
    try:
        site = await SiteRegistry().add_site(name, url)
    except ValidationError as exc:
        logger.error(f"Cannot add site: {exc}")
        return 2
    print(f"Added {site.name} ({site.url})")
    return 0


async def run_remove_site(name: str) -> int:
    try:
        await SiteRegistry().remove_site(name)
    except ValidationError as exc:
        logger.error(f"Cannot remove site: {exc}")
        return 2
    print(f"Removed {name}")
    return 0


# -------------------------------
# MAIN APPLICATION
# -------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sitesearch", description="Site crawler and lemma search engine")
    parser.add_argument("--config", default=None, help="Path to the YAML config file")
    sub = parser.add_subparsers(dest="command", required=True)

    crawl = sub.add_parser("crawl", help="Crawl one registered site or all of them")
    crawl.add_argument("--site", default=None, help="Root URL of the site to crawl")
    crawl.add_argument("--metrics", action="store_true", help="Serve /metrics while crawling")

    search = sub.add_parser("search", help="Search the index")
    search.add_argument("query")
    search.add_argument("--site", default=None, help="Restrict results to this site URL")
    search.add_argument("--offset", type=int, default=0)
    search.add_argument("--limit", type=int, default=20)

    sub.add_parser("stats", help="Print indexing statistics")

    add = sub.add_parser("add-site", help="Register a crawl target")
    add.add_argument("name")
    add.add_argument("url")

    remove = sub.add_parser("remove-site", help="Unregister a crawl target")
    remove.add_argument("name")
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    setup_logger(config.log_level, config.log_path, component=args.command)

    await init_database(config.database_url)
    try:
        await SiteRegistry().seed_sites(config.sites)

        if args.command == "crawl":
            return await run_crawl(config, args.site, args.metrics)
        if args.command == "search":
            site = normalize_url(args.site).rstrip("/") if args.site else None
            return await run_search(config, args.query, site, args.offset, args.limit)
        if args.command == "stats":
            return await run_stats()
        if args.command == "add-site":
            return await run_add_site(args.name, args.url)
        if args.command == "remove-site":
            return await run_remove_site(args.name)
        return 1
    finally:
        await close_database()


def cli() -> None:
    raise SystemExit(asyncio.run(main()))


# -------------------------------
# ENTRYPOINT
# -------------------------------
if __name__ == "__main__":
    cli()
