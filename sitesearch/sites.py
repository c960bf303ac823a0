import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from loguru import logger

from sitesearch.errors import ValidationError
from sitesearch.storage import repository
from sitesearch.storage.models import ConfigSite, SiteStatus
from sitesearch.utils.config_loader import ConfiguredSite

NOT_INDEXED = "NOT_INDEXED"

_NAME_PATTERN = re.compile(r"^[\w\s\-.,()&+а-яА-ЯёЁ]+$")
_DOMAIN_PATTERN = re.compile(
    r"^([a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$"
)


# -------------------------
# Validation
# -------------------------

def validate_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Site name cannot be empty")
    if not 2 <= len(name) <= 255:
        raise ValidationError("Site name must be between 2 and 255 characters")
    if not _NAME_PATTERN.match(name):
        raise ValidationError(
            "Site name contains invalid characters. Only letters, numbers, "
            "spaces and basic punctuation are allowed"
        )
    return name


def validate_url(url: Optional[str]) -> str:
    """Check a root https URL and return it as ``https://host``."""
    url = (url or "").strip()
    if not url:
        raise ValidationError("URL cannot be empty")
    if not url.lower().startswith("https://"):
        raise ValidationError("URL must start with https://")
    if "//" in url[len("https://"):] or url[len("https://"):].startswith("/"):
        raise ValidationError("URL contains consecutive slashes (//)")

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as exc:
        raise ValidationError(f"Malformed URL: {exc}") from exc

    host = parts.hostname or ""
    if not host:
        raise ValidationError("Invalid host in URL")
    if not _DOMAIN_PATTERN.match(host):
        raise ValidationError("Invalid domain format. Must be a valid top-level domain")
    if parts.path not in ("", "/"):
        raise ValidationError("URL must be root domain only (without paths). Example: https://example.com")
    if parts.query:
        raise ValidationError("URL must not contain query parameters. Example: https://example.com")
    if port is not None and port != 443:
        raise ValidationError("URL must not contain custom port. Use standard HTTPS port (443)")

    return f"https://{host.lower()}"


# -------------------------
# Statistics
# -------------------------

@dataclass
class SiteStatistics:
    url: str
    name: str
    status: str
    status_time: int
    error: str
    pages: int
    lemmas: int


@dataclass
class TotalStatistics:
    sites: int = 0
    pages: int = 0
    lemmas: int = 0
    indexing: bool = False


@dataclass
class Statistics:
    total: TotalStatistics = field(default_factory=TotalStatistics)
    detailed: List[SiteStatistics] = field(default_factory=list)


class SiteRegistry:
    """Registered crawl targets and per-site statistics."""

    def __init__(self, crawl_registry=None):
        self.crawl_registry = crawl_registry

    async def add_site(self, name: str, url: str) -> ConfigSite:
        name = validate_name(name)
        url = validate_url(url)

        if await ConfigSite.filter(url=url).exists():
            raise ValidationError(f"Site with URL {url} is already registered")
        if await ConfigSite.filter(name=name).exists():
            raise ValidationError(f"Site with name '{name}' is already registered")

        site = await ConfigSite.create(name=name, url=url)
        logger.info(f"Registered site {name} ({url})")
        return site

    async def remove_site(self, name: str) -> None:
        site = await ConfigSite.filter(name=name).first()
        if site is None:
            raise ValidationError(f"Site '{name}' is not registered")
        await site.delete()
        logger.info(f"Removed site {name} ({site.url})")

    async def list_sites(self) -> List[ConfigSite]:
        return await ConfigSite.all().order_by("id")

    async def seed_sites(self, configured: Iterable[ConfiguredSite]) -> int:
        """Register config-file sites that are not in the database yet."""
        added = 0
        for entry in configured:
            if await ConfigSite.filter(url=entry.url).exists():
                continue
            if await ConfigSite.filter(name=entry.name).exists():
                logger.warning(f"Skipping configured site {entry.url}: name '{entry.name}' is taken")
                continue
            await ConfigSite.create(name=entry.name, url=entry.url)
            added += 1
        if added:
            logger.info(f"Seeded {added} sites from configuration")
        return added

    def _is_indexing(self) -> bool:
        return bool(self.crawl_registry and self.crawl_registry.is_indexing())

    async def statistics(self) -> Statistics:
        stats = Statistics()
        targets = await self.list_sites()
        stats.total.sites = len(targets)
        stats.total.indexing = self._is_indexing()

        for target in targets:
            site = await repository.find_site_by_url(target.url)
            if site is None:
                stats.detailed.append(
                    SiteStatistics(
                        url=target.url,
                        name=target.name,
                        status=NOT_INDEXED,
                        status_time=0,
                        error="",
                        pages=0,
                        lemmas=0,
                    )
                )
                continue

            pages = await repository.count_pages_by_site(site.id)
            lemmas = await repository.count_lemmas_by_site(site.id)
            stats.total.pages += pages
            stats.total.lemmas += lemmas
            if site.status == SiteStatus.INDEXING:
                stats.total.indexing = True

            stats.detailed.append(
                SiteStatistics(
                    url=site.url,
                    name=site.name,
                    status=site.status.value,
                    status_time=int(site.status_time.timestamp() * 1000),
                    error=site.last_error or "",
                    pages=pages,
                    lemmas=lemmas,
                )
            )
        return stats
