from .site_model import Site, SiteStatus
from .page_model import Page
from .lemma_model import Lemma
from .index_model import IndexEntry
from .config_site_model import ConfigSite

__all__ = [
    "Site",
    "SiteStatus",
    "Page",
    "Lemma",
    "IndexEntry",
    "ConfigSite",
]
