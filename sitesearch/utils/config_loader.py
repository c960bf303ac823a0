import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from sitesearch.utils.env_loader import load_environment


DEFAULT_USER_AGENT = "SiteSearchBot/1.0"
DEFAULT_REFERRER = "http://www.google.com"
DEFAULT_DATABASE_URL = "sqlite://sitesearch.sqlite3"

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "../config/config.yaml")


def default_worker_count() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class ConfiguredSite(BaseModel):
    name: str
    url: str


class Config(BaseSettings):
    database_url: str = DEFAULT_DATABASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    referrer: str = DEFAULT_REFERRER
    request_timeout_ms: int = 10_000
    delay_min_ms: int = 500
    delay_max_ms: int = 1500
    crawler_workers: int = default_worker_count()
    max_pages: Optional[int] = None
    max_depth: Optional[int] = None
    start_pause_ms: int = 1000

    stop_word_threshold: float = 0.8
    min_sample_pages: int = 10
    index_batch_size: int = 1000

    nltk_data_dir: Optional[str] = None
    metrics_port: int = 8000

    sites: List[ConfiguredSite] = []

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_path: str = "logs/sitesearch.log"


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    config_path = path or os.getenv("SITESEARCH_CONFIG") or CONFIG_PATH
    if not os.path.exists(config_path):
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    return int(raw)


def _database_url_from_env() -> Optional[str]:
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    host = os.getenv("POSTGRES_HOST")
    if not host:
        return None

    user = os.getenv("POSTGRES_USER", "sitesearch")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "sitesearch")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


def load_config(path: Optional[str] = None) -> Config:
    load_environment()
    file_data = _load_yaml_config(path)
    crawler_settings: Dict[str, Any] = file_data.get("crawler") or {}
    indexing_settings: Dict[str, Any] = file_data.get("indexing") or {}
    delay_settings: Dict[str, Any] = crawler_settings.get("delay") or {}

    values: Dict[str, Any] = {}

    # Precedence: env -> config file -> default
    database_url = _database_url_from_env() or file_data.get("database_url")
    if database_url:
        values["database_url"] = database_url

    user_agent = os.getenv("CRAWLER_USER_AGENT") or crawler_settings.get("user_agent")
    if user_agent:
        values["user_agent"] = user_agent

    referrer = os.getenv("CRAWLER_REFERRER") or crawler_settings.get("referrer")
    if referrer:
        values["referrer"] = referrer

    file_numbers = {
        "request_timeout_ms": crawler_settings.get("timeout_ms"),
        "delay_min_ms": delay_settings.get("min"),
        "delay_max_ms": delay_settings.get("max"),
        "crawler_workers": crawler_settings.get("workers"),
        "max_pages": crawler_settings.get("max_pages"),
        "max_depth": crawler_settings.get("max_depth"),
        "start_pause_ms": crawler_settings.get("start_pause_ms"),
        "min_sample_pages": indexing_settings.get("min_sample_pages"),
        "index_batch_size": indexing_settings.get("batch_size"),
    }
    env_numbers = {
        "request_timeout_ms": _env_int("REQUEST_TIMEOUT_MS"),
        "delay_min_ms": _env_int("DELAY_MIN_MS"),
        "delay_max_ms": _env_int("DELAY_MAX_MS"),
        "crawler_workers": _env_int("WORKERS"),
        "max_pages": _env_int("MAX_PAGES"),
        "max_depth": _env_int("MAX_DEPTH"),
    }
    for key, file_value in file_numbers.items():
        env_value = env_numbers.get(key)
        if env_value is not None:
            values[key] = env_value
        elif file_value is not None:
            values[key] = file_value

    threshold = os.getenv("STOP_WORD_THRESHOLD") or indexing_settings.get("stop_word_threshold")
    if threshold is not None:
        values["stop_word_threshold"] = float(threshold)

    if file_data.get("sites"):
        values["sites"] = file_data["sites"]

    passthrough = {
        k: v
        for k, v in file_data.items()
        if k not in ("crawler", "indexing", "sites", "database_url")
    }
    passthrough.update(values)

    return Config(**passthrough)

