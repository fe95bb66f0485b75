"""Configuration loading for paperboy."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
from xml.etree import ElementTree as ET

from .feeds import DEFAULT_PROXY_HOST, DEFAULT_TIMEOUT, MAX_ITEMS_PER_FEED
from .preferences import DEFAULT_DAILY_LIMIT, DEFAULT_PUBLICATIONS

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///paperboy.db"
DATABASE_URL_ENV = "PAPERBOY_DATABASE_URL"


@dataclass
class FetchConfig:
    timeout: float = DEFAULT_TIMEOUT
    max_items: int = MAX_ITEMS_PER_FEED
    concurrency: Optional[int] = None


@dataclass
class CacheConfig:
    timezone: str = "UTC"


@dataclass
class DefaultsConfig:
    publications: List[str] = field(default_factory=lambda: list(DEFAULT_PUBLICATIONS))
    daily_limit: int = DEFAULT_DAILY_LIMIT


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    connection_string: Optional[str] = None

    def resolve(self) -> str:
        """Return the configured connection string, then the env var, then SQLite."""
        return (
            self.connection_string
            or os.environ.get(DATABASE_URL_ENV)
            or DEFAULT_DATABASE_URL
        )


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class AppConfig:
    feeds_file: Optional[str] = None
    env_file: Optional[str] = None
    proxy_host: str = DEFAULT_PROXY_HOST
    identity_header: str = "X-Forwarded-Email"
    fetch: FetchConfig = field(default_factory=FetchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def parse_env_config(path: str) -> Dict[str, str]:
    """Parse environment variables from XML."""
    env_vars: Dict[str, str] = {}
    if not path:
        return env_vars

    logger.info("Loading environment configuration from %s", path)
    tree = ET.parse(path)
    root = tree.getroot()
    for var in root.findall("variable"):
        name = var.attrib.get("name")
        value = var.text
        if name and value:
            env_vars[name] = value.strip()

    return env_vars


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()
    config = AppConfig()

    feeds_text = root.findtext("feeds")
    if feeds_text and feeds_text.strip():
        config.feeds_file = _resolve_path(config_path, feeds_text.strip())

    env_text = root.findtext("env")
    if env_text and env_text.strip():
        config.env_file = _resolve_path(config_path, env_text.strip())

    config.proxy_host = root.findtext("proxy-host", DEFAULT_PROXY_HOST).strip()
    config.identity_header = root.findtext(
        "identity-header", config.identity_header
    ).strip()

    # Fetch
    fetch_node = root.find("fetch")
    if fetch_node is not None:
        config.fetch.timeout = float(
            fetch_node.findtext("timeout", str(DEFAULT_TIMEOUT))
        )
        config.fetch.max_items = int(
            fetch_node.findtext("max-items", str(MAX_ITEMS_PER_FEED))
        )
        concurrency = fetch_node.findtext("concurrency")
        if concurrency:
            config.fetch.concurrency = int(concurrency)
        if config.fetch.timeout <= 0:
            raise ValueError("<fetch><timeout> must be positive.")
        if config.fetch.max_items <= 0:
            raise ValueError("<fetch><max-items> must be positive.")

    # Cache
    cache_node = root.find("cache")
    if cache_node is not None:
        config.cache.timezone = cache_node.findtext("timezone", "UTC").strip()

    # Defaults
    defaults_node = root.find("defaults")
    if defaults_node is not None:
        publications_node = defaults_node.find("publications")
        if publications_node is not None:
            config.defaults.publications = [
                node.text.strip()
                for node in publications_node.findall("publication")
                if node.text and node.text.strip()
            ]
        config.defaults.daily_limit = int(
            defaults_node.findtext("daily-limit", str(DEFAULT_DAILY_LIMIT))
        )

    # Logging
    log_node = root.find("logging")
    if log_node is not None:
        config.logging.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            config.logging.file = _resolve_path(config_path, log_file)

    # Database
    db_node = root.find("database")
    if db_node is not None:
        config.database.connection_string = db_node.findtext("connection-string")

    # Server
    server_node = root.find("server")
    if server_node is not None:
        config.server.host = server_node.findtext("host", config.server.host)
        config.server.port = int(server_node.findtext("port", str(config.server.port)))

    return config
