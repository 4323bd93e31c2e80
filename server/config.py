"""Config management for FMC Comic.

Reads `config.ini` from DATA_DIR (defaults to the project root).
Two environment variables win over the file so the server can run on
hosted platforms without one: DATABASE_URL and PORT.
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]

# DATA_DIR holds all persistent state (config.ini, mappings.db, fmc_storage.json, fmc.log).
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "https://fmc-comic.vercel.app",
    "https://*.vercel.app",
    "https://fmc-comic-v2.vercel.app",
)
DEFAULT_PROXY_URL = "https://api.nekolabs.web.id/px?url="
DEFAULT_KOMIKCAST_URL = "https://www.sankavollerei.com/comic/komikcast"


@dataclasses.dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3001


@dataclasses.dataclass
class DatabaseConfig:
    url: str = ""
    connect_timeout: int = 5

    @property
    def effective_url(self) -> str:
        return self.url or f"sqlite:///{DATA_DIR / 'mappings.db'}"


@dataclasses.dataclass
class CorsConfig:
    origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS

    @property
    def exact_origins(self) -> list[str]:
        return [o for o in self.origins if "*" not in o]

    @property
    def origin_regex(self) -> Optional[str]:
        """Wildcard origins ("https://*.vercel.app") folded into one regex."""
        patterns = [
            "^" + ".*".join(part.replace(".", r"\.") for part in o.split("*")) + "$"
            for o in self.origins
            if "*" in o
        ]
        return "|".join(patterns) if patterns else None


@dataclasses.dataclass
class KomikCastConfig:
    proxy_url: str = DEFAULT_PROXY_URL
    base_url: str = DEFAULT_KOMIKCAST_URL
    cache_seconds: int = 300
    timeout: float = 30.0


@dataclasses.dataclass
class BackendConfig:
    """Where the reader finds the mapping service."""

    url: str = "http://localhost:3001/api"
    timeout: float = 10.0


@dataclasses.dataclass
class StorageConfig:
    path: pathlib.Path = dataclasses.field(
        default_factory=lambda: DATA_DIR / "fmc_storage.json"
    )


@dataclasses.dataclass
class FmcConfig:
    server: ServerConfig = dataclasses.field(default_factory=ServerConfig)
    database: DatabaseConfig = dataclasses.field(default_factory=DatabaseConfig)
    cors: CorsConfig = dataclasses.field(default_factory=CorsConfig)
    komikcast: KomikCastConfig = dataclasses.field(default_factory=KomikCastConfig)
    backend: BackendConfig = dataclasses.field(default_factory=BackendConfig)
    storage: StorageConfig = dataclasses.field(default_factory=StorageConfig)

    @property
    def server_host(self) -> str:
        return self.server.host

    @property
    def server_port(self) -> int:
        return self.server.port

    @property
    def database_url(self) -> str:
        return self.database.effective_url

    @property
    def storage_path(self) -> pathlib.Path:
        return self.storage.path


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(v.strip() for v in value.split(",") if v.strip())


def _apply_env_overrides(config: FmcConfig) -> FmcConfig:
    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        config.database.url = database_url
    port = os.environ.get("PORT")
    if port:
        try:
            config.server.port = int(port)
        except ValueError:
            logger.warning(f"Ignoring invalid PORT value: {port!r}")
    return config


def load_config(config_path: Optional[pathlib.Path] = None) -> FmcConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in DATA_DIR. Raises FileNotFoundError when missing.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    server = ServerConfig(
        host=parser.get("server", "host", fallback="0.0.0.0"),
        port=parser.getint("server", "port", fallback=3001),
    )

    database = DatabaseConfig(
        url=parser.get("database", "url", fallback="").strip(),
        connect_timeout=parser.getint("database", "connect_timeout", fallback=5),
    )

    cors = CorsConfig(
        origins=_split_list(
            parser.get("cors", "origins", fallback=",".join(DEFAULT_CORS_ORIGINS))
        ),
    )

    komikcast = KomikCastConfig(
        proxy_url=parser.get("komikcast", "proxy_url", fallback=DEFAULT_PROXY_URL),
        base_url=parser.get(
            "komikcast", "base_url", fallback=DEFAULT_KOMIKCAST_URL
        ).rstrip("/"),
        cache_seconds=parser.getint("komikcast", "cache_seconds", fallback=300),
        timeout=parser.getfloat("komikcast", "timeout", fallback=30.0),
    )

    backend = BackendConfig(
        url=parser.get(
            "backend", "url", fallback="http://localhost:3001/api"
        ).rstrip("/"),
        timeout=parser.getfloat("backend", "timeout", fallback=10.0),
    )

    storage_path = parser.get("storage", "path", fallback="").strip()
    storage = (
        StorageConfig(path=pathlib.Path(storage_path).expanduser())
        if storage_path
        else StorageConfig()
    )

    return _apply_env_overrides(
        FmcConfig(
            server=server,
            database=database,
            cors=cors,
            komikcast=komikcast,
            backend=backend,
            storage=storage,
        )
    )


_cached_config: Optional[FmcConfig] = None


def get_config() -> FmcConfig:
    """Return the cached config singleton.

    Loads from disk on first call; without a config.ini the defaults
    (plus env overrides) are used.
    """
    global _cached_config
    if _cached_config is None:
        try:
            _cached_config = load_config()
        except FileNotFoundError:
            logger.debug("config.ini not found, using defaults")
            _cached_config = _apply_env_overrides(FmcConfig())
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None


def write_default_config(
    config_path: Optional[pathlib.Path] = None,
    *,
    port: int = 3001,
    database_url: str = "",
    backend_url: str = "http://localhost:3001/api",
) -> pathlib.Path:
    """Write a config.ini holding every section with its default values."""
    path = config_path or DEFAULT_CONFIG_PATH
    parser = configparser.ConfigParser()

    parser["server"] = {"host": "0.0.0.0", "port": str(port)}
    parser["database"] = {"url": database_url, "connect_timeout": "5"}
    parser["cors"] = {"origins": ",".join(DEFAULT_CORS_ORIGINS)}
    parser["komikcast"] = {
        "proxy_url": DEFAULT_PROXY_URL,
        "base_url": DEFAULT_KOMIKCAST_URL,
        "cache_seconds": "300",
        "timeout": "30",
    }
    parser["backend"] = {"url": backend_url, "timeout": "10"}
    parser["storage"] = {"path": ""}

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as handle:
        parser.write(handle)
    return path
