"""Config management for Longbox.

Reads ``config.ini`` from the data directory. DATA_DIR defaults to the
project root and can be overridden with the ``DATA_DIR`` environment variable.
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

# DATA_DIR holds all persistent state (config.ini, longbox.db, longbox.log).
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"


@dataclasses.dataclass
class LibraryConfig:
    path: pathlib.Path
    name: str = "My Comic Library"


@dataclasses.dataclass
class DatabaseConfig:
    path: pathlib.Path = dataclasses.field(default_factory=lambda: DATA_DIR / "longbox.db")
    pool_size: int = 5


@dataclasses.dataclass
class ScannerConfig:
    supported_formats: tuple[str, ...] = ("cbz", "cbr")
    ignore_patterns: tuple[str, ...] = (".DS_Store", "Thumbs.db", "@eaDir")


@dataclasses.dataclass
class ComicRackConfig:
    """Settings for the one-shot ComicRack import."""

    strip_prefix: str = ""
    read_user: str = ""


@dataclasses.dataclass
class LongboxConfig:
    library: LibraryConfig
    database: DatabaseConfig = dataclasses.field(default_factory=DatabaseConfig)
    scanner: ScannerConfig = dataclasses.field(default_factory=ScannerConfig)
    comicrack: ComicRackConfig = dataclasses.field(default_factory=ComicRackConfig)
    log_level: str = "INFO"

    @property
    def library_path(self) -> pathlib.Path:
        return self.library.path

    @property
    def database_path(self) -> pathlib.Path:
        return self.database.path


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_config(config_path: Optional[pathlib.Path] = None) -> LongboxConfig:
    """Load configuration from config.ini (defaults to the data directory)."""
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    library = LibraryConfig(
        path=pathlib.Path(
            parser.get("library", "path", fallback="/path/to/comics")
        ).expanduser(),
        name=parser.get("library", "name", fallback="My Comic Library"),
    )

    database = DatabaseConfig(
        path=pathlib.Path(
            parser.get("database", "path", fallback=str(DATA_DIR / "longbox.db"))
        ).expanduser(),
        pool_size=parser.getint("database", "pool_size", fallback=5),
    )
    if database.pool_size < 1:
        logger.warning(f"pool_size={database.pool_size} is invalid, using 1")
        database.pool_size = 1

    scanner = ScannerConfig(
        supported_formats=_split_list(
            parser.get("scanner", "supported_formats", fallback="cbz,cbr")
        ),
        ignore_patterns=_split_list(
            parser.get(
                "scanner",
                "ignore_patterns",
                fallback=".DS_Store,Thumbs.db,@eaDir",
            )
        ),
    )

    comicrack = ComicRackConfig(
        strip_prefix=parser.get("comicrack", "strip_prefix", fallback="").strip(),
        read_user=parser.get("comicrack", "read_user", fallback="").strip(),
    )

    return LongboxConfig(
        library=library,
        database=database,
        scanner=scanner,
        comicrack=comicrack,
        log_level=parser.get("logging", "level", fallback="INFO"),
    )


def write_default_config(
    config_path: pathlib.Path, library_path: pathlib.Path, library_name: str
) -> None:
    """Write a config.ini with default settings for the given library."""
    parser = configparser.ConfigParser()
    parser["library"] = {
        "path": str(library_path.expanduser()),
        "name": library_name,
    }
    parser["database"] = {
        "path": str(DATA_DIR / "longbox.db"),
        "pool_size": "5",
    }
    parser["scanner"] = {
        "supported_formats": "cbz,cbr",
        "ignore_patterns": ".DS_Store,Thumbs.db,@eaDir",
    }
    parser["comicrack"] = {
        "strip_prefix": "",
        "read_user": "",
    }
    parser["logging"] = {"level": "INFO"}

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w") as handle:
        parser.write(handle)


_cached_config: Optional[LongboxConfig] = None


def get_config() -> LongboxConfig:
    """Return the cached config singleton. Loads from disk on first call."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None
