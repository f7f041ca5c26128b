"""TOML config loading for funs.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_NAME = "funs.toml"


@dataclass
class PackageConfig:
    name: str = "untitled"
    version: str = "0.0.0"


@dataclass
class FrontendConfig:
    source_dir: str = "src"
    workers: int = 4


@dataclass
class FunsConfig:
    package: PackageConfig = field(default_factory=PackageConfig)
    frontend: FrontendConfig = field(default_factory=FrontendConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find funs.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_NAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> FunsConfig:
    """Parse a funs.toml file into a FunsConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = FunsConfig()

    if "package" in data:
        pkg = data["package"]
        config.package = PackageConfig(
            name=pkg.get("name", "untitled"),
            version=pkg.get("version", "0.0.0"),
        )

    if "frontend" in data:
        fe = data["frontend"]
        workers = fe.get("workers", 4)
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise ValueError(f"{path}: [frontend] workers must be a positive integer")
        config.frontend = FrontendConfig(
            source_dir=fe.get("source_dir", "src"),
            workers=workers,
        )

    return config
