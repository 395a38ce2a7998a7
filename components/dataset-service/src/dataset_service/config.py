"""Environment-driven configuration for the dataset service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dataset_service.errors import DEFAULT_LOAD_TIMEOUT_SECONDS

DEFAULT_SEED_DIR = Path(__file__).resolve().parent / "data" / "seed"

_TRUTHY = {"1", "true", "yes", "on"}


def _read_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class DatasetConfig:
    """Configuration for dataset loading and linting.

    Attributes:
        seed_dir: Directory holding the six seed collection files.
        load_timeout_seconds: Upper bound for a guarded dataset load.
        warn_empty_selectors: Flag interaction rules that can never match.
        log_level: Root logging level name.
    """

    seed_dir: Path = DEFAULT_SEED_DIR
    load_timeout_seconds: float = DEFAULT_LOAD_TIMEOUT_SECONDS
    warn_empty_selectors: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "DatasetConfig":
        """Create DatasetConfig from environment variables."""
        raw_seed_dir = (os.getenv("DATASET_SEED_DIR") or "").strip()
        seed_dir = Path(raw_seed_dir) if raw_seed_dir else DEFAULT_SEED_DIR

        raw_timeout = os.getenv("DATASET_LOAD_TIMEOUT_SECONDS", "")
        try:
            timeout = float(raw_timeout) if raw_timeout else cls.load_timeout_seconds
        except ValueError:
            timeout = cls.load_timeout_seconds
        if timeout <= 0:
            timeout = cls.load_timeout_seconds

        log_level = (os.getenv("LOG_LEVEL") or cls.log_level).strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            log_level = cls.log_level

        return cls(
            seed_dir=seed_dir,
            load_timeout_seconds=timeout,
            warn_empty_selectors=_read_bool_env(
                "DATASET_LINT_WARN_EMPTY_SELECTORS", cls.warn_empty_selectors
            ),
            log_level=log_level,
        )


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for CLI and API entrypoints."""
    level_name = (level or DatasetConfig.from_env().log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
    logging.getLogger("dataset_service").setLevel(numeric_level)
    logging.getLogger("admin_api").setLevel(numeric_level)
