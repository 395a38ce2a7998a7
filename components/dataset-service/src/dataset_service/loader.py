"""Seed dataset loading and the process-scoped dataset cache."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dataset_service.config import DEFAULT_SEED_DIR
from dataset_service.errors import DatasetError, DatasetErrorCode
from dataset_service.linter import flatten_error_tree
from dataset_service.schemas import (
    COLLECTION_NAMES,
    DatasetBundle,
    SchemaValidationError,
    parse_bundle,
)

logger = logging.getLogger(__name__)

RawBundle = dict[str, Any]


def load_json_file(path: Path) -> Any:
    """Read and decode one JSON document.

    Raises:
        DatasetError: FILE_NOT_FOUND if unreadable, PARSE_FAILED if not JSON.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DatasetError(
            f"Dataset file not readable: {path.name}",
            DatasetErrorCode.FILE_NOT_FOUND,
            context={"file": str(path), "reason": str(exc)},
        ) from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DatasetError(
            f"Dataset file is not valid JSON: {path.name}",
            DatasetErrorCode.PARSE_FAILED,
            status_code=500,
            context={"file": str(path), "line": exc.lineno, "column": exc.colno},
        ) from exc


def load_seed_dataset(seed_dir: Path | None = None) -> RawBundle:
    """Read the six seed collections and assemble them without validation.

    Files are named ``<collection>.json`` and read concurrently.

    Args:
        seed_dir: Directory holding the collection files.

    Returns:
        Mapping of collection name to decoded JSON.
    """
    base = seed_dir or DEFAULT_SEED_DIR
    paths = [base / f"{name}.json" for name in COLLECTION_NAMES]
    with ThreadPoolExecutor(max_workers=len(paths)) as executor:
        documents = list(executor.map(load_json_file, paths))
    return dict(zip(COLLECTION_NAMES, documents))


@dataclass(frozen=True)
class CacheStats:
    """Cache state snapshot for health checks."""

    cached: bool
    error: bool


class DatasetCache:
    """Process-scoped cache of the validated seed bundle.

    The first ``get()`` loads and validates; the result (or the failure) is
    kept until ``invalidate()``. Construct once at startup and pass it to
    consumers.
    """

    def __init__(
        self,
        loader: Callable[[], RawBundle] | None = None,
        seed_dir: Path | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            loader: Callable returning the raw bundle; defaults to the seed files.
            seed_dir: Seed directory for the default loader.
        """
        self._seed_dir = seed_dir
        self._loader = loader or self._load_seed
        self._bundle: DatasetBundle | None = None
        self._error: DatasetError | None = None
        self._lock = threading.Lock()

    def _load_seed(self) -> RawBundle:
        return load_seed_dataset(self._seed_dir)

    def get(self) -> DatasetBundle:
        """Return the cached bundle, loading it on first use.

        Raises:
            DatasetError: LOAD_FAILED or VALIDATION_FAILED; the same error
                object is raised again until ``invalidate()``.
        """
        with self._lock:
            if self._bundle is not None:
                return self._bundle
            if self._error is not None:
                raise self._error

        # Loading happens outside the lock; concurrent first calls may both
        # load and the last assignment wins.
        try:
            bundle = self._load_and_validate()
        except DatasetError as exc:
            with self._lock:
                self._error = exc
            raise
        with self._lock:
            self._bundle = bundle
        return bundle

    def _load_and_validate(self) -> DatasetBundle:
        try:
            raw = self._loader()
        except DatasetError as exc:
            logger.error("Seed dataset failed to load: %s", exc.message)
            raise DatasetError(
                f"Failed to load dataset: {exc.message}",
                DatasetErrorCode.LOAD_FAILED,
                context={"cause": exc.code.value, **exc.context},
            ) from exc
        except Exception as exc:
            logger.exception("Seed dataset loader raised")
            raise DatasetError(
                f"Failed to load dataset: {exc}",
                DatasetErrorCode.LOAD_FAILED,
            ) from exc

        try:
            bundle = parse_bundle(raw)
        except SchemaValidationError as exc:
            issues = flatten_error_tree(exc.tree())
            logger.error("Seed data failed validation (%d issue(s))", len(issues))
            raise DatasetError(
                "Seed data failed validation",
                DatasetErrorCode.VALIDATION_FAILED,
                context={"issues": [issue.to_json_dict() for issue in issues]},
            ) from exc
        logger.info("Seed dataset cached: %s", bundle.counts())
        return bundle

    def get_safe(self, fallback: DatasetBundle | None = None) -> DatasetBundle | None:
        """Return the bundle, or ``fallback`` on any failure. Never raises."""
        try:
            return self.get()
        except DatasetError as exc:
            logger.error("Failed to load dataset: [%s] %s", exc.code.value, exc.message)
            return fallback

    def invalidate(self) -> None:
        """Drop the cached bundle and cached error."""
        with self._lock:
            self._bundle = None
            self._error = None

    @property
    def is_cached(self) -> bool:
        """Whether a validated bundle is held."""
        return self._bundle is not None

    def stats(self) -> CacheStats:
        """Return the current cache state."""
        return CacheStats(
            cached=self._bundle is not None, error=self._error is not None
        )
