"""FastAPI dependencies for shared resources."""

from __future__ import annotations

from functools import lru_cache

from dataset_service.config import DatasetConfig
from dataset_service.errors import Language
from dataset_service.loader import DatasetCache
from dataset_service.overrides import OverrideManager
from dataset_service.storage import OverrideStorage, get_engine
from fastapi import Depends, Header, HTTPException


def get_config() -> DatasetConfig:
    """Get the current dataset configuration."""
    return DatasetConfig.from_env()


@lru_cache
def get_dataset_cache() -> DatasetCache:
    """Provide the process-wide seed dataset cache."""
    return DatasetCache(seed_dir=get_config().seed_dir)


@lru_cache
def get_override_storage() -> OverrideStorage:
    """Provide the override store; one instance so activations share its lock."""
    return OverrideStorage(get_engine())


def get_override_manager(
    storage: OverrideStorage = Depends(get_override_storage),
    config: DatasetConfig = Depends(get_config),
) -> OverrideManager:
    """Provide an override manager for request handlers."""
    return OverrideManager(storage, warn_empty_selectors=config.warn_empty_selectors)


def require_admin(
    x_admin_user: str | None = Header(default=None, alias="X-Admin-User"),
) -> str:
    """Return the admin identifier from the request headers.

    Raises:
        HTTPException: 401 when the header is missing or blank.
    """
    if not x_admin_user or not x_admin_user.strip():
        raise HTTPException(status_code=401, detail="Admin access required")
    return x_admin_user.strip()


def resolve_language(accept_language: str | None) -> Language:
    """Pick Czech for ``cs*`` Accept-Language values, English otherwise."""
    if accept_language and accept_language.strip().lower().startswith("cs"):
        return "cs"
    return "en"
