from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from dataset_service.factories import build_bundle
from dataset_service.loader import DatasetCache
from dataset_service.storage import OverrideStorage, create_db_engine, init_db
from fastapi.testclient import TestClient

from admin_api.dependencies import get_dataset_cache, get_override_storage
from admin_api.main import app


@pytest.fixture(autouse=True)
def clean_dataset_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests independent of a developer's local .env settings."""
    monkeypatch.delenv("DATASET_LINT_WARN_EMPTY_SELECTORS", raising=False)
    monkeypatch.delenv("DATASET_SEED_DIR", raising=False)


@pytest.fixture()
def storage(tmp_path: Path) -> OverrideStorage:
    engine = create_db_engine(f"sqlite:///{tmp_path / 'admin.db'}")
    init_db(engine)
    return OverrideStorage(engine)


@pytest.fixture()
def dataset_cache() -> DatasetCache:
    return DatasetCache(loader=build_bundle)


@pytest.fixture()
def client(
    storage: OverrideStorage, dataset_cache: DatasetCache
) -> Iterator[TestClient]:
    app.dependency_overrides[get_override_storage] = lambda: storage
    app.dependency_overrides[get_dataset_cache] = lambda: dataset_cache
    yield TestClient(app)
    app.dependency_overrides.clear()
