from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.engine import Engine

from dataset_service.factories import build_bundle
from dataset_service.overrides import OverrideManager
from dataset_service.storage import OverrideStorage, create_db_engine, init_db


@pytest.fixture()
def bundle() -> dict[str, Any]:
    return build_bundle()


@pytest.fixture()
def engine(tmp_path: Path) -> Engine:
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'overrides.db'}")
    init_db(db_engine)
    return db_engine


@pytest.fixture()
def override_storage(engine: Engine) -> OverrideStorage:
    return OverrideStorage(engine)


@pytest.fixture()
def manager(override_storage: OverrideStorage) -> OverrideManager:
    return OverrideManager(override_storage)


@pytest.fixture(autouse=True)
def clean_dataset_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests independent of a developer's local .env settings."""
    for name in (
        "DATASET_SEED_DIR",
        "DATASET_LOAD_TIMEOUT_SECONDS",
        "DATASET_LINT_WARN_EMPTY_SELECTORS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
