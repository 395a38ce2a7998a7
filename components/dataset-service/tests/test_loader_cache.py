from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from dataset_service.errors import DatasetError, DatasetErrorCode
from dataset_service.factories import build_bundle
from dataset_service.loader import DatasetCache, load_json_file, load_seed_dataset
from dataset_service.schemas import COLLECTION_NAMES


def _write_seed(directory: Path, bundle: dict[str, Any]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name in COLLECTION_NAMES:
        (directory / f"{name}.json").write_text(json.dumps(bundle[name]))
    return directory


class CountingLoader:
    def __init__(self, result: object = None, error: Exception | None = None) -> None:
        self.calls = 0
        self.result = result
        self.error = error

    def __call__(self) -> Any:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class TestLoadSeedDataset:
    def test_reads_all_collections(self, tmp_path: Path) -> None:
        seed_dir = _write_seed(tmp_path / "seed", build_bundle())

        raw = load_seed_dataset(seed_dir)

        assert list(raw) == list(COLLECTION_NAMES)
        assert raw["drugs"][0]["id"] == "drug1"

    def test_missing_file_raises_file_not_found(self, tmp_path: Path) -> None:
        seed_dir = _write_seed(tmp_path / "seed", build_bundle())
        (seed_dir / "cases.json").unlink()

        with pytest.raises(DatasetError) as exc_info:
            load_seed_dataset(seed_dir)

        assert exc_info.value.code == DatasetErrorCode.FILE_NOT_FOUND
        assert exc_info.value.status_code == 500

    def test_invalid_json_raises_parse_failed(self, tmp_path: Path) -> None:
        path = tmp_path / "drugs.json"
        path.write_text("[{")

        with pytest.raises(DatasetError) as exc_info:
            load_json_file(path)

        assert exc_info.value.code == DatasetErrorCode.PARSE_FAILED
        assert exc_info.value.status_code == 500

    def test_packaged_seed_is_readable(self) -> None:
        raw = load_seed_dataset()

        assert all(isinstance(raw[name], list) and raw[name] for name in raw)


class TestDatasetCache:
    def test_repeated_get_returns_identical_object(self) -> None:
        loader = CountingLoader(result=build_bundle())
        cache = DatasetCache(loader=loader)

        first = cache.get()
        second = cache.get()

        assert first is second
        assert loader.calls == 1
        assert cache.is_cached is True

    def test_invalidate_forces_reload(self) -> None:
        loader = CountingLoader(result=build_bundle())
        cache = DatasetCache(loader=loader)
        first = cache.get()

        cache.invalidate()
        second = cache.get()

        assert first is not second
        assert loader.calls == 2

    def test_load_failure_is_cached_until_invalidated(self) -> None:
        loader = CountingLoader(error=RuntimeError("disk on fire"))
        cache = DatasetCache(loader=loader)

        with pytest.raises(DatasetError) as first:
            cache.get()
        with pytest.raises(DatasetError) as second:
            cache.get()

        assert first.value is second.value
        assert first.value.code == DatasetErrorCode.LOAD_FAILED
        assert loader.calls == 1
        assert cache.stats().error is True

        loader.error = None
        loader.result = build_bundle()
        cache.invalidate()

        assert cache.get().drugs[0].id == "drug1"
        assert cache.stats().error is False

    def test_file_error_is_wrapped_as_load_failed(self, tmp_path: Path) -> None:
        cache = DatasetCache(seed_dir=tmp_path / "missing")

        with pytest.raises(DatasetError) as exc_info:
            cache.get()

        assert exc_info.value.code == DatasetErrorCode.LOAD_FAILED
        assert exc_info.value.context["cause"] == "FILE_NOT_FOUND"

    def test_schema_failure_is_validation_failed(self) -> None:
        raw = build_bundle()
        raw["drugs"][0]["id"] = 42
        cache = DatasetCache(loader=CountingLoader(result=raw))

        with pytest.raises(DatasetError) as exc_info:
            cache.get()

        assert exc_info.value.code == DatasetErrorCode.VALIDATION_FAILED
        assert exc_info.value.context["issues"][0]["path"] == "drugs.0.id"

    def test_get_safe_returns_fallback(self) -> None:
        cache = DatasetCache(loader=CountingLoader(error=ValueError("boom")))

        assert cache.get_safe() is None
        assert cache.get_safe(fallback="fallback") == "fallback"  # type: ignore[arg-type]

    def test_stats_before_first_load(self) -> None:
        cache = DatasetCache(loader=CountingLoader(result=build_bundle()))

        stats = cache.stats()

        assert stats.cached is False
        assert stats.error is False

    def test_reads_seed_directory(self, tmp_path: Path) -> None:
        seed_dir = _write_seed(tmp_path / "seed", build_bundle())

        bundle = DatasetCache(seed_dir=seed_dir).get()

        assert bundle.counts() == {name: 1 for name in COLLECTION_NAMES}
