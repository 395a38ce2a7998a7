from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest

from dataset_service.cli import main
from dataset_service.factories import build_bundle, build_drug
from dataset_service.schemas import COLLECTION_NAMES
from dataset_service.storage import get_engine


@pytest.fixture()
def cli_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    get_engine.cache_clear()
    yield
    get_engine.cache_clear()


def _write_json(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _seed_dir(tmp_path: Path, bundle: dict[str, object]) -> Path:
    seed_dir = tmp_path / "seed"
    seed_dir.mkdir()
    for name in COLLECTION_NAMES:
        _write_json(seed_dir / f"{name}.json", bundle[name])
    return seed_dir


class TestLint:
    def test_packaged_seed_is_clean(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["lint"]) == 0

        assert "0 issue(s): 0 error(s), 0 warning(s)" in capsys.readouterr().out

    def test_errors_exit_nonzero_with_json_report(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        raw = build_bundle(drugs=[build_drug(), build_drug(tags=["Upper"])])
        seed_dir = _seed_dir(tmp_path, raw)

        exit_code = main(["lint", "--seed-dir", str(seed_dir), "--json"])

        report = json.loads(capsys.readouterr().out)
        assert exit_code == 1
        assert report["summary"] == {"total": 2, "errors": 1, "warnings": 1}
        assert report["issues"][0]["type"] == "duplicate-id"

    def test_missing_seed_directory(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        exit_code = main(["lint", "--seed-dir", str(tmp_path / "nowhere")])

        assert exit_code == 1
        assert "FILE_NOT_FOUND" in capsys.readouterr().err


def test_validate_reports_each_file(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    good = _write_json(tmp_path / "drugs.json", [build_drug()])
    bad = tmp_path / "broken.json"
    bad.write_text("{", encoding="utf-8")

    exit_code = main(["validate", str(good), str(bad)])

    out = capsys.readouterr().out
    assert exit_code == 1
    assert "drugs.json: OK" in out
    assert "broken.json: INVALID" in out
    assert "Invalid JSON syntax" in out


@pytest.mark.usefixtures("cli_db")
class TestOverrideCommands:
    def test_import_activate_export_lifecycle(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        raw = build_bundle(drugs=[build_drug(id="cli-drug")], interactions=[])
        bundle_file = _write_json(tmp_path / "bundle.json", raw)

        assert main(["import", str(bundle_file), "--name", "CLI import"]) == 0
        assert "Imported override 1" in capsys.readouterr().out

        assert main(["activate", "1"]) == 0
        assert main(["list", "--json"]) == 0
        capsys.readouterr()

        out_dir = tmp_path / "exports"
        assert main(["export", "--output-dir", str(out_dir)]) == 0
        exported = json.loads(next(out_dir.glob("*.json")).read_text("utf-8"))
        assert [drug["id"] for drug in exported["dataset"]["drugs"]] == ["cli-drug"]

        assert main(["deactivate", "1"]) == 0
        assert main(["delete", "1"]) == 0
        assert main(["list"]) == 0
        assert "No overrides stored" in capsys.readouterr().out

    def test_list_json_shape(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        bundle_file = _write_json(tmp_path / "bundle.json", build_bundle())
        main(["import", str(bundle_file), "--name", "v1", "--created-by", "ops"])
        capsys.readouterr()

        assert main(["list", "--json"]) == 0

        listed = json.loads(capsys.readouterr().out)
        assert listed[0]["name"] == "v1"
        assert listed[0]["isActive"] is False
        assert listed[0]["createdById"] == "ops"

    def test_invalid_import_prints_issues(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        raw = build_bundle(drugs=[build_drug(course_block_id="nonexistent")])
        bundle_file = _write_json(tmp_path / "bundle.json", raw)

        exit_code = main(["import", str(bundle_file), "--name", "bad"])

        err = capsys.readouterr().err
        assert exit_code == 1
        assert "VALIDATION_FAILED" in err
        assert "References non-existent course block: nonexistent" in err

    def test_unknown_override(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["activate", "99"]) == 1
        assert "OVERRIDE_NOT_FOUND" in capsys.readouterr().err

    def test_missing_import_file(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        exit_code = main(["import", str(tmp_path / "absent.json"), "--name", "x"])

        assert exit_code == 1
        assert "FILE_NOT_FOUND" in capsys.readouterr().err
