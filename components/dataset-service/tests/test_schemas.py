from __future__ import annotations

from typing import Any

import pytest

from dataset_service.factories import build_case, build_drug, build_interaction
from dataset_service.schemas import (
    COLLECTION_NAMES,
    DatasetBundle,
    FieldError,
    SchemaValidationError,
    build_error_tree,
    parse_bundle,
)


def _paths(exc: SchemaValidationError) -> set[tuple[str, ...]]:
    return {error.path for error in exc.errors}


class TestParseBundle:
    def test_valid_bundle_parses(self, bundle: dict[str, Any]) -> None:
        parsed = parse_bundle(bundle)

        assert isinstance(parsed, DatasetBundle)
        assert parsed.drugs[0].drug_class.en == "Muscarinic antagonist"
        assert parsed.cases[0].rubric.correct_choice_id == "choice1"

    def test_missing_collection_is_reported(self, bundle: dict[str, Any]) -> None:
        del bundle["doseTemplates"]

        with pytest.raises(SchemaValidationError) as exc_info:
            parse_bundle(bundle)

        assert ("doseTemplates",) in _paths(exc_info.value)

    def test_every_violation_is_collected(self, bundle: dict[str, Any]) -> None:
        bundle["drugs"][0]["id"] = 7
        bundle["questions"][0]["options"][0]["correct"] = "yes"

        with pytest.raises(SchemaValidationError) as exc_info:
            parse_bundle(bundle)

        paths = _paths(exc_info.value)
        assert ("drugs", "0", "id") in paths
        assert ("questions", "0", "options", "0", "correct") in paths

    def test_numbers_reject_booleans_and_strings(
        self, bundle: dict[str, Any]
    ) -> None:
        bundle["cases"][0]["patient"]["age"] = True
        bundle["cases"][0]["rubric"]["scoring"]["correct"] = "2"

        with pytest.raises(SchemaValidationError) as exc_info:
            parse_bundle(bundle)

        paths = _paths(exc_info.value)
        assert ("cases", "0", "patient", "age") in paths
        assert ("cases", "0", "rubric", "scoring", "correct") in paths

    def test_vitals_accept_text_and_numbers(self, bundle: dict[str, Any]) -> None:
        bundle["cases"] = [build_case()]
        bundle["cases"][0]["vitals"] = {"bp": "120/80", "hr": 72, "temp": 36.6}

        parsed = parse_bundle(bundle)

        assert parsed.cases[0].vitals == {"bp": "120/80", "hr": 72, "temp": 36.6}

    def test_optional_fields_may_be_absent(self, bundle: dict[str, Any]) -> None:
        bundle["cases"][0]["patient"] = {}
        bundle["interactions"] = [build_interaction(tags=["anticholinergic"])]

        parsed = parse_bundle(bundle)

        assert parsed.cases[0].patient.age is None
        assert parsed.cases[0].labs is None
        assert parsed.interactions[0].applies_when.drug_ids is None

    def test_invalid_enum_values_are_rejected(self, bundle: dict[str, Any]) -> None:
        bundle["interactions"][0]["severity"] = "critical"
        bundle["doseTemplates"][0]["inputs"][0]["type"] = "date"

        with pytest.raises(SchemaValidationError) as exc_info:
            parse_bundle(bundle)

        paths = _paths(exc_info.value)
        assert ("interactions", "0", "severity") in paths
        assert ("doseTemplates", "0", "inputs", "0", "type") in paths

    def test_unknown_keys_are_ignored(self, bundle: dict[str, Any]) -> None:
        bundle["drugs"][0]["legacyCode"] = "X1"
        bundle["extraCollection"] = []

        parsed = parse_bundle(bundle)

        assert "legacyCode" not in parsed.to_json_dict()["drugs"][0]

    def test_non_object_input_is_rejected(self) -> None:
        with pytest.raises(SchemaValidationError) as exc_info:
            parse_bundle([build_drug()])

        assert exc_info.value.errors[0].path == ()


class TestDatasetBundle:
    def test_to_json_dict_uses_camel_case_and_omits_absent_fields(
        self, bundle: dict[str, Any]
    ) -> None:
        bundle["cases"][0]["patient"] = {"age": 50}

        data = parse_bundle(bundle).to_json_dict()

        assert list(data) == list(COLLECTION_NAMES)
        assert "class" in data["drugs"][0]
        assert "courseBlockId" in data["drugs"][0]
        assert data["cases"][0]["patient"] == {"age": 50}
        assert "labs" not in data["cases"][0]

    def test_counts(self, bundle: dict[str, Any]) -> None:
        bundle["drugs"].append(build_drug(id="drug2"))

        counts = parse_bundle(bundle).counts()

        assert counts["drugs"] == 2
        assert counts["courseBlocks"] == 1

    def test_collection_rejects_unknown_name(self, bundle: dict[str, Any]) -> None:
        with pytest.raises(KeyError):
            parse_bundle(bundle).collection("patients")


def test_build_error_tree_nests_by_path() -> None:
    tree = build_error_tree(
        [
            FieldError(("drugs", "0", "id"), "Input should be a valid string"),
            FieldError(("drugs", "0", "id"), "Second message"),
            FieldError((), "Top-level problem"),
        ]
    )

    assert tree["_errors"] == ["Top-level problem"]
    drugs = tree["children"]["drugs"]
    assert drugs["_errors"] == []
    assert drugs["children"]["0"]["children"]["id"]["_errors"] == [
        "Input should be a valid string",
        "Second message",
    ]


def test_build_error_tree_keeps_messages_apart_from_segments() -> None:
    tree = build_error_tree(
        [FieldError(("cases", "0", "vitals", "_errors"), "Input should be a number")]
    )

    vitals = tree["children"]["cases"]["children"]["0"]["children"]["vitals"]
    assert vitals["_errors"] == []
    assert vitals["children"]["_errors"]["_errors"] == ["Input should be a number"]
