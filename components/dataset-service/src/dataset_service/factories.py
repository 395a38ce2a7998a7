"""Builders for raw (camelCase) dataset entries used in tests and examples."""

from __future__ import annotations

from typing import Any, Optional

Raw = dict[str, Any]


def text(en: str, cs: Optional[str] = None) -> Raw:
    """Create a bilingual text pair; Czech defaults to the English text."""
    return {"en": en, "cs": en if cs is None else cs}


def build_course_block(
    *,
    id: str = "ans",
    title: Optional[Raw] = None,
    description: Optional[Raw] = None,
) -> Raw:
    """Create a CourseBlock entry with defaults for tests and examples."""
    return {
        "id": id,
        "title": title or text("ANS", "ANS"),
        "description": description or text("d", "d"),
    }


def build_drug(
    *,
    id: str = "drug1",
    course_block_id: str = "ans",
    name: Optional[Raw] = None,
    tags: Optional[list[str]] = None,
) -> Raw:
    """Create a Drug entry with defaults for tests and examples."""
    return {
        "id": id,
        "name": name or text("Atropine", "Atropin"),
        "class": text("Muscarinic antagonist", "Antagonista muskarinových receptorů"),
        "indications": text("Bradycardia", "Bradykardie"),
        "mechanism": text("Muscarinic blockade", "Blokáda muskarinových receptorů"),
        "adverseEffects": text("Dry mouth", "Sucho v ústech"),
        "contraindications": text("Glaucoma", "Glaukom"),
        "monitoring": text("Heart rate", "Srdeční frekvence"),
        "interactionsSummary": text("Anticholinergics", "Anticholinergika"),
        "typicalDoseText": text("0.5 mg IV", "0,5 mg i.v."),
        "tags": ["anticholinergic"] if tags is None else tags,
        "courseBlockId": course_block_id,
    }


def build_option(*, id: str = "opt1", correct: bool = False, en: str = "Option") -> Raw:
    """Create a QuestionOption entry with defaults for tests and examples."""
    return {"id": id, "text": text(en), "correct": correct}


def build_question(
    *,
    id: str = "q1",
    course_block_id: str = "ans",
    options: Optional[list[Raw]] = None,
) -> Raw:
    """Create a Question entry with defaults for tests and examples."""
    return {
        "id": id,
        "stem": text("What does atropine block?", "Co blokuje atropin?"),
        "options": options
        if options is not None
        else [
            build_option(id="opt1", correct=True, en="Muscarinic receptors"),
            build_option(id="opt2", correct=False, en="Nicotinic receptors"),
        ],
        "explanation": text(
            "Atropine is antimuscarinic.", "Atropin je antimuskarinikum."
        ),
        "tags": ["mechanism"],
        "courseBlockId": course_block_id,
    }


def build_case(
    *,
    id: str = "case1",
    course_block_id: str = "ans",
    correct_choice_id: str = "choice1",
    labs: Optional[dict[str, float]] = None,
) -> Raw:
    """Create a Case entry with defaults for tests and examples."""
    entry: Raw = {
        "id": id,
        "stem": text("Bradycardic patient", "Bradykardický pacient"),
        "patient": {"age": 60, "sex": "male", "weightKg": 80},
        "vitals": {"hr": 38, "bp": "90/60"},
        "choices": [
            {
                "id": "choice1",
                "option": text("Give atropine", "Podat atropin"),
                "explanation": text("First-line therapy", "Léčba první volby"),
            },
            {
                "id": "choice2",
                "option": text("Observe", "Sledovat"),
                "explanation": text("Unsafe delay", "Nebezpečné zdržení"),
            },
        ],
        "rubric": {
            "correctChoiceId": correct_choice_id,
            "contraindicationsMissed": [],
            "interactionsMissed": [],
            "monitoringMissing": ["hr"],
            "scoring": {"correct": 2, "safety": 1, "monitoring": 1},
        },
        "courseBlockId": course_block_id,
        "tags": ["bradycardia"],
    }
    if labs is not None:
        entry["labs"] = labs
    return entry


def build_interaction(
    *,
    id: str = "int1",
    drug_ids: Optional[list[str]] = None,
    classes: Optional[list[str]] = None,
    tags: Optional[list[str]] = None,
    severity: str = "moderate",
) -> Raw:
    """Create an InteractionRule entry with defaults for tests and examples."""
    applies_when: Raw = {}
    if drug_ids is not None:
        applies_when["drugIds"] = drug_ids
    if classes is not None:
        applies_when["classes"] = classes
    if tags is not None:
        applies_when["tags"] = tags
    if not applies_when:
        applies_when["drugIds"] = ["drug1"]
    return {
        "id": id,
        "appliesWhen": applies_when,
        "severity": severity,
        "mechanism": text("Additive effect", "Aditivní účinek"),
        "recommendation": text("Monitor", "Sledovat"),
        "rationale": text("Toxicity", "Toxicita"),
    }


def build_dose_template(*, id: str = "dose1") -> Raw:
    """Create a DoseTemplate entry with defaults for tests and examples."""
    return {
        "id": id,
        "title": text("Weight-based dose", "Dávka podle hmotnosti"),
        "inputs": [
            {"name": "weightKg", "label": text("Weight", "Hmotnost"), "type": "number"}
        ],
        "formula": text("weight x 0.02", "hmotnost x 0,02"),
        "example": text("70 x 0.02 = 1.4", "70 x 0,02 = 1,4"),
        "tags": ["calculation"],
    }


def build_bundle(**collections: list[Raw]) -> Raw:
    """Create a lint-clean bundle; keyword arguments replace whole collections.

    Examples:
        >>> sorted(build_bundle(drugs=[]).keys())[:2]
        ['cases', 'courseBlocks']
    """
    bundle: Raw = {
        "courseBlocks": [build_course_block()],
        "drugs": [build_drug()],
        "questions": [build_question()],
        "cases": [build_case()],
        "interactions": [build_interaction()],
        "doseTemplates": [build_dose_template()],
    }
    bundle.update(collections)
    return bundle


def empty_bundle() -> Raw:
    """Create a bundle with every collection empty."""
    return {
        "courseBlocks": [],
        "drugs": [],
        "questions": [],
        "cases": [],
        "interactions": [],
        "doseTemplates": [],
    }
