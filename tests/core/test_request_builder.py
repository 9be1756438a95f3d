from __future__ import annotations

from cvreview.core.prompt import (
    COVER_LETTER_TRUNCATION_MARKER,
    CV_TRUNCATION_MARKER,
    RequestBuilder,
    bounded_text,
    condense_requirements,
    truncate_utf8,
)
from cvreview.schemas import ApplicantRecord, JobSpecification


def make_job(**overrides) -> JobSpecification:
    payload = {
        "title": "Backend Engineer",
        "description": "Build and run services.",
        "required_experience": ["Python", "SQL"],
        "required_education": ["BSc Computer Science"],
        "required_duties": ["Own services"],
        "nice_to_have_experience": ["Kubernetes"],
    }
    payload.update(overrides)
    return JobSpecification.model_validate(payload)


def make_record(cv_text: str = "Five years of Python.", cover_letter_text: str | None = None) -> ApplicantRecord:
    return ApplicantRecord(
        name="Alice",
        cv_text=cv_text,
        cv_path="uploads/Alice_CV.txt",
        cover_letter_text=cover_letter_text,
        cover_letter_path="uploads/Alice_CoverLetter.txt" if cover_letter_text else None,
    )


def test_condense_keeps_first_items_and_counts_the_rest():
    items = ["Exp 1", "Exp 2", "Exp 3", "Exp 4", "Exp 5"]

    assert condense_requirements("Experience", items, 3) == "Experience: Exp 1; Exp 2; Exp 3 (+2 more)\n"


def test_condense_without_overflow_and_empty_list():
    assert condense_requirements("Duties", ["a", "b"], 5) == "Duties: a; b\n"
    assert condense_requirements("Duties", [], 5) == ""


def test_truncate_utf8_drops_split_multibyte_character():
    text, truncated = truncate_utf8("é" * 10, 5)

    assert truncated is True
    assert text == "éé"
    assert truncate_utf8("short", 100) == ("short", False)


def test_bounded_text_appends_marker_only_when_cut():
    assert bounded_text("abc", 10, CV_TRUNCATION_MARKER) == "abc"
    assert bounded_text("abcdef", 3, CV_TRUNCATION_MARKER) == f"abc\n{CV_TRUNCATION_MARKER}"


def test_bounded_text_replaces_invalid_sequences():
    assert bounded_text(b"ab\xffcd", 100, CV_TRUNCATION_MARKER) == "ab�cd"

    cleaned = bounded_text("abc\ud800", 100, CV_TRUNCATION_MARKER)
    assert cleaned.startswith("abc")
    assert "\ud800" not in cleaned
    cleaned.encode("utf-8")


def test_long_cv_is_truncated_with_marker():
    builder = RequestBuilder(cv_max_bytes=15_000)
    prompt = builder.build(make_record(cv_text="a" * 20_000), make_job())

    assert "a" * 15_000 + "\n" + CV_TRUNCATION_MARKER in prompt
    assert "a" * 15_001 not in prompt


def test_long_cover_letter_is_truncated_with_marker():
    builder = RequestBuilder(cover_letter_max_bytes=100)
    prompt = builder.build(make_record(cover_letter_text="b" * 500), make_job())

    assert "b" * 100 + "\n" + COVER_LETTER_TRUNCATION_MARKER in prompt
    assert "b" * 101 not in prompt


def test_prompt_contains_job_and_applicant_sections():
    builder = RequestBuilder(max_requirements=1)
    prompt = builder.build(make_record(), make_job())

    assert "Title: Backend Engineer" in prompt
    assert "Experience: Python (+1 more)\n" in prompt
    assert "Name: Alice" in prompt
    assert "Five years of Python." in prompt
    assert "No cover letter provided." in prompt
    assert '"experience_score": <0-50>' in prompt


def test_prompt_includes_cover_letter_when_present():
    prompt = RequestBuilder().build(make_record(cover_letter_text="Dear team"), make_job())

    assert "Dear team" in prompt
    assert "No cover letter provided." not in prompt
