from __future__ import annotations

import json

import pytest

from cvreview.core.decoding import (
    DecodeStatus,
    ResponseDecoder,
    parse_direct,
    parse_embedded,
    parse_fenced,
    preview,
)
from cvreview.errors import ResponseDecodeError

PAYLOAD = {
    "experience_score": 45,
    "experience_reasoning": "Strong backend history",
    "education_score": 18,
    "education_reasoning": "Relevant degree",
    "duties_score": 17,
    "duties_reasoning": "Covers most duties",
    "cover_letter_score": 8,
    "cover_letter_reasoning": "Well written",
}


@pytest.fixture
def decoder() -> ResponseDecoder:
    return ResponseDecoder()


def test_three_response_shapes_decode_identically(decoder: ResponseDecoder):
    raw = json.dumps(PAYLOAD)
    shapes = [
        raw,
        f"```json\n{raw}\n```",
        f"Here is my evaluation: {raw} Let me know if you need more.",
    ]

    scores = [decoder.decode(shape) for shape in shapes]

    assert scores[0] == scores[1] == scores[2]
    assert scores[0].total_score == 88
    assert scores[0].experience_reasoning == "Strong backend history"


def test_evaluator_total_is_ignored(decoder: ResponseDecoder):
    score = decoder.decode(json.dumps({**PAYLOAD, "total_score": 3}))

    assert score.total_score == 45 + 18 + 17 + 8


def test_strategies_report_skip_for_foreign_shapes():
    text = "no json here"

    assert parse_direct(text).status is DecodeStatus.CONTINUE
    assert parse_fenced(text).status is DecodeStatus.CONTINUE
    assert parse_embedded(text).status is DecodeStatus.CONTINUE


def test_undecodable_response_carries_truncated_copy(decoder: ResponseDecoder):
    response = "I am unable to evaluate this applicant. " * 20

    with pytest.raises(ResponseDecodeError) as excinfo:
        decoder.decode(response)

    assert "No JSON found in response" in str(excinfo.value)
    assert excinfo.value.response == response[:200] + "..."
    assert len(excinfo.value.response) == 203


def test_short_undecodable_response_is_kept_whole(decoder: ResponseDecoder):
    with pytest.raises(ResponseDecodeError) as excinfo:
        decoder.decode("sorry")

    assert excinfo.value.response == "sorry"


def test_object_missing_scores_is_fatal(decoder: ResponseDecoder):
    with pytest.raises(ResponseDecodeError) as excinfo:
        decoder.decode('{"experience_score": 40}')

    assert "invalid score fields" in str(excinfo.value)


def test_preview_limits_length():
    assert preview("x" * 10) == "x" * 10
    assert preview("x" * 250) == "x" * 200 + "..."
