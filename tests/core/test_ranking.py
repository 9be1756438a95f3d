from __future__ import annotations

from cvreview.core import rank
from cvreview.schemas import Score, ScoredApplicant


def scored(name: str, experience: float, education: float, duties: float, cover_letter: float) -> ScoredApplicant:
    return ScoredApplicant(
        name=name,
        score=Score(
            experience_score=experience,
            education_score=education,
            duties_score=duties,
            cover_letter_score=cover_letter,
        ),
    )


def test_orders_by_total_descending_with_consecutive_ranks():
    ranked = rank([scored("low", 20, 10, 10, 0), scored("high", 45, 18, 17, 8), scored("mid", 35, 15, 15, 5)])

    assert [item.name for item in ranked] == ["high", "mid", "low"]
    assert [item.rank for item in ranked] == [1, 2, 3]


def test_education_breaks_tie_after_experience_and_duties():
    lower = scored("lower", 40, 12, 15, 10)
    higher = scored("higher", 40, 18, 15, 4)
    assert lower.score.total_score == higher.score.total_score

    ranked = rank([lower, higher])

    assert [item.name for item in ranked] == ["higher", "lower"]


def test_experience_outranks_duties_in_tie_chain():
    ranked = rank([scored("duties", 30, 10, 20, 5), scored("experience", 35, 10, 15, 5)])

    assert ranked[0].name == "experience"


def test_identical_scores_get_distinct_ranks_and_stable_order():
    items = [scored(f"same-{index}", 30, 10, 10, 5) for index in range(4)]

    first = rank(items)
    second = rank(items)

    assert [item.rank for item in first] == [1, 2, 3, 4]
    assert [item.name for item in first] == [item.name for item in second]
    assert [item.name for item in first] == [item.name for item in items]


def test_ranking_is_idempotent():
    items = [scored("a", 10, 5, 5, 1), scored("b", 40, 5, 5, 1), scored("c", 40, 5, 5, 1)]

    once = rank(items)
    twice = rank(once)

    assert [(item.name, item.rank) for item in once] == [(item.name, item.rank) for item in twice]


def test_empty_input():
    assert rank([]) == []
