"""Evaluation request construction."""

from __future__ import annotations

from typing import Sequence

import structlog

from ..ingestion.extract import decode_text, sanitize_text
from ..schemas import ApplicantRecord, JobSpecification

CV_TRUNCATION_MARKER = "[CV truncated for length]"
COVER_LETTER_TRUNCATION_MARKER = "[Cover letter truncated for length]"

_OUTPUT_FORMAT = """CRITICAL OUTPUT REQUIREMENTS:
1. Your response MUST be ONLY a valid JSON object
2. Do NOT include any explanatory text before or after the JSON
3. Do NOT use markdown code blocks (no ```json or ```)
4. Return ONLY the raw JSON object starting with { and ending with }

REQUIRED JSON FORMAT:
{
  "experience_score": <0-50>,
  "experience_reasoning": "<explanation of experience match, highlighting required vs nice-to-have>",
  "education_score": <0-20>,
  "education_reasoning": "<explanation of education match, highlighting required vs nice-to-have>",
  "duties_score": <0-20>,
  "duties_reasoning": "<explanation of duties/responsibilities match>",
  "cover_letter_score": <0-10>,
  "cover_letter_reasoning": "<explanation of cover letter quality and alignment>"
}

SCORING CRITERIA:
- Experience Score (0-50): Weight heavily towards required experience. Each missing required qualification should reduce score by 10-15 points. Missing nice-to-have should reduce by 2-5 points.
- Education Score (0-20): Required education is critical. Missing required degree should reduce score by 10+ points. Missing nice-to-have should reduce by 2-3 points.
- Duties Score (0-20): Evaluate ability to perform required duties. Each unmet required duty should reduce score by 5-7 points.
- Cover Letter Score (0-10): Assess quality, relevance, and alignment with role. No cover letter = 0 points.
"""


def condense_requirements(category: str, items: Sequence[str], max_items: int) -> str:
    """Render ``items`` as one line, keeping the first ``max_items``.

    >>> condense_requirements("Experience", ["a", "b", "c", "d"], 2)
    'Experience: a; b (+2 more)\\n'
    """
    if not items:
        return ""
    kept = list(items[:max_items])
    line = f"{category}: {'; '.join(kept)}"
    remaining = len(items) - len(kept)
    if remaining > 0:
        line += f" (+{remaining} more)"
    return line + "\n"


def truncate_utf8(text: str, max_bytes: int) -> tuple[str, bool]:
    """Cut ``text`` to at most ``max_bytes`` UTF-8 bytes.

    A multi-byte character split by the cut is dropped.
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text, False
    return encoded[:max_bytes].decode("utf-8", errors="ignore"), True


def bounded_text(content: str | bytes, max_bytes: int, marker: str) -> str:
    text = decode_text(content) if isinstance(content, bytes) else sanitize_text(content)
    text, truncated = truncate_utf8(text, max_bytes)
    if truncated:
        return f"{text}\n{marker}"
    return text


class RequestBuilder:
    """Build the bounded prompt sent to the evaluator."""

    def __init__(
        self,
        *,
        cv_max_bytes: int = 15_000,
        cover_letter_max_bytes: int = 5_000,
        max_requirements: int = 5,
    ) -> None:
        self._cv_max_bytes = cv_max_bytes
        self._cover_letter_max_bytes = cover_letter_max_bytes
        self._max_requirements = max_requirements
        self._logger = structlog.get_logger(__name__)

    def build(self, record: ApplicantRecord, job: JobSpecification) -> str:
        limit = self._max_requirements
        sections: list[str] = [
            "You are an expert HR analyst evaluating a job applicant. "
            "Analyze the following information and provide detailed scoring.\n\n",
            "## JOB DESCRIPTION\n",
            f"Title: {job.title}\n",
            f"Description: {job.description}\n\n",
            "### REQUIRED QUALIFICATIONS (Must Have - Higher Weight)\n",
            condense_requirements("Experience", job.required_experience, limit),
            condense_requirements("Education", job.required_education, limit),
            condense_requirements("Duties", job.required_duties, limit),
            "\n### NICE TO HAVE QUALIFICATIONS (Optional - Lower Weight)\n",
            condense_requirements("Experience", job.nice_to_have_experience, limit),
            condense_requirements("Education", job.nice_to_have_education, limit),
            condense_requirements("Duties", job.nice_to_have_duties, limit),
            "\n## APPLICANT INFORMATION\n",
            f"Name: {record.name}\n\n",
            "### CV CONTENT\n",
            bounded_text(record.cv_text, self._cv_max_bytes, CV_TRUNCATION_MARKER),
            "\n\n",
        ]

        if record.cover_letter_text:
            sections.extend(
                [
                    "### COVER LETTER CONTENT\n",
                    bounded_text(
                        record.cover_letter_text,
                        self._cover_letter_max_bytes,
                        COVER_LETTER_TRUNCATION_MARKER,
                    ),
                    "\n\n",
                ]
            )
        else:
            sections.append("### COVER LETTER CONTENT\nNo cover letter provided.\n\n")

        sections.extend(
            [
                "## EVALUATION INSTRUCTIONS\n",
                "Evaluate the applicant and provide scores with detailed reasoning. "
                "Missing REQUIRED qualifications should significantly impact scores, "
                "while missing NICE TO HAVE qualifications should have minimal impact.\n\n",
                _OUTPUT_FORMAT,
                "\nNOW EVALUATE THE CANDIDATE AND RETURN ONLY THE JSON OBJECT.\n",
            ]
        )
        prompt = "".join(sections)
        self._logger.debug(
            "evaluator.request_built",
            applicant=record.name,
            cv_bytes=len(record.cv_text.encode("utf-8", errors="surrogatepass")),
            prompt_chars=len(prompt),
        )
        return prompt


__all__ = [
    "COVER_LETTER_TRUNCATION_MARKER",
    "CV_TRUNCATION_MARKER",
    "RequestBuilder",
    "bounded_text",
    "condense_requirements",
    "truncate_utf8",
]
