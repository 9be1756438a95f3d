"""Review pipeline assembly and execution."""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

import pendulum
import structlog
from pydantic import ValidationError

from . import __version__
from .core import Evaluator, is_retryable_failure, rank
from .errors import (
    JobSpecError,
    NoDocumentsError,
    NoResultsError,
    RunCancelled,
    RunInProgressError,
    SourcingError,
)
from .ingestion import RecordSource
from .logging import run_logging_context
from .retry import call_with_retry, fixed_backoff
from .runtime import CancellationToken, ProgressListener, ProgressReporter, ReadWriteLock
from .schemas import (
    ApplicantRecord,
    JobSpecification,
    RankedResult,
    Report,
    Score,
    ScoredApplicant,
)

SOURCING_END = 40
EVALUATION_END = 95


class RunState(str, Enum):
    INIT = "init"
    SOURCE_LOADED = "source_loaded"
    EVALUATING = "evaluating"
    RANKED = "ranked"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelinePolicy:
    """Pacing and retry limits for evaluator calls."""

    request_delay_seconds: float = 4.0
    max_attempts: int = 3
    rate_limit_backoff_seconds: float = 10.0
    max_records: int = 500


@dataclass
class RunSummary:
    """Bookkeeping for the last completed run."""

    run_id: str
    source: str
    records: int
    scored: int
    skipped: list[str] = field(default_factory=list)
    started_at: str = ""
    finished_at: str = ""


def parse_job_spec(raw: str | bytes | Mapping[str, Any]) -> JobSpecification:
    """Parse a job specification from JSON text or a mapping."""
    try:
        if isinstance(raw, Mapping):
            return JobSpecification.model_validate(dict(raw))
        return JobSpecification.model_validate_json(raw)
    except ValidationError as exc:
        raise JobSpecError(f"Invalid job specification: {exc}") from exc


class JobLoader:
    """Load job specification documents."""

    def load(self, path: Path) -> JobSpecification:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise JobSpecError(f"Unable to read job specification {path}: {exc}") from exc
        return parse_job_spec(raw)


class ReportWriter:
    """Persist the ranked report."""

    def write(self, path: Path, report: Report, summary: RunSummary | None = None) -> None:
        metadata: dict[str, Any] = {"app_version": __version__}
        if summary is not None:
            metadata.update(asdict(summary))
        payload = {
            "metadata": metadata,
            "report": report.model_dump(mode="json"),
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def append(self, record: dict) -> None:
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False))
            handle.write("\n")


class RunContext:
    """Pipeline state shared between a run and concurrent readers.

    Every field is read under the shared lock and replaced under the
    exclusive lock, so readers never observe a half-published run.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._job: JobSpecification | None = None
        self._report: Report | None = None
        self._summary: RunSummary | None = None
        self._state = RunState.INIT
        self._listener: ProgressListener | None = None

    @property
    def state(self) -> RunState:
        with self._lock.read():
            return self._state

    def set_state(self, state: RunState) -> None:
        with self._lock.write():
            self._state = state

    @property
    def progress_listener(self) -> ProgressListener | None:
        with self._lock.read():
            return self._listener

    def set_progress_listener(self, listener: ProgressListener | None) -> None:
        with self._lock.write():
            self._listener = listener

    @property
    def job(self) -> JobSpecification | None:
        with self._lock.read():
            return self._job

    @property
    def report(self) -> Report | None:
        with self._lock.read():
            return self._report

    @property
    def summary(self) -> RunSummary | None:
        with self._lock.read():
            return self._summary

    def publish(self, job: JobSpecification, report: Report, summary: RunSummary) -> None:
        with self._lock.write():
            self._job = job
            self._report = report
            self._summary = summary
            self._state = RunState.DONE


class ReviewPipeline:
    """End-to-end applicant review orchestrator."""

    def __init__(
        self,
        *,
        evaluator: Evaluator,
        policy: PipelinePolicy | None = None,
        context: RunContext | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], pendulum.DateTime] = pendulum.now,
    ) -> None:
        self._evaluator = evaluator
        self._policy = policy or PipelinePolicy()
        self._context = context or RunContext()
        self._audit = audit_logger
        self._clock = clock
        self._run_guard = threading.Lock()
        self._logger = structlog.get_logger(__name__)

    @property
    def state(self) -> RunState:
        return self._context.state

    @property
    def policy(self) -> PipelinePolicy:
        return self._policy

    def set_audit_logger(self, audit_logger: AuditLogger | None) -> None:
        self._audit = audit_logger

    def set_progress_listener(self, listener: ProgressListener | None) -> None:
        self._context.set_progress_listener(listener)

    def run(
        self,
        job_spec_json: str | bytes | Mapping[str, Any],
        source: RecordSource,
        token: CancellationToken | None = None,
        progress: ProgressListener | None = None,
    ) -> list[RankedResult]:
        """Evaluate every record from ``source`` and publish the ranking.

        Raises ``RunCancelled`` when ``token`` is cancelled, ``ReviewError``
        subclasses for configuration and sourcing failures, and
        ``RunInProgressError`` if another run is in flight.
        """
        if not self._run_guard.acquire(blocking=False):
            raise RunInProgressError("A review run is already in progress")
        run_id = uuid.uuid4().hex[:12]
        try:
            with run_logging_context(run_id=run_id, source=source.describe()):
                return self._run(
                    run_id, job_spec_json, source, token or CancellationToken(), progress
                )
        finally:
            self._run_guard.release()

    def report(self) -> Report:
        report = self._context.report
        if report is None:
            raise NoResultsError("No results available, run a review first")
        return report

    def results(self) -> list[RankedResult]:
        report = self._context.report
        return list(report.applicants) if report is not None else []

    def job_spec(self) -> JobSpecification | None:
        return self._context.job

    def last_run(self) -> RunSummary | None:
        return self._context.summary

    def _run(
        self,
        run_id: str,
        job_spec_json: str | bytes | Mapping[str, Any],
        source: RecordSource,
        token: CancellationToken,
        progress: ProgressListener | None,
    ) -> list[RankedResult]:
        reporter = ProgressReporter(progress or self._context.progress_listener)
        started_at = self._clock().to_iso8601_string()
        self._context.set_state(RunState.INIT)

        try:
            job = parse_job_spec(job_spec_json)

            reporter.report(0, "Loading applicant documents...")
            records = source.load_records(token, reporter.span(0, SOURCING_END))
            if not records:
                raise NoDocumentsError(f"No applicant documents found in {source.describe()}")
            if len(records) > self._policy.max_records:
                raise SourcingError(
                    f"{len(records)} applicants exceed the limit of {self._policy.max_records}"
                )
            self._context.set_state(RunState.SOURCE_LOADED)
            self._logger.info("pipeline.source_loaded", job_title=job.title, records=len(records))
            reporter.report(SOURCING_END, f"Processing {len(records)} applicants...")

            self._context.set_state(RunState.EVALUATING)
            scored, skipped = self._evaluate_all(records, job, token, reporter)

            ranked = rank(scored)
            self._context.set_state(RunState.RANKED)
            reporter.report(EVALUATION_END, "Ranking candidates...")

            finished_at = self._clock().to_iso8601_string()
            report = Report(applicants=ranked, job_title=job.title, timestamp=finished_at)
            summary = RunSummary(
                run_id=run_id,
                source=source.describe(),
                records=len(records),
                scored=len(ranked),
                skipped=skipped,
                started_at=started_at,
                finished_at=finished_at,
            )
            self._context.publish(job, report, summary)
        except RunCancelled:
            self._context.set_state(RunState.CANCELLED)
            self._logger.info("pipeline.cancelled")
            raise
        except Exception as exc:
            self._context.set_state(RunState.FAILED)
            self._logger.error("pipeline.failed", error=str(exc), error_type=type(exc).__name__)
            raise

        reporter.report(100, "Processing complete!")
        self._logger.info(
            "pipeline.completed",
            job_title=job.title,
            records=len(records),
            ranked=len(ranked),
            skipped=len(skipped),
        )
        return list(ranked)

    def _evaluate_all(
        self,
        records: list[ApplicantRecord],
        job: JobSpecification,
        token: CancellationToken,
        reporter: ProgressReporter,
    ) -> tuple[list[ScoredApplicant], list[str]]:
        scored: list[ScoredApplicant] = []
        skipped: list[str] = []
        total = len(records)
        span = EVALUATION_END - SOURCING_END

        for index, record in enumerate(records):
            token.raise_if_cancelled()
            if index > 0 and self._policy.request_delay_seconds > 0:
                self._logger.debug(
                    "pipeline.request_delay", seconds=self._policy.request_delay_seconds
                )
                token.sleep(self._policy.request_delay_seconds)

            percent = SOURCING_END + span * index // total
            reporter.report(percent, f"Evaluating {record.name} ({index + 1}/{total})")
            self._logger.info(
                "pipeline.evaluating", applicant=record.name, position=index + 1, total=total
            )

            try:
                score = self._evaluate_with_retry(record, job, token, reporter, percent)
            except RunCancelled:
                raise
            except Exception as exc:  # noqa: BLE001 - one applicant must not abort the batch
                skipped.append(record.name)
                self._logger.warning(
                    "pipeline.applicant_skipped",
                    applicant=record.name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    rate_limited=is_retryable_failure(exc),
                )
                self._append_audit(record, job, status="skipped", error=str(exc))
                continue

            scored.append(
                ScoredApplicant(
                    name=record.name,
                    score=score,
                    cv_path=record.cv_path,
                    cover_letter_path=record.cover_letter_path,
                )
            )
            self._append_audit(record, job, status="scored", score=score)

        return scored, skipped

    def _evaluate_with_retry(
        self,
        record: ApplicantRecord,
        job: JobSpecification,
        token: CancellationToken,
        reporter: ProgressReporter,
        percent: int,
    ) -> Score:
        attempts = self._policy.max_attempts

        def _on_retry(attempt: int, exc: BaseException, delay: float) -> None:
            self._logger.warning(
                "pipeline.rate_limited",
                applicant=record.name,
                attempt=attempt,
                max_attempts=attempts,
                retry_in=delay,
                error=str(exc),
            )
            reporter.report(
                percent,
                f"Rate limit - retrying {record.name} (attempt {attempt}/{attempts})",
            )

        return call_with_retry(
            lambda: self._evaluator.evaluate(record, job, token),
            attempts=attempts,
            wait=fixed_backoff(self._policy.rate_limit_backoff_seconds),
            token=token,
            should_retry=is_retryable_failure,
            on_retry=_on_retry,
        )

    def _append_audit(
        self,
        record: ApplicantRecord,
        job: JobSpecification,
        *,
        status: str,
        score: Score | None = None,
        error: str | None = None,
    ) -> None:
        if self._audit is None:
            return
        entry: dict[str, Any] = {
            "applicant": record.name,
            "job_title": job.title,
            "status": status,
            "cv_path": record.cv_path,
            "cover_letter_path": record.cover_letter_path,
            "timestamp": self._clock().to_iso8601_string(),
        }
        if score is not None:
            entry["scores"] = score.model_dump(mode="json")
        if error is not None:
            entry["error"] = error
        self._audit.append(entry)


__all__ = [
    "AuditLogger",
    "JobLoader",
    "PipelinePolicy",
    "ReportWriter",
    "ReviewPipeline",
    "RunContext",
    "RunState",
    "RunSummary",
    "parse_job_spec",
]
