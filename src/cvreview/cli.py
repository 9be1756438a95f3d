"""Typer CLI entrypoint for the review pipeline."""

from __future__ import annotations

import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from .config import load_app_config
from .container import create_container
from .errors import ReviewError, RunCancelled
from .ingestion import MailboxSource
from .logging import configure_logging
from .pipeline import AuditLogger, JobLoader, ReportWriter
from .runtime import CancellationToken

app = typer.Typer(help="Applicant CV review and ranking CLI.")

EXIT_FAILURE = 1
EXIT_CANCELLED = 130


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Route SIGINT to ``token`` for the duration of the block."""

    def _handler(signum: int, frame: object) -> None:
        typer.echo("Cancelling after the current step...", err=True)
        token.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # not on the main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _echo_progress(current: int, total: int, message: str) -> None:
    percent = 100 * current // total if total else 0
    typer.echo(f"[{percent:3d}%] {message}", err=True)


@app.command()
def add(
    files: List[Path] = typer.Argument(..., exists=True, readable=True, dir_okay=False, help="CV and cover letter files."),
    uploads: Optional[Path] = typer.Option(None, file_okay=False, help="Document store directory."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
) -> None:
    """Copy local documents into the document store."""
    configure_logging(log_level)
    try:
        settings = load_app_config(config)
        if uploads is not None:
            settings = settings.model_copy(
                update={"store": settings.store.model_copy(update={"uploads_dir": str(uploads)})}
            )
        store = create_container(settings=settings).document_store()
        for path in files:
            saved = store.save(path.name, path.read_bytes())
            typer.echo(f"Stored {saved}")
    except (ReviewError, OSError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILURE) from exc


@app.command()
def run(
    job: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Job specification JSON path."),
    output: Path = typer.Option(
        ...,
        exists=False,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
        help="Output JSON path.",
    ),
    uploads: Optional[Path] = typer.Option(None, file_okay=False, help="Document store directory."),
    gmail_subject: Optional[str] = typer.Option(None, help="Fetch attachments from emails with this subject."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
    quiet: bool = typer.Option(False, "--quiet", help="Do not print progress."),
) -> None:
    """Evaluate and rank applicants against a job specification."""
    configure_logging(log_level)
    token = CancellationToken()

    try:
        settings = load_app_config(config)
        if uploads is not None:
            settings = settings.model_copy(
                update={"store": settings.store.model_copy(update={"uploads_dir": str(uploads)})}
            )
        container = create_container(settings=settings)
        job_spec = JobLoader().load(job)

        store = container.document_store()
        if gmail_subject:
            source = MailboxSource(container.remote_source(), store, gmail_subject)
        else:
            source = store

        pipeline = container.pipeline()
        pipeline.set_audit_logger(AuditLogger(audit_log) if audit_log else None)

        with cancel_on_interrupt(token):
            ranked = pipeline.run(
                job_spec.model_dump(mode="json"),
                source,
                token,
                progress=None if quiet else _echo_progress,
            )

        ReportWriter().write(output, pipeline.report(), pipeline.last_run())
    except RunCancelled as exc:
        typer.echo("Run cancelled.", err=True)
        raise typer.Exit(code=EXIT_CANCELLED) from exc
    except ReviewError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILURE) from exc

    for result in ranked:
        typer.echo(f"{result.rank:>3}. {result.name}: {result.score.total_score:.1f}")
    typer.echo(f"Ranked {len(ranked)} applicants. Results saved to {output}.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
