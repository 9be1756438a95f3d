"""Dependency injection container for the review pipeline."""

from __future__ import annotations

from typing import Any, Mapping

from dependency_injector import containers, providers
from pydantic import ValidationError

from .core import Evaluator, RequestBuilder, ResponseDecoder
from .errors import ConfigurationError
from .ingestion import DocumentStore, RemoteSource
from .ingestion.gmail import GmailMailboxClient
from .llm import GeminiClient, HTTPEvaluatorClient
from .pipeline import PipelinePolicy, ReviewPipeline, RunContext
from .schemas.config import AppConfig, load_config


class ReviewContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    document_store = providers.Singleton(DocumentStore, root=config.store.uploads_dir)

    gemini_client = providers.Singleton(
        GeminiClient,
        model=config.evaluator.model,
        api_key=config.evaluator.api_key,
        project=config.evaluator.project,
        location=config.evaluator.location,
        temperature=config.evaluator.temperature,
        top_k=config.evaluator.top_k,
        top_p=config.evaluator.top_p,
        max_output_tokens=config.evaluator.max_output_tokens,
    )
    http_client = providers.Singleton(
        HTTPEvaluatorClient,
        config.evaluator.endpoint,
        config.evaluator.api_key,
        timeout=config.evaluator.timeout_seconds,
    )
    evaluator_client = providers.Selector(
        config.evaluator["provider"],
        gemini=gemini_client,
        http=http_client,
    )

    request_builder = providers.Singleton(
        RequestBuilder,
        cv_max_bytes=config.evaluator.cv_max_bytes,
        cover_letter_max_bytes=config.evaluator.cover_letter_max_bytes,
        max_requirements=config.evaluator.max_requirements,
    )
    response_decoder = providers.Singleton(ResponseDecoder)

    evaluator = providers.Singleton(
        Evaluator,
        evaluator_client,
        builder=request_builder,
        decoder=response_decoder,
    )

    mailbox_client = providers.Singleton(
        GmailMailboxClient.from_token_file,
        config.mailbox.token_path,
        user_id=config.mailbox.user_id,
    )

    remote_source = providers.Factory(
        RemoteSource,
        mailbox_client,
        document_store,
        page_size=config.mailbox.page_size,
        max_attempts=config.mailbox.max_attempts,
        backoff_unit_seconds=config.mailbox.backoff_unit_seconds,
    )

    policy = providers.Singleton(
        PipelinePolicy,
        request_delay_seconds=config.pipeline.request_delay_seconds,
        max_attempts=config.pipeline.max_attempts,
        rate_limit_backoff_seconds=config.pipeline.rate_limit_backoff_seconds,
        max_records=config.pipeline.max_records,
    )

    run_context = providers.Singleton(RunContext)

    pipeline = providers.Singleton(
        ReviewPipeline,
        evaluator=evaluator,
        policy=policy,
        context=run_context,
    )


def create_container(
    *,
    settings: AppConfig | dict | None = None,
    environ: Mapping[str, str] | None = None,
) -> ReviewContainer:
    """Instantiate the container from validated settings.

    Plain dictionaries are validated and completed from the environment;
    an ``AppConfig`` is used as given.
    """
    if isinstance(settings, AppConfig):
        app_config = settings
    else:
        try:
            app_config = load_config(settings or {})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc
        app_config = app_config.with_environment(environ)

    container = ReviewContainer()
    values: dict[str, Any] = app_config.to_settings()
    container.config.from_dict(values)
    return container


__all__ = ["ReviewContainer", "create_container"]
