"""Evaluator clients for the external scoring service."""

from __future__ import annotations

import json
from typing import Any
from urllib import error, request

import structlog
from google import genai
from google.genai import types as genai_types

from .errors import ConfigurationError, EvaluatorCallError


class GeminiClient:
    """Gemini client over the google-genai SDK.

    Uses an API key when given, otherwise Vertex AI with ``project`` and
    ``location``.
    """

    def __init__(
        self,
        *,
        model: str = "gemini-2.5-flash",
        api_key: str | None = None,
        project: str | None = None,
        location: str = "us-central1",
        temperature: float = 0.2,
        top_k: int = 40,
        top_p: float = 0.95,
        max_output_tokens: int = 2048,
    ) -> None:
        if not api_key and not project:
            raise ConfigurationError(
                "Evaluator credentials missing: set GOOGLE_API_KEY or GOOGLE_CLOUD_PROJECT"
            )
        try:
            if api_key:
                self._client = genai.Client(api_key=api_key)
            else:
                self._client = genai.Client(vertexai=True, project=project, location=location)
        except Exception as exc:  # noqa: BLE001 - SDK raises auth and value errors
            raise ConfigurationError(f"Failed to create evaluator client: {exc}") from exc
        self._model = model
        self._config = genai_types.GenerateContentConfig(
            temperature=temperature,
            top_k=top_k,
            top_p=top_p,
            max_output_tokens=max_output_tokens,
        )
        self._logger = structlog.get_logger(__name__)

    def complete(self, prompt: str) -> str:
        self._logger.debug("llm.request", model=self._model, prompt_chars=len(prompt))
        response = self._client.models.generate_content(
            model=self._model,
            contents=prompt,
            config=self._config,
        )
        text = response.text
        if not text:
            raise EvaluatorCallError("no response candidates returned")
        return text


class HTTPEvaluatorClient:
    """Simple HTTP client posting the prompt to an evaluation endpoint."""

    def __init__(self, endpoint: str | None, api_key: str | None = None, *, timeout: float = 60.0):
        if not endpoint:
            raise ConfigurationError("evaluator.endpoint is required for the http provider")
        self._endpoint = endpoint
        self._api_key = api_key
        self._timeout = timeout
        self._logger = structlog.get_logger(__name__)

    def complete(self, prompt: str) -> str:
        data = json.dumps({"prompt": prompt}, ensure_ascii=False).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        req = request.Request(self._endpoint, data=data, headers=headers, method="POST")
        try:
            with request.urlopen(req, timeout=self._timeout) as resp:
                body = resp.read().decode("utf-8", errors="replace")
        except error.HTTPError as exc:
            self._logger.warning("llm.request_failed", status=exc.code, error=str(exc))
            raise EvaluatorCallError(f"HTTP {exc.code}: {exc.reason}") from exc
        except error.URLError as exc:
            self._logger.warning("llm.request_failed", error=str(exc))
            raise EvaluatorCallError(f"evaluator unreachable: {exc.reason}") from exc
        return _response_text(body)


def _response_text(body: str) -> str:
    try:
        payload: Any = json.loads(body)
    except json.JSONDecodeError:
        return body
    if isinstance(payload, dict) and isinstance(payload.get("text"), str):
        return payload["text"]
    return body


__all__ = ["GeminiClient", "HTTPEvaluatorClient"]
