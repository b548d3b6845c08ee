"""Remote bookmark classifier over OpenAI-compatible and Gemini HTTP APIs.

Every failure surfaces as :class:`ClassificationError` with ``kind`` one of
``network`` (transport, timeouts, 5xx), ``auth`` (401/403) or ``malformed``
(non-JSON bodies, unexpected shapes, unparseable content).
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from tidymarks.adapters.llm.prompts import (
    CONNECTION_CHECK_PROMPT,
    SYSTEM_PROMPT,
    build_batch_prompt,
    build_single_prompt,
)
from tidymarks.adapters.llm.protocol import SingleClassification
from tidymarks.core.json_utils import extract_json
from tidymarks.domain.exceptions.domain_exceptions import (
    ClassificationError,
    ConfigurationError,
)
from tidymarks.domain.models.plan import Plan

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tidymarks.config.classifier import ClassifierConfig
    from tidymarks.domain.models.entry import Entry

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_SUFFIX = "/chat/completions"
_TITLE_RE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def corrected_chat_endpoint(url: str) -> str:
    """Append the chat completions route to a bare base URL."""
    base = url.rstrip("/")
    if base.endswith("/v1"):
        return f"{base}{CHAT_COMPLETIONS_SUFFIX}"
    return f"{base}/v1{CHAT_COMPLETIONS_SUFFIX}"


def _is_html(response: httpx.Response) -> bool:
    return "text/html" in response.headers.get("content-type", "")


def _is_json(response: httpx.Response) -> bool:
    return "application/json" in response.headers.get("content-type", "")


def _html_title(text: str) -> str:
    match = _TITLE_RE.search(text)
    return match.group(1).strip() if match else text[:50]


class LLMClassifier:
    """``ClassifierProtocol`` implementation backed by a chat-completion API."""

    def __init__(
        self,
        *,
        provider: str,
        endpoint: str,
        api_key: str,
        model: str,
        target_language: str = "zh-CN",
        temperature: float = 0.2,
        timeout_sec: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            msg = "API key is not configured"
            raise ConfigurationError(msg)
        if not endpoint:
            msg = f"API endpoint is not configured for provider {provider}"
            raise ConfigurationError(msg)
        self._provider = provider
        self._endpoint = endpoint
        self._api_key = api_key
        self._model = model
        self._language = target_language
        self._temperature = temperature
        self._timeout = httpx.Timeout(timeout_sec, connect=10.0)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls, config: ClassifierConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> LLMClassifier:
        return cls(
            provider=config.provider,
            endpoint=config.resolved_endpoint,
            api_key=config.api_key,
            model=config.resolved_model,
            target_language=config.target_language,
            temperature=config.temperature,
            timeout_sec=config.timeout_sec,
            transport=transport,
        )

    @property
    def provider_name(self) -> str:
        return self._provider

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def __aenter__(self) -> LLMClassifier:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    # ------------------------------------------------------------------
    # ClassifierProtocol

    async def classify(self, batch: Sequence[Entry], folder_summary: str) -> Plan:
        if not batch:
            return Plan()
        prompt = build_batch_prompt(batch, folder_summary, self._language)
        payload = await self._complete(prompt)
        plan = Plan.from_payload(payload)
        logger.info(
            "classifier_batch_parsed",
            extra={
                "provider": self._provider,
                "batch_size": len(batch),
                "items": plan.total_items(),
            },
        )
        return plan

    async def classify_single(
        self, entry: Entry, folder_summary: str
    ) -> SingleClassification | None:
        prompt = build_single_prompt(entry, folder_summary, self._language)
        payload = await self._complete(prompt)
        if not payload.get("path"):
            logger.info("classifier_single_no_path", extra={"bookmark_id": entry.id})
            return None
        try:
            return SingleClassification.model_validate(payload)
        except ValidationError as exc:
            raise ClassificationError(
                "Classifier returned an invalid folder path",
                kind="malformed",
                details={"bookmark_id": entry.id, "error": str(exc)[:300]},
            ) from exc

    async def check_connection(self) -> bool:
        """Send a tiny JSON request; raise ``ClassificationError`` on failure."""
        payload = await self._complete(CONNECTION_CHECK_PROMPT)
        logger.info("classifier_connection_ok", extra={"provider": self._provider, "reply": payload})
        return True

    # ------------------------------------------------------------------
    # Transport

    async def _complete(self, prompt: str) -> dict[str, Any]:
        started = time.perf_counter()
        if self._provider == "gemini":
            content = await self._call_gemini(prompt)
        else:
            content = await self._call_openai_compatible(prompt)

        parsed = extract_json(content)
        latency_ms = int((time.perf_counter() - started) * 1000)
        if parsed is None:
            logger.warning(
                "classifier_reply_unparseable",
                extra={"provider": self._provider, "latency_ms": latency_ms, "preview": content[:200]},
            )
            msg = "Failed to parse classifier reply as JSON"
            raise ClassificationError(msg, kind="malformed")

        logger.debug(
            "classifier_reply_parsed",
            extra={"provider": self._provider, "latency_ms": latency_ms},
        )
        return parsed

    async def _post(
        self, url: str, *, body: dict[str, Any], headers: dict[str, str] | None = None
    ) -> httpx.Response:
        client = self._ensure_client()
        try:
            return await client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as exc:
            msg = f"Classifier request timed out: {exc}"
            raise ClassificationError(msg, kind="network") from exc
        except httpx.HTTPError as exc:
            msg = f"Network error: {exc}. Check your URL."
            raise ClassificationError(msg, kind="network") from exc

    async def _call_openai_compatible(self, prompt: str) -> str:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._temperature,
            "response_format": {"type": "json_object"},
        }

        response = await self._post(self._endpoint, body=body, headers=headers)

        if (
            (_is_html(response) or response.status_code == 404)
            and CHAT_COMPLETIONS_SUFFIX not in self._endpoint
        ):
            response = await self._retry_with_corrected_endpoint(response, body, headers)

        self._raise_for_status(response)

        if not _is_json(response):
            content_type = response.headers.get("content-type", "")
            msg = (
                f"Endpoint returned non-JSON content type: {content_type} "
                f"({_html_title(response.text)}). Check URL."
            )
            raise ClassificationError(msg, kind="malformed")

        data = self._response_json(response)
        try:
            return str(data["choices"][0]["message"]["content"])
        except (KeyError, IndexError, TypeError) as exc:
            msg = "Unexpected chat completion response shape"
            raise ClassificationError(msg, kind="malformed") from exc

    async def _retry_with_corrected_endpoint(
        self,
        original: httpx.Response,
        body: dict[str, Any],
        headers: dict[str, str],
    ) -> httpx.Response:
        corrected = corrected_chat_endpoint(self._endpoint)
        logger.info(
            "classifier_endpoint_autocorrect_attempt",
            extra={"endpoint": self._endpoint, "corrected": corrected},
        )
        try:
            retry = await self._post(corrected, body=body, headers=headers)
        except ClassificationError as exc:
            logger.warning(
                "classifier_endpoint_autocorrect_failed",
                extra={"corrected": corrected, "error": exc.message},
            )
            return original

        if retry.is_success and _is_json(retry):
            logger.info("classifier_endpoint_autocorrected", extra={"endpoint": corrected})
            self._endpoint = corrected
            return retry
        return original

    async def _call_gemini(self, prompt: str) -> str:
        url = httpx.URL(self._endpoint).copy_merge_params({"key": self._api_key})
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        response = await self._post(str(url), body=body)
        self._raise_for_status(response, label="Gemini API error")

        data = self._response_json(response)
        try:
            return str(data["candidates"][0]["content"]["parts"][0]["text"])
        except (KeyError, IndexError, TypeError) as exc:
            msg = "Unexpected Gemini response shape"
            raise ClassificationError(msg, kind="malformed") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, *, label: str = "API error") -> None:
        if response.is_success:
            return
        status = response.status_code
        if status in (401, 403):
            msg = f"{label}: {status} - authentication failed"
            raise ClassificationError(msg, kind="auth", details={"status_code": status})
        if _is_html(response):
            msg = (
                f"API returned HTML ({_html_title(response.text)}). "
                f"Make sure the URL ends with '/v1{CHAT_COMPLETIONS_SUFFIX}'."
            )
            raise ClassificationError(msg, kind="network", details={"status_code": status})
        msg = f"{label}: {status} - {response.text[:300]}"
        raise ClassificationError(msg, kind="network", details={"status_code": status})

    @staticmethod
    def _response_json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            msg = "Classifier response body is not valid JSON"
            raise ClassificationError(msg, kind="malformed") from exc
        if not isinstance(data, dict):
            msg = "Classifier response body is not a JSON object"
            raise ClassificationError(msg, kind="malformed")
        return data
