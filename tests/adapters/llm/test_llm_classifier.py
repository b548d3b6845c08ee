from __future__ import annotations

import json

import httpx
import pytest

from tests.conftest import make_entry
from tidymarks.adapters.llm.classifier import LLMClassifier, corrected_chat_endpoint
from tidymarks.adapters.llm.prompts import CHINESE, build_batch_prompt, resolve_language
from tidymarks.config import ClassifierConfig
from tidymarks.domain.exceptions.domain_exceptions import (
    ClassificationError,
    ConfigurationError,
)

PLAN_REPLY = """```json
{
  "folders_to_create": [{"path": "Dev/Python"}],
  "bookmarks_to_move": [{"bookmark_id": "10", "target_folder_path": "Dev/Python"}],
  "archive": [{"bookmark_id": "11", "reason": "outdated"}],
}
```"""


def _chat_reply(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def _html(status: int, title: str = "Not Found") -> httpx.Response:
    return httpx.Response(
        status,
        text=f"<html><head><title>{title}</title></head><body></body></html>",
        headers={"content-type": "text/html; charset=utf-8"},
    )


def _classifier(handler, **kwargs) -> LLMClassifier:
    params = {
        "provider": "openai",
        "endpoint": "https://api.example.com/v1/chat/completions",
        "api_key": "sk-test",
        "model": "gpt-4o",
        "target_language": "en",
    }
    params.update(kwargs)
    return LLMClassifier(transport=httpx.MockTransport(handler), **params)


def test_corrected_chat_endpoint() -> None:
    assert corrected_chat_endpoint("https://h/v1") == "https://h/v1/chat/completions"
    assert corrected_chat_endpoint("https://h/v1/") == "https://h/v1/chat/completions"
    assert corrected_chat_endpoint("https://h") == "https://h/v1/chat/completions"


def test_missing_credentials_raise_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        LLMClassifier(provider="openai", endpoint="https://h/v1", api_key="", model="m")
    with pytest.raises(ConfigurationError):
        LLMClassifier(provider="custom", endpoint="", api_key="k", model="m")


def test_from_config_uses_provider_defaults() -> None:
    classifier = LLMClassifier.from_config(
        ClassifierConfig(provider="deepseek", api_key="sk-test")
    )

    assert classifier.provider_name == "deepseek"
    assert classifier.endpoint == "https://api.deepseek.com/chat/completions"


@pytest.mark.asyncio
async def test_batch_classification_parses_fenced_reply() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["authorization"] == "Bearer sk-test"
        seen.append(json.loads(request.content))
        return _chat_reply(PLAN_REPLY)

    entries = [
        make_entry("10", "https://docs.python.org/"),
        make_entry("11", "https://old.example/"),
    ]
    async with _classifier(handler) as classifier:
        plan = await classifier.classify(entries, "Bookmarks bar, Bookmarks bar/Dev")

    assert [item.path for item in plan.folders_to_create] == ["Dev/Python"]
    assert plan.bookmarks_to_move[0].bookmark_id == "10"
    assert plan.archive[0].reason == "outdated"
    body = seen[0]
    assert body["model"] == "gpt-4o"
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0]["role"] == "system"
    user_prompt = body["messages"][1]["content"]
    assert "Bookmarks bar/Dev" in user_prompt
    assert '"id": "11"' in user_prompt


@pytest.mark.asyncio
async def test_empty_batch_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _classifier(handler) as classifier:
        plan = await classifier.classify([], "")

    assert plan.is_empty()


@pytest.mark.asyncio
async def test_bare_base_url_is_autocorrected_and_adopted() -> None:
    urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        if request.url.path.endswith("/chat/completions"):
            return _chat_reply('{"path": "Dev"}')
        return _html(404)

    async with _classifier(handler, endpoint="https://api.example.com/v1") as classifier:
        first = await classifier.classify_single(make_entry("1", "https://a.example/"), "")
        second = await classifier.classify_single(make_entry("2", "https://b.example/"), "")

        assert classifier.endpoint == "https://api.example.com/v1/chat/completions"

    assert first.path == second.path == "Dev"
    assert urls == [
        "https://api.example.com/v1",
        "https://api.example.com/v1/chat/completions",
        "https://api.example.com/v1/chat/completions",
    ]


@pytest.mark.asyncio
async def test_failed_autocorrect_reports_html_hint() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _html(404, "Page missing")

    async with _classifier(handler, endpoint="https://api.example.com") as classifier:
        with pytest.raises(ClassificationError) as excinfo:
            await classifier.classify_single(make_entry("1", "https://a.example/"), "")

    assert excinfo.value.kind == "network"
    assert "Page missing" in excinfo.value.message
    assert classifier.endpoint == "https://api.example.com"


@pytest.mark.parametrize("status", [401, 403])
@pytest.mark.asyncio
async def test_auth_failures(status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": {"message": "invalid key"}})

    async with _classifier(handler) as classifier:
        with pytest.raises(ClassificationError) as excinfo:
            await classifier.classify([make_entry("1", "https://a.example/")], "")

    assert excinfo.value.kind == "auth"
    assert excinfo.value.details["status_code"] == status


@pytest.mark.asyncio
async def test_server_error_is_network_kind() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "overloaded"})

    async with _classifier(handler) as classifier:
        with pytest.raises(ClassificationError) as excinfo:
            await classifier.classify([make_entry("1", "https://a.example/")], "")

    assert excinfo.value.kind == "network"


@pytest.mark.asyncio
async def test_transport_error_is_network_kind() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _classifier(handler) as classifier:
        with pytest.raises(ClassificationError) as excinfo:
            await classifier.classify([make_entry("1", "https://a.example/")], "")

    assert excinfo.value.kind == "network"


@pytest.mark.asyncio
async def test_unparseable_content_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _chat_reply("Sorry, I cannot help with that.")

    async with _classifier(handler) as classifier:
        with pytest.raises(ClassificationError) as excinfo:
            await classifier.classify([make_entry("1", "https://a.example/")], "")

    assert excinfo.value.kind == "malformed"


@pytest.mark.asyncio
async def test_html_success_page_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _html(200, "Login")

    async with _classifier(handler) as classifier:
        with pytest.raises(ClassificationError) as excinfo:
            await classifier.classify([make_entry("1", "https://a.example/")], "")

    assert excinfo.value.kind == "malformed"
    assert "Login" in excinfo.value.message


@pytest.mark.asyncio
async def test_unexpected_response_shape_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    async with _classifier(handler) as classifier:
        with pytest.raises(ClassificationError) as excinfo:
            await classifier.check_connection()

    assert excinfo.value.kind == "malformed"


@pytest.mark.asyncio
async def test_single_without_path_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _chat_reply('{"path": "", "reason": "unsure"}')

    async with _classifier(handler) as classifier:
        assert await classifier.classify_single(make_entry("1", "https://a.example/"), "") is None


@pytest.mark.asyncio
async def test_single_with_blank_path_segments_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _chat_reply('{"path": "///"}')

    async with _classifier(handler) as classifier:
        with pytest.raises(ClassificationError) as excinfo:
            await classifier.classify_single(make_entry("1", "https://a.example/"), "")

    assert excinfo.value.kind == "malformed"


@pytest.mark.asyncio
async def test_gemini_request_and_reply() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        text = json.dumps({"path": "/Reading/", "suggested_title": " ", "reason": "blog"})
        return httpx.Response(
            200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]}
        )

    config = ClassifierConfig(provider="gemini", api_key="g-key", target_language="en")
    classifier = LLMClassifier.from_config(config, transport=httpx.MockTransport(handler))
    async with classifier:
        verdict = await classifier.classify_single(make_entry("1", "https://blog.example/"), "")

    assert verdict.path == "Reading"
    assert verdict.suggested_title is None
    assert verdict.reason == "blog"
    request = seen[0]
    assert request.url.params["key"] == "g-key"
    assert request.url.path == "/v1beta/models/gemini-pro:generateContent"
    body = json.loads(request.content)
    assert body["generationConfig"] == {"responseMimeType": "application/json"}
    assert "authorization" not in request.headers


@pytest.mark.asyncio
async def test_check_connection_ok() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _chat_reply('{"status": "OK"}')

    async with _classifier(handler) as classifier:
        assert await classifier.check_connection() is True


def test_prompt_language_selection() -> None:
    entries = [make_entry("1", "https://a.example/")]

    assert resolve_language("fr") == "en"
    assert "Simplified Chinese" in build_batch_prompt(entries, "", CHINESE)
    assert "Name every folder in English." in build_batch_prompt(entries, "", "en")
    assert "(none)" in build_batch_prompt(entries, "", "en")
