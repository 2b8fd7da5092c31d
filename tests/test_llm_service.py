"""Tests for the provider adapter, using httpx.MockTransport."""

import asyncio
import json

import httpx
import pytest

from conftest import FakeProvider

from chatdiary.models.persona import ApiConfig
from chatdiary.models.provider import GeminiShape, OpenAIShape, RawArrayShape
from chatdiary.services.llm_service import (
    LLMService,
    model_list_candidates,
    parse_data_url,
    to_gemini_payload,
    to_provider_response,
)
from chatdiary.utils.exceptions import ConfigurationError, ProviderHTTPError, ResponseParseError

GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta"


def gemini_config(**kwargs) -> ApiConfig:
    return ApiConfig(
        id="g", name="Gemini", provider="google", api_key="gk", base_url=GEMINI_BASE,
        model="gemini-pro", **kwargs,
    )


class TestOpenAIChat:
    def test_posts_to_chat_completions(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.reply("hello there")
        text = asyncio.run(llm.chat([{"role": "user", "content": "hi"}], api_config))

        assert text == "hello there"
        request = provider.requests[0]
        assert str(request.url) == "https://api.example.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = provider.payload()
        assert body["model"] == "gpt-3.5-turbo"
        assert body["temperature"] == 0.7
        assert body["messages"] == [{"role": "user", "content": "hi"}]

    def test_base_without_v1(self, llm: LLMService, provider: FakeProvider) -> None:
        config = ApiConfig(api_key="k", base_url="https://api.deepseek.com/", model="deepseek-chat")
        asyncio.run(llm.chat([{"role": "user", "content": "hi"}], config))
        assert str(provider.requests[0].url) == "https://api.deepseek.com/v1/chat/completions"
        assert provider.payload()["model"] == "deepseek-chat"

    def test_missing_key_fails_before_network(self, llm: LLMService, provider: FakeProvider) -> None:
        config = ApiConfig(api_key="", base_url="https://api.example.com/v1")
        with pytest.raises(ConfigurationError):
            asyncio.run(llm.chat([{"role": "user", "content": "hi"}], config))
        assert provider.requests == []

    def test_http_error(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.fail(500, "server exploded")
        with pytest.raises(ProviderHTTPError) as exc_info:
            asyncio.run(llm.chat([{"role": "user", "content": "hi"}], api_config))
        assert exc_info.value.status_code == 500
        assert "API Error (500): server exploded" in str(exc_info.value)

    def test_error_body_with_success_status(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.responses.append(httpx.Response(200, json={"error": {"message": "quota exceeded"}}))
        with pytest.raises(ProviderHTTPError, match="quota exceeded"):
            asyncio.run(llm.chat([{"role": "user", "content": "hi"}], api_config))

    def test_missing_choices(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.responses.append(httpx.Response(200, json={"id": "x"}))
        with pytest.raises(ResponseParseError):
            asyncio.run(llm.chat([{"role": "user", "content": "hi"}], api_config))

    def test_non_json_body(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.responses.append(httpx.Response(200, text="<html>proxy</html>"))
        with pytest.raises(ResponseParseError):
            asyncio.run(llm.chat([{"role": "user", "content": "hi"}], api_config))

    def test_network_error(self, api_config: ApiConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        llm = LLMService(transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderHTTPError) as exc_info:
            asyncio.run(llm.chat([{"role": "user", "content": "hi"}], api_config))
        assert exc_info.value.status_code is None


class TestGeminiChat:
    def test_url_and_payload(self, llm: LLMService, provider: FakeProvider) -> None:
        provider.responses.append(httpx.Response(200, json={
            "candidates": [{"content": {"parts": [{"text": "bonjour"}]}}],
        }))
        messages = [
            {"role": "system", "content": "be kind"},
            {"role": "assistant", "content": "hey"},
            {"role": "user", "content": [
                {"type": "text", "text": "what is this"},
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
            ]},
        ]
        text = asyncio.run(llm.chat(messages, gemini_config()))

        assert text == "bonjour"
        url = str(provider.requests[0].url)
        assert url == "https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent?key=gk"
        body = provider.payload()
        assert body["system_instruction"] == {"parts": [{"text": "be kind"}]}
        assert body["generationConfig"] == {"temperature": 0.7}
        assert body["contents"][0] == {"role": "model", "parts": [{"text": "hey"}]}
        assert body["contents"][1]["parts"][1] == {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}

    def test_detected_by_host(self) -> None:
        config = ApiConfig(provider="custom", api_key="k", base_url=GEMINI_BASE)
        assert config.is_google

    def test_missing_candidates(self, llm: LLMService, provider: FakeProvider) -> None:
        provider.responses.append(httpx.Response(200, json={"candidates": []}))
        with pytest.raises(ResponseParseError):
            asyncio.run(llm.chat([{"role": "user", "content": "hi"}], gemini_config()))

    def test_payload_without_system(self) -> None:
        body = to_gemini_payload([{"role": "user", "content": "hi"}], 0.5)
        assert "system_instruction" not in body
        assert body["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]

    def test_parse_data_url(self) -> None:
        assert parse_data_url("data:image/webp;base64,QUJD") == {"mime_type": "image/webp", "data": "QUJD"}
        assert parse_data_url("https://example.com/a.png") is None


class TestListModels:
    def test_falls_through_to_second_candidate(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.fail(404, "not here")
        provider.responses.append(httpx.Response(200, json={"data": [{"id": "m1"}, {"id": "m2"}]}))

        models = asyncio.run(llm.list_models(api_config))

        assert models == ["m1", "m2"]
        assert [str(r.url) for r in provider.requests] == model_list_candidates(api_config.base_url)
        assert [str(r.url) for r in provider.requests] == [
            "https://api.example.com/v1/models",
            "https://api.example.com/models",
        ]

    def test_unauthorized_aborts_immediately(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.fail(401, "bad key")
        with pytest.raises(ProviderHTTPError) as exc_info:
            asyncio.run(llm.list_models(api_config))
        assert exc_info.value.status_code == 401
        assert len(provider.requests) == 1

    def test_all_candidates_missing(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.fail(404)
        provider.fail(404)
        with pytest.raises(ProviderHTTPError) as exc_info:
            asyncio.run(llm.list_models(api_config))
        assert exc_info.value.status_code == 404
        assert len(provider.requests) == 2

    def test_raw_array_response(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.responses.append(httpx.Response(200, json=["a", {"id": "b"}, {"name": "c"}]))
        assert asyncio.run(llm.list_models(api_config)) == ["a", "b", "c"]

    def test_list_key(self, llm: LLMService, provider: FakeProvider, api_config: ApiConfig) -> None:
        provider.responses.append(httpx.Response(200, json={"list": [{"id": "x"}]}))
        assert asyncio.run(llm.list_models(api_config)) == ["x"]

    def test_gemini_models(self, llm: LLMService, provider: FakeProvider) -> None:
        provider.responses.append(httpx.Response(200, json={
            "models": [{"name": "models/gemini-pro"}, {"name": "models/gemini-flash"}],
        }))
        models = asyncio.run(llm.list_models(gemini_config()))
        assert models == ["gemini-pro", "gemini-flash"]
        assert str(provider.requests[0].url) == "https://generativelanguage.googleapis.com/v1beta/models?key=gk"

    def test_missing_key(self, llm: LLMService, provider: FakeProvider) -> None:
        with pytest.raises(ConfigurationError):
            asyncio.run(llm.list_models(ApiConfig(api_key="", base_url="https://api.example.com")))
        assert provider.requests == []


class TestProviderResponse:
    def test_tags(self) -> None:
        assert isinstance(to_provider_response({"choices": []}, google=False), OpenAIShape)
        assert isinstance(to_provider_response({"candidates": []}, google=True), GeminiShape)
        assert isinstance(to_provider_response([1, 2], google=False), RawArrayShape)

    def test_scalar_rejected(self) -> None:
        with pytest.raises(ResponseParseError):
            to_provider_response("nope", google=False)

    def test_payload_is_json_serializable(self) -> None:
        body = to_gemini_payload([{"role": "user", "content": "hi"}], 0.7)
        assert json.loads(json.dumps(body)) == body
