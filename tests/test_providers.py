import json
from types import SimpleNamespace

import anthropic
import httpx
import pytest

from part_research.exceptions import ProviderCallFailed, ProviderUnavailable
from part_research.services.providers import (
    AnthropicProvider,
    ChatCompletionsProvider,
    build_providers,
)


def chat_provider(handler, api_key="pplx-key") -> ChatCompletionsProvider:
    return ChatCompletionsProvider(
        name="perplexity",
        api_key=api_key,
        model="sonar-pro",
        base_url="https://api.perplexity.ai/",
        transport=httpx.MockTransport(handler),
    )


class TestChatCompletionsProvider:
    @pytest.mark.asyncio
    async def test_posts_payload_and_returns_content(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"name": "x"}'}}]})

        text = await chat_provider(handler).call("system text", "user text", 2000, 0.1)

        assert text == '{"name": "x"}'
        assert seen["url"] == "https://api.perplexity.ai/chat/completions"
        assert seen["auth"] == "Bearer pplx-key"
        body = seen["body"]
        assert body["model"] == "sonar-pro"
        assert body["messages"] == [
            {"role": "system", "content": "system text"},
            {"role": "user", "content": "user text"},
        ]
        assert body["max_tokens"] == 2000
        assert body["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_http_error_becomes_provider_call_failed(self):
        def handler(request):
            return httpx.Response(429, text="rate limit exceeded")

        with pytest.raises(ProviderCallFailed, match="429"):
            await chat_provider(handler).call("s", "u", 10, 0.1)

    @pytest.mark.asyncio
    async def test_network_error_becomes_provider_call_failed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderCallFailed, match="ConnectError"):
            await chat_provider(handler).call("s", "u", 10, 0.1)

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(ProviderCallFailed, match="unexpected response shape"):
            await chat_provider(handler).call("s", "u", 10, 0.1)

    @pytest.mark.asyncio
    async def test_empty_content(self):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": "  "}}]})

        with pytest.raises(ProviderCallFailed, match="empty response"):
            await chat_provider(handler).call("s", "u", 10, 0.1)

    @pytest.mark.asyncio
    async def test_unconfigured_raises_unavailable(self):
        provider = chat_provider(lambda request: httpx.Response(200), api_key="")
        assert not provider.is_configured()
        with pytest.raises(ProviderUnavailable):
            await provider.call("s", "u", 10, 0.1)

    def test_image_blocks_translated_to_image_url(self):
        provider = chat_provider(lambda request: httpx.Response(200))
        wire = provider._to_wire([
            {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "QUJD"}},
            {"type": "image", "source": {"type": "url", "url": "https://cdn.adafruit.com/a.jpg"}},
            {"type": "text", "text": "identify"},
        ])
        assert wire == [
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,QUJD"}},
            {"type": "image_url", "image_url": {"url": "https://cdn.adafruit.com/a.jpg"}},
            {"type": "text", "text": "identify"},
        ]


class FakeMessages:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return self.response


def fake_anthropic(response=None, error=None):
    return SimpleNamespace(messages=FakeMessages(response, error))


class TestAnthropicProvider:
    @pytest.mark.asyncio
    async def test_joins_text_blocks(self):
        response = SimpleNamespace(content=[
            SimpleNamespace(type="text", text='{"name": '),
            SimpleNamespace(type="tool_use"),
            SimpleNamespace(type="text", text='"x"}'),
        ])
        client = fake_anthropic(response)
        provider = AnthropicProvider(api_key="key", model="claude-test", client=client)

        text = await provider.call("sys", [{"type": "text", "text": "hi"}], 800, 0.1)

        assert text == '{"name": "x"}'
        kwargs = client.messages.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == "sys"
        assert kwargs["max_tokens"] == 800
        assert kwargs["temperature"] == 0.1
        assert kwargs["messages"] == [{"role": "user", "content": [{"type": "text", "text": "hi"}]}]

    @pytest.mark.asyncio
    async def test_api_error_becomes_provider_call_failed(self):
        error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
        provider = AnthropicProvider(api_key="key", model="m", client=fake_anthropic(error=error))

        with pytest.raises(ProviderCallFailed, match="APIConnectionError"):
            await provider.call("s", "u", 10, 0.1)

    @pytest.mark.asyncio
    async def test_no_text_blocks(self):
        response = SimpleNamespace(content=[SimpleNamespace(type="tool_use")])
        provider = AnthropicProvider(api_key="key", model="m", client=fake_anthropic(response))

        with pytest.raises(ProviderCallFailed):
            await provider.call("s", "u", 10, 0.1)

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        provider = AnthropicProvider(api_key="", model="m")
        assert not provider.is_configured()
        with pytest.raises(ProviderUnavailable):
            await provider.call("s", "u", 10, 0.1)


def test_build_providers_from_settings(settings):
    providers = build_providers(settings)

    assert set(providers) == {"perplexity", "anthropic"}
    assert providers["perplexity"].web_search is True
    assert providers["perplexity"].supports_images is False
    assert providers["perplexity"].max_retries == settings.perplexity_max_retries
    assert providers["anthropic"].supports_images is True
    assert providers["anthropic"].base_delay == settings.anthropic_base_delay
    assert all(p.is_configured() for p in providers.values())
