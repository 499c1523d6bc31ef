import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import anthropic
import httpx

from part_research.config import Settings
from part_research.exceptions import ProviderCallFailed, ProviderUnavailable

logger = logging.getLogger(__name__)

UserContent = str | list[dict[str, Any]]


class ProviderClient(Protocol):
    name: str

    def is_configured(self) -> bool: ...

    async def call(
        self, system: str, user_content: UserContent, max_tokens: int, temperature: float
    ) -> str: ...


@dataclass(frozen=True)
class ProviderDescriptor:
    """A provider plus the policy the engine applies to it."""

    client: ProviderClient
    max_retries: int = 2
    base_delay: float = 1.0
    supports_images: bool = False
    web_search: bool = False

    @property
    def name(self) -> str:
        return self.client.name

    def is_configured(self) -> bool:
        return self.client.is_configured()


class ChatCompletionsProvider:
    """OpenAI-compatible /chat/completions endpoint (Perplexity and friends)."""

    def __init__(
        self,
        name: str,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def call(
        self, system: str, user_content: UserContent, max_tokens: int, temperature: float
    ) -> str:
        if not self.is_configured():
            raise ProviderUnavailable(self.name)

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": self._to_wire(user_content)},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": 0.9,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderCallFailed(
                self.name, f"API error: {exc.response.status_code} - {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderCallFailed(self.name, f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise ProviderCallFailed(self.name, f"response was not JSON: {exc}") from exc

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderCallFailed(self.name, "unexpected response shape") from exc
        if not isinstance(text, str) or not text.strip():
            raise ProviderCallFailed(self.name, "empty response")

        logger.info("%s returned %d characters", self.name, len(text))
        return text

    def _to_wire(self, user_content: UserContent) -> UserContent:
        if isinstance(user_content, str):
            return user_content
        parts = []
        for block in user_content:
            if block.get("type") == "image":
                source = block.get("source", {})
                if source.get("type") == "url":
                    url = source["url"]
                else:
                    url = f"data:{source.get('media_type', 'image/jpeg')};base64,{source.get('data', '')}"
                parts.append({"type": "image_url", "image_url": {"url": url}})
            else:
                parts.append(block)
        return parts


class AnthropicProvider:
    """Claude via the anthropic SDK. Accepts image content blocks."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        name: str = "anthropic",
        client: Any | None = None,
    ):
        self.name = name
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    @property
    def client(self):
        if self._client is None:
            # Retries are handled by the engine, not the SDK
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key, max_retries=0, timeout=self.timeout
            )
        return self._client

    async def call(
        self, system: str, user_content: UserContent, max_tokens: int, temperature: float
    ) -> str:
        if not self.is_configured():
            raise ProviderUnavailable(self.name)

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": user_content}],
            )
        except anthropic.APIError as exc:
            raise ProviderCallFailed(self.name, f"{type(exc).__name__}: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise ProviderCallFailed(self.name, "Unexpected response type from Claude")

        logger.info("%s returned %d characters", self.name, len(text))
        return text


def _perplexity(config: Settings) -> ProviderDescriptor:
    return ProviderDescriptor(
        client=ChatCompletionsProvider(
            name="perplexity",
            api_key=config.perplexity_api_key,
            model=config.perplexity_model,
            base_url=config.perplexity_base_url,
            timeout=config.provider_timeout,
        ),
        max_retries=config.perplexity_max_retries,
        base_delay=config.perplexity_base_delay,
        web_search=True,
    )


def _anthropic(config: Settings) -> ProviderDescriptor:
    return ProviderDescriptor(
        client=AnthropicProvider(
            api_key=config.anthropic_api_key,
            model=config.anthropic_model,
            timeout=config.provider_timeout,
        ),
        max_retries=config.anthropic_max_retries,
        base_delay=config.anthropic_base_delay,
        supports_images=True,
    )


PROVIDER_FACTORIES: dict[str, Callable[[Settings], ProviderDescriptor]] = {
    "perplexity": _perplexity,
    "anthropic": _anthropic,
}


def build_providers(config: Settings) -> dict[str, ProviderDescriptor]:
    return {name: factory(config) for name, factory in PROVIDER_FACTORIES.items()}
