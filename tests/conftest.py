"""Shared fixtures: isolated credentials and scripted providers."""

from collections.abc import Callable

import pytest

from part_research import config as config_module
from part_research.config import Settings
from part_research.exceptions import ProviderCallFailed
from part_research.services.providers import ProviderDescriptor


@pytest.fixture(autouse=True)
def isolate_credentials(monkeypatch):
    """Tests only see credentials they pass in explicitly."""
    monkeypatch.setattr(config_module, "_env_vars", {})
    for var in ("ANTHROPIC_API_KEY", "PERPLEXITY_API_KEY"):
        monkeypatch.delenv(var, raising=False)
        monkeypatch.delenv(f"PART_RESEARCH_{var}", raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(anthropic_api_key="test-anthropic", perplexity_api_key="test-perplexity")


class ScriptedProvider:
    """Provider whose replies come from a list; exceptions in the list are raised."""

    def __init__(self, name: str, replies: list, configured: bool = True):
        self.name = name
        self.replies = list(replies)
        self.configured = configured
        self.calls: list[dict] = []

    def is_configured(self) -> bool:
        return self.configured

    async def call(self, system, user_content, max_tokens, temperature) -> str:
        self.calls.append({
            "system": system,
            "user_content": user_content,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        reply = self.replies.pop(0) if self.replies else ProviderCallFailed(self.name, "no scripted reply")
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def make_provider() -> Callable[..., ProviderDescriptor]:
    def _make(
        name: str,
        replies: list,
        configured: bool = True,
        supports_images: bool = False,
        web_search: bool = False,
        max_retries: int = 2,
    ) -> ProviderDescriptor:
        return ProviderDescriptor(
            client=ScriptedProvider(name, replies, configured),
            max_retries=max_retries,
            base_delay=0.0,
            supports_images=supports_images,
            web_search=web_search,
        )

    return _make


@pytest.fixture
def no_sleep(monkeypatch):
    """Skip real backoff delays."""
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("part_research.services.retry.asyncio.sleep", fake_sleep)
    return delays
