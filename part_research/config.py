import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic_settings import BaseSettings

_ENV_FILE = Path.home() / "env" / ".env.dev"
_env_vars = dotenv_values(str(_ENV_FILE)) if _ENV_FILE.exists() else {}


class Settings(BaseSettings):
    app_name: str = "Part Research"
    debug: bool = False

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    intent_model: str = "claude-haiku-4-5"
    perplexity_api_key: str = ""
    perplexity_model: str = "sonar-pro"
    perplexity_base_url: str = "https://api.perplexity.ai"

    # Provider priority by modality; names index the provider table
    text_providers: list[str] = ["perplexity", "anthropic"]
    image_providers: list[str] = ["anthropic"]

    perplexity_max_retries: int = 2
    perplexity_base_delay: float = 2.0
    anthropic_max_retries: int = 2
    anthropic_base_delay: float = 1.5
    provider_timeout: float = 60.0

    research_max_tokens: int = 2000
    quick_max_tokens: int = 800
    temperature: float = 0.1

    default_confidence: float = 0.5
    fallback_confidence_ceiling: float = 0.3
    url_denylist: list[str] = [
        "placeholder",
        "example.com",
        "example.org",
        "example.net",
        "via.placeholder",
    ]

    max_image_dimension: int = 1568

    model_config = {
        "env_prefix": "PART_RESEARCH_",
        "env_file": ".env",
        "extra": "ignore",
    }

    def model_post_init(self, __context):
        if not self.anthropic_api_key:
            self.anthropic_api_key = _env_vars.get("ANTHROPIC_API_KEY") or os.environ.get("ANTHROPIC_API_KEY", "")
        if not self.perplexity_api_key:
            self.perplexity_api_key = _env_vars.get("PERPLEXITY_API_KEY") or os.environ.get("PERPLEXITY_API_KEY", "")


settings = Settings()
