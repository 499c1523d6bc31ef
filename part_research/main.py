import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from part_research.config import Settings, settings
from part_research.routers import research
from part_research.services.intent_parser import IntentParser
from part_research.services.providers import AnthropicProvider, ProviderDescriptor
from part_research.services.research_engine import ResearchEngine

logger = logging.getLogger(__name__)


def build_intent_parser(config: Settings) -> IntentParser:
    return IntentParser(
        ProviderDescriptor(
            client=AnthropicProvider(
                api_key=config.anthropic_api_key,
                model=config.intent_model,
                timeout=config.provider_timeout,
            ),
            max_retries=config.anthropic_max_retries,
            base_delay=1.0,
        )
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)

    app.state.engine = ResearchEngine(settings)
    app.state.intent_parser = build_intent_parser(settings)

    configured = [name for name, p in app.state.engine.providers.items() if p.is_configured()]
    if not configured:
        logger.warning("No AI providers configured; every request will return a fallback stub")
    else:
        logger.info("Configured providers: %s", ", ".join(configured))

    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)


@app.get("/health")
async def health():
    engine: ResearchEngine = app.state.engine
    return {
        "status": "ok",
        "providers": {name: p.is_configured() for name, p in engine.providers.items()},
    }


app.include_router(research.router)
