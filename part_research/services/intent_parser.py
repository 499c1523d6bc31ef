import logging

from pydantic import ValidationError

from part_research.exceptions import ResearchError
from part_research.schemas.research import ParsedIntent
from part_research.services.providers import ProviderDescriptor
from part_research.services.response_parser import extract_json
from part_research.services.retry import retry_with_backoff

logger = logging.getLogger(__name__)

INTENT_PROMPT = """Parse natural language input about electronic parts and determine the user's intent.

Respond with ONLY a valid JSON object. No conversational text. Start with { and end with }.

JSON format:
{
  "action": "add_part" | "search_part" | "identify_part",
  "part_description": "Clean description of the part",
  "quantity": number (if mentioned),
  "location": "storage location (if mentioned)",
  "additional_context": "any extra details"
}

Examples:
- "Add 5 Arduino Nanos to drawer A" -> {"action": "add_part", "part_description": "Arduino Nano", "quantity": 5, "location": "drawer A"}
- "I have this mystery IC with 8 pins" -> {"action": "identify_part", "part_description": "mystery IC with 8 pins"}
- "Find all my resistors" -> {"action": "search_part", "part_description": "resistors"}"""


class IntentParser:
    def __init__(self, provider: ProviderDescriptor, max_tokens: int = 500):
        self.provider = provider
        self.max_tokens = max_tokens

    async def parse(self, text: str) -> ParsedIntent:
        """Classify a free-text request; anything that goes wrong means "add this part"."""
        fallback = ParsedIntent(action="add_part", part_description=text)
        if not self.provider.is_configured():
            logger.info("Intent parsing skipped: %s not configured", self.provider.name)
            return fallback

        async def call() -> str:
            return await self.provider.client.call(
                INTENT_PROMPT, f'"{text}"', self.max_tokens, 0.0
            )

        try:
            raw = await retry_with_backoff(
                call, max_retries=self.provider.max_retries, base_delay=self.provider.base_delay
            )
            data = extract_json(raw)
            if not data.get("part_description"):
                data["part_description"] = text
            return ParsedIntent(**data)
        except (ResearchError, ValidationError, TypeError) as exc:
            logger.warning("Natural language parsing failed: %s", exc)
            return fallback
