from dataclasses import dataclass

from part_research.schemas.research import (
    FailureWithFallback,
    ParsedIntent,
    ResearchRequest,
    ResearchResult,
)
from part_research.services.intent_parser import IntentParser
from part_research.services.research_engine import ResearchEngine

# Fields returned in quick mode
QUICK_FIELDS = {
    "name",
    "category",
    "subcategory",
    "description",
    "typical_quantity",
    "estimated_value",
    "current_price",
    "confidence",
    "tags",
    "specifications",
    "provenance",
}


@dataclass
class ResearchViewModel:
    mode: str
    research: ResearchResult | None = None
    parsed: ParsedIntent | None = None
    error: str | None = None
    fallback: ResearchResult | None = None

    @classmethod
    async def research_part(cls, engine: ResearchEngine, request: ResearchRequest) -> "ResearchViewModel":
        outcome = await engine.research(request)
        if isinstance(outcome, FailureWithFallback):
            return cls(mode=request.mode, error=outcome.error, fallback=outcome.fallback)
        return cls(mode=request.mode, research=outcome)

    @classmethod
    async def parse_intent(cls, parser: IntentParser, text: str) -> "ResearchViewModel":
        return cls(mode="parse", parsed=await parser.parse(text))

    @property
    def success(self) -> bool:
        return self.error is None

    def to_response(self) -> dict:
        if self.parsed is not None:
            return {"success": True, "parsed": self.parsed.model_dump(mode="json")}
        if not self.success:
            return {
                "success": False,
                "error": self.error,
                "fallback": self._dump(self.fallback),
            }
        return {"success": True, "research": self._dump(self.research)}

    def _dump(self, result: ResearchResult) -> dict:
        include = QUICK_FIELDS if self.mode == "quick" else None
        return result.model_dump(mode="json", include=include)
