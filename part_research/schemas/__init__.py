from part_research.schemas.research import (
    FailureWithFallback,
    ImageInput,
    ParsedIntent,
    Provenance,
    ProviderAttemptResult,
    ProviderRequest,
    ResearchRequest,
    ResearchResult,
    UntrustedPayload,
)

__all__ = [
    "FailureWithFallback",
    "ImageInput",
    "ParsedIntent",
    "Provenance",
    "ProviderAttemptResult",
    "ProviderRequest",
    "ResearchRequest",
    "ResearchResult",
    "UntrustedPayload",
]
