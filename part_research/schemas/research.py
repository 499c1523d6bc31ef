from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

ResearchMode = Literal["quick", "research"]


class ResearchRequest(BaseModel):
    description: str | None = None
    image_ref: str | None = None  # local path, http(s) URL, or data: URL
    mode: ResearchMode = "research"
    context: dict[str, Any] = {}

    @model_validator(mode="after")
    def _require_input(self):
        if not (self.description or "").strip() and not (self.image_ref or "").strip():
            raise ValueError("Description is required")
        return self

    @property
    def has_image(self) -> bool:
        return bool((self.image_ref or "").strip())


class ImageInput(BaseModel):
    media_type: str = "image/jpeg"
    data: str | None = None  # base64
    url: str | None = None


class ProviderRequest(BaseModel):
    system: str
    content: str | list[dict[str, Any]]
    max_tokens: int
    temperature: float = 0.1


class ProviderAttemptResult(BaseModel):
    provider: str
    raw_text: str | None = None
    error: str | None = None
    latency: float = 0.0
    success: bool = False


@dataclass(frozen=True)
class UntrustedPayload:
    """Parsed provider output that has not been through the validator yet."""

    data: dict[str, Any]
    source: str | None = None
    raw_text: str = field(default="", repr=False)


class Provenance(BaseModel):
    provider: str | None = None
    fallback: bool = False
    heuristic: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    providers_tried: list[str] = []


class ResearchResult(BaseModel):
    name: str
    description: str = ""
    category: str
    subcategory: str | None = None
    manufacturer: str | None = None
    part_number: str | None = None
    specifications: dict[str, Any] = {}
    datasheet_url: str | None = None
    image_urls: list[str] = []
    model_3d_urls: list[str] = []
    model_formats: list[str] = []
    purchase_urls: list[str] = []
    availability: str | None = None
    typical_quantity: int = Field(default=1, ge=0)
    estimated_value: float | None = Field(default=None, ge=0.0)
    current_price: float | None = Field(default=None, ge=0.0)
    tags: list[str] = []
    safety_warnings: list[str] = []
    common_uses: list[str] = []
    compatible_parts: list[str] = []
    confidence: float = Field(ge=0.0, le=1.0)
    provenance: Provenance = Field(default_factory=Provenance)


class FailureWithFallback(BaseModel):
    """Every provider failed; `fallback` is a low-confidence stub the caller can still use."""

    error: str
    fallback: ResearchResult


class ParsedIntent(BaseModel):
    action: Literal["add_part", "search_part", "identify_part"]
    part_description: str
    quantity: int | None = Field(default=None, ge=0)
    location: str | None = None
    additional_context: str | None = None
