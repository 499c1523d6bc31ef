import json
from typing import Any

from part_research.config import Settings, settings as default_settings
from part_research.schemas.research import ImageInput, ProviderRequest, ResearchRequest

JSON_ONLY_HEADER = """You are an expert electronics researcher identifying electronic components.

RESPONSE FORMAT - CRITICAL:
Respond with ONLY a valid JSON object. No conversational text, explanations, or preambles.
Start your response with the opening curly brace { and end with the closing curly brace }.
No markdown code blocks, no "Here is the information:", no additional text whatsoever."""

WEB_SEARCH_INSTRUCTIONS = """Use your web search capabilities to find REAL, working URLs:
- Manufacturer websites for official specs, datasheets and product images
- Distributors (Digi-Key, Mouser, Arrow, Newark, SparkFun, Adafruit) for pricing and availability
- 3D model libraries (official STEP/IGES downloads, KiCad .wrl libraries, GrabCAD)
NEVER generate fake URLs or placeholders. If you cannot find a real URL, leave that field empty."""

RESEARCH_FIELDS = {
    "name": "Exact component name with part number",
    "description": "Detailed technical description",
    "category": "Primary category (microcontroller, sensor, resistor, etc.)",
    "subcategory": "Specific subcategory if applicable",
    "manufacturer": "Official manufacturer name",
    "part_number": "Official part number/model",
    "specifications": {
        "voltage": "Operating voltage range",
        "current": "Current consumption/rating",
        "package": "Physical package type",
        "pins": "Pin count",
    },
    "datasheet_url": "Datasheet URL from the manufacturer, or null",
    "image_urls": ["Product image URLs"],
    "model_3d_urls": ["3D model download URLs"],
    "model_formats": ["Available formats: STEP, WRL, STL"],
    "typical_quantity": 1,
    "estimated_value": 2.5,
    "current_price_usd": 2.95,
    "availability": "In stock/Limited/Discontinued",
    "tags": ["searchable", "tags"],
    "safety_warnings": ["Safety considerations"],
    "common_uses": ["Typical applications"],
    "compatible_parts": ["Similar or compatible components"],
    "purchase_urls": ["Where to buy"],
    "confidence": 0.9,
}

QUICK_FIELDS = {
    "name": "Component name with part number",
    "description": "One-sentence description",
    "category": "Primary category",
    "subcategory": "Specific subcategory",
    "specifications": {},
    "typical_quantity": 1,
    "estimated_value": 2.5,
    "tags": [],
    "confidence": 0.9,
}

TEXT_PROMPT = 'Research this electronic component: "{description}".'
IMAGE_PROMPT = "Identify the electronic component shown in this image."


def build_request(
    request: ResearchRequest,
    image: ImageInput | None = None,
    web_search: bool = False,
    config: Settings | None = None,
) -> ProviderRequest:
    """Build the provider-neutral payload for one research call.

    Image content blocks use the Anthropic message shape; providers that
    speak another wire format translate them.
    """
    cfg = config or default_settings
    quick = request.mode == "quick"
    fields = QUICK_FIELDS if quick else RESEARCH_FIELDS

    parts = [JSON_ONLY_HEADER]
    if web_search and not quick:
        parts.append(WEB_SEARCH_INSTRUCTIONS)
    parts.append("JSON structure required:\n" + json.dumps(fields, indent=2))
    parts.append("Remember: ONLY JSON, no other text.")
    system = "\n\n".join(parts)

    text = _user_text(request, image is not None)
    content: str | list[dict[str, Any]] = text
    if image is not None:
        content = [image_block(image), {"type": "text", "text": text}]

    return ProviderRequest(
        system=system,
        content=content,
        max_tokens=cfg.quick_max_tokens if quick else cfg.research_max_tokens,
        temperature=cfg.temperature,
    )


def image_block(image: ImageInput) -> dict[str, Any]:
    if image.url:
        return {"type": "image", "source": {"type": "url", "url": image.url}}
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": image.media_type, "data": image.data},
    }


def _user_text(request: ResearchRequest, has_image: bool) -> str:
    description = (request.description or "").strip()
    lines = []
    if has_image:
        lines.append(IMAGE_PROMPT)
        if description:
            lines.append(f"Additional context from the user: {description}")
    else:
        lines.append(TEXT_PROMPT.format(description=description))

    hints = [f"- {key}: {value}" for key, value in request.context.items() if value not in (None, "", [], {})]
    if hints:
        lines.append("Context hints:\n" + "\n".join(hints))

    lines.append("Respond with only the JSON object as specified, no additional text.")
    return "\n\n".join(lines)
