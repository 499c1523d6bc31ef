import logging
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlparse

from part_research.config import Settings, settings as default_settings
from part_research.exceptions import ValidationFailed
from part_research.schemas.research import Provenance, ResearchResult, UntrustedPayload

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Unknown Component"
DEFAULT_CATEGORY = "Unknown"
HIGH_VOLTAGE_WARNING = (
    "High voltage hazard: disconnect power and discharge stored energy before handling"
)

# Typical stock count per category, matched by substring against the category.
# Entries that map to 1 come last so they never shadow a more specific match.
TYPICAL_QUANTITIES: dict[str, int] = {
    "resistor": 10,
    "capacitor": 5,
    "led": 10,
    "diode": 5,
    "transistor": 3,
    "connector": 2,
    "switch": 2,
    "microcontroller": 1,
    "sensor": 1,
    "ic": 1,
}

_HIGH_VOLTAGE_KEYWORDS = ("power", "voltage", "mains")

LIST_FIELDS = (
    "model_formats",
    "tags",
    "safety_warnings",
    "common_uses",
    "compatible_parts",
)
URL_LIST_FIELDS = ("image_urls", "model_3d_urls", "purchase_urls")
_OPTIONAL_TEXT_FIELDS = ("subcategory", "manufacturer", "part_number", "availability")


def validate_required(payload: UntrustedPayload) -> None:
    missing = [key for key in ("name", "category") if not _text(payload.data.get(key))]
    if missing:
        raise ValidationFailed(missing)


def normalize_result(
    raw: Mapping[str, Any] | ResearchResult,
    *,
    provider: str | None = None,
    fallback: bool = False,
    heuristic: bool = False,
    providers_tried: Iterable[str] = (),
    config: Settings | None = None,
) -> ResearchResult:
    """Map an untyped provider object onto a canonical ResearchResult.

    Provenance already present on `raw` is kept unless a provider or a
    fallback/heuristic flag is given, so normalizing a canonical result
    returns an equal result.
    """
    cfg = config or default_settings
    if isinstance(raw, ResearchResult):
        raw = raw.model_dump()

    provenance = _provenance(raw, provider, fallback, heuristic, providers_tried)
    degraded = provenance.fallback or provenance.heuristic

    category = _text(raw.get("category")) or DEFAULT_CATEGORY
    confidence = _confidence(raw.get("confidence"), cfg.default_confidence)
    if degraded:
        confidence = min(confidence, cfg.fallback_confidence_ceiling)

    fields: dict[str, Any] = {
        "name": _text(raw.get("name")) or DEFAULT_NAME,
        "description": _text(raw.get("description")) or "",
        "category": category,
        "specifications": _specifications(raw.get("specifications")),
        "datasheet_url": _first_url(raw.get("datasheet_url"), cfg.url_denylist),
        "typical_quantity": _typical_quantity(raw.get("typical_quantity"), category),
        "estimated_value": _amount(raw.get("estimated_value")),
        "current_price": _amount(_first_present(raw, "current_price", "current_price_usd")),
        "confidence": confidence,
        "provenance": provenance,
    }
    for key in _OPTIONAL_TEXT_FIELDS:
        fields[key] = _text(raw.get(key))
    for key in LIST_FIELDS:
        fields[key] = _string_list(raw.get(key))
    for key in URL_LIST_FIELDS:
        fields[key] = filter_urls(raw.get(key), cfg.url_denylist)

    if _mentions_high_voltage(category) and HIGH_VOLTAGE_WARNING not in fields["safety_warnings"]:
        fields["safety_warnings"].append(HIGH_VOLTAGE_WARNING)

    return ResearchResult(**fields)


def is_allowed_url(url: Any, denylist: Iterable[str]) -> bool:
    if not isinstance(url, str):
        return False
    url = url.strip()
    if not url.startswith("http"):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        # malformed bracketed host, e.g. "http://[fe80::1/x.png"
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    lowered = url.lower()
    return not any(bad in lowered for bad in denylist)


def filter_urls(value: Any, denylist: Iterable[str]) -> list[str]:
    denylist = list(denylist)
    urls = []
    for url in _as_list(value):
        if is_allowed_url(url, denylist):
            url = url.strip()
            if url not in urls:
                urls.append(url)
        elif url:
            logger.debug("Dropped URL %r", url)
    return urls


def typical_quantity_for(category: str) -> int | None:
    lowered = category.lower()
    for keyword, quantity in TYPICAL_QUANTITIES.items():
        if keyword in lowered:
            return quantity
    return None


def _provenance(
    raw: Mapping[str, Any],
    provider: str | None,
    fallback: bool,
    heuristic: bool,
    providers_tried: Iterable[str],
) -> Provenance:
    existing = raw.get("provenance")
    if provider is None and not fallback and not heuristic and existing:
        if isinstance(existing, Provenance):
            return existing
        if isinstance(existing, Mapping):
            return Provenance(**existing)
    return Provenance(
        provider=provider,
        fallback=fallback or heuristic,
        heuristic=heuristic,
        providers_tried=list(providers_tried),
    )


def _typical_quantity(value: Any, category: str) -> int:
    quantity = _integer(value)
    if quantity is None or quantity <= 0:
        quantity = 1
    if quantity == 1:
        quantity = typical_quantity_for(category) or quantity
    return quantity


def _mentions_high_voltage(category: str) -> bool:
    lowered = category.lower()
    return any(word in lowered for word in _HIGH_VOLTAGE_KEYWORDS)


def _confidence(value: Any, default: float) -> float:
    number = _number(value)
    if number is None:
        number = default
    return max(0.0, min(1.0, number))


def _amount(value: Any) -> float | None:
    number = _number(value)
    if number is None or number < 0:
        return None
    return number


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip().lstrip("$").replace(",", "")
    try:
        number = float(value)
    except (ValueError, TypeError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _integer(value: Any) -> int | None:
    number = _number(value)
    return int(number) if number is not None else None


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _string_list(value: Any) -> list[str]:
    items = []
    for item in _as_list(value):
        text = _text(item)
        if text and text not in items:
            items.append(text)
    return items


def _specifications(value: Any) -> dict[str, Any]:
    if not isinstance(value, Mapping):
        return {}
    return {str(k): v for k, v in value.items() if v is not None}


def _first_url(value: Any, denylist: Iterable[str]) -> str | None:
    urls = filter_urls(value, denylist)
    return urls[0] if urls else None


def _first_present(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None
