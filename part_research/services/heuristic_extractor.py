import re
from typing import Any

# Label in the provider text -> result field
FIELD_ALIASES = {
    "name": "name",
    "component": "name",
    "part": "name",
    "category": "category",
    "type": "category",
}

_LINE = re.compile(
    r"""^\s*(?:[-*•]\s*)?\**["']?(?P<label>name|component|part|category|type)["']?\**\s*:\**\s*(?P<value>\S.*)$""",
    re.IGNORECASE,
)


def extract_fields(text: str | None) -> dict[str, str]:
    """Scrape `label: value` lines when no JSON could be recovered."""
    found: dict[str, str] = {}
    if not text:
        return found
    for line in text.splitlines():
        match = _LINE.match(line)
        if not match:
            continue
        field = FIELD_ALIASES[match.group("label").lower()]
        value = match.group("value").strip().rstrip(",").strip().strip("\"'*").strip()
        if value and field not in found:
            found[field] = value
    return found


def build_stub(text: str | None, description: str | None = None) -> dict[str, Any]:
    """Minimal raw record for the fallback path; the normalizer fills the rest."""
    stub: dict[str, Any] = dict(extract_fields(text))
    if description:
        stub["description"] = description.strip()
    return stub
