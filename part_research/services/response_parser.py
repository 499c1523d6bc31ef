import json
import logging
import re
from typing import Any

from part_research.exceptions import MalformedResponse

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")
_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Python-style literals that models sometimes emit
_LITERALS = {"True": "true", "False": "false", "None": "null"}


def extract_json(text: str) -> dict[str, Any]:
    """Pull a JSON object out of free-form provider text.

    Handles prose preambles, markdown fences, single-quoted strings, bare
    keys, trailing commas and Python literals. Raises MalformedResponse when
    nothing parses to an object.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponse("Empty response from provider", raw_text=text or "")

    cleaned = strip_fences(text)
    isolated = isolate_object(cleaned)

    for candidate in (repair_json(isolated), isolated):
        data = _try_parse(candidate)
        if isinstance(data, dict):
            return data

    logger.warning("Could not parse provider response: %s", cleaned[:200])
    raise MalformedResponse(
        f"Invalid JSON from AI response: {cleaned[:200]}", raw_text=text
    )


def strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
        text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def isolate_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text


def repair_json(text: str) -> str:
    """Fix common syntax mistakes without touching the contents of strings."""
    out: list[str] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]

        if ch == '"':
            end, _ = _scan_string(text, i, '"')
            out.append(text[i:end])
            i = end
            continue

        if ch == "'":
            end, closed = _scan_string(text, i, "'")
            body = text[i + 1:end - 1] if closed else text[i + 1:end]
            out.append('"' + _requote(body) + '"')
            i = end
            continue

        if ch == ",":
            k = _skip_whitespace(text, i + 1)
            if k < n and text[k] in "}]":
                i += 1
                continue

        if ch == "_" or (ch.isascii() and ch.isalpha()):
            word = _IDENTIFIER.match(text, i).group(0)
            k = _skip_whitespace(text, i + len(word))
            if k < n and text[k] == ":" and _in_key_position(out):
                out.append(f'"{word}"')
            else:
                out.append(_LITERALS.get(word, word))
            i += len(word)
            continue

        out.append(ch)
        i += 1

    return "".join(out)


def _try_parse(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (ValueError, RecursionError):
        return None


def _scan_string(text: str, start: int, quote: str) -> tuple[int, bool]:
    """Return the index just past the closing quote, and whether one was found."""
    j = start + 1
    n = len(text)
    while j < n:
        if text[j] == "\\":
            j += 2
            continue
        if text[j] == quote:
            return j + 1, True
        j += 1
    return n, False


def _requote(body: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append("'" if nxt == "'" else ch + nxt)
            i += 2
            continue
        out.append('\\"' if ch == '"' else ch)
        i += 1
    return "".join(out)


def _skip_whitespace(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def _in_key_position(out: list[str]) -> bool:
    # A key follows `{` or `,` (ignoring whitespace)
    for chunk in reversed(out):
        stripped = chunk.rstrip()
        if stripped:
            return stripped[-1] in "{,"
    return False
