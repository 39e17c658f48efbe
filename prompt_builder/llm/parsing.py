"""Tolerant parsing of JSON and name lists out of LLM output."""
import json
import re
from typing import Any, List

_FENCE_START = re.compile(r"^```[a-zA-Z]*\n?")
_FENCE_END = re.compile(r"\n?```$")
_UNQUOTED_KEY = re.compile(r"(['\"])?([a-zA-Z0-9_]+)(['\"])?:")
_TRAILING_COMMA_OBJ = re.compile(r",\s*}")
_TRAILING_COMMA_ARR = re.compile(r",\s*]")
_BULLET = re.compile(r"^(?:[-*•]|\d+[.)])\s*")

_MISSING = object()

# Keys tried, in order, when an LLM returns objects instead of plain names.
NAME_KEYS = ("feature", "Feature", "name", "Name", "title", "Title")


def parse_llm_json(text: str, fallback: Any = _MISSING) -> Any:
    """
    Parse JSON from LLM output.

    Tries the raw text, the text with markdown fences removed, the slice
    between the first opening and last closing bracket, and finally that slice
    with unquoted keys and trailing commas repaired.
    """
    if not text:
        if fallback is not _MISSING:
            return fallback
        raise ValueError("Empty text provided to parse_llm_json")

    try:
        return json.loads(text)
    except ValueError:
        pass

    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip())).strip()
    try:
        return json.loads(cleaned)
    except ValueError:
        pass

    brace = cleaned.find("{")
    bracket = cleaned.find("[")
    start = end = -1
    if brace != -1 and (bracket == -1 or brace < bracket):
        start, end = brace, cleaned.rfind("}")
    elif bracket != -1:
        start, end = bracket, cleaned.rfind("]")

    if start != -1 and end > start:
        candidate = cleaned[start:end + 1]
        try:
            return json.loads(candidate)
        except ValueError:
            pass
        fixed = _UNQUOTED_KEY.sub(r'"\2":', candidate)
        fixed = _TRAILING_COMMA_ARR.sub("]", _TRAILING_COMMA_OBJ.sub("}", fixed))
        try:
            return json.loads(fixed)
        except ValueError:
            pass

    if fallback is not _MISSING:
        return fallback
    raise ValueError(f"Failed to parse JSON from text: {text[:100]}...")


def _as_name(item: Any) -> str:
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, dict):
        for key in NAME_KEYS:
            value = item.get(key)
            if isinstance(value, str):
                return value.strip()
    if item is None:
        return ""
    return str(item).strip()


def parse_name_list(text: str) -> List[str]:
    """
    Parse a list of item names.

    A JSON array is authoritative, even an empty one. Only text that does not
    parse as JSON falls back to one name per non-empty line.
    """
    parsed = parse_llm_json(text, fallback=None)
    if isinstance(parsed, list):
        names = [_as_name(item) for item in parsed]
        return [n for n in names if n]

    names = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("```"):
            continue
        line = _BULLET.sub("", line).strip()
        if line:
            names.append(line)
    return names
