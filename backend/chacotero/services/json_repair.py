"""
Best-effort sanitizer for JSON returned by language models.

The model is told to answer with JSON only, but replies often carry prose
around the object, comments, trailing commas or loosely quoted values. This
module isolates those heuristics from schema validation:

1. extract_json_block  - cut the first balanced {...} out of the reply
2. clean_json_text     - drop comments and trailing commas
3. repair_json_text    - mechanical fixes (quotes, bare keys and values)

parse_llm_json runs the ladder and raises ParseError when nothing parses.
"""
import json
import logging
import re
from typing import Any

from chacotero.errors import ParseError

logger = logging.getLogger(__name__)

_GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_SINGLE_QUOTED = re.compile(r"'([^'\"\\\n]*)'")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_BARE_VALUE = re.compile(r"(:\s*)([A-Za-z_][^,\]}\n\"]*?)(\s*[,}\]\n])")
_JSON_LITERALS = {"true", "false", "null"}


def extract_json_block(text: str) -> str:
    """
    Return the first balanced JSON object embedded in `text`.

    Braces inside string literals are ignored while balancing. If the object
    never closes, fall back to a greedy match from the first "{" to the last
    "}". Text without any "{" is returned stripped and unchanged.
    """
    text = (text or "").strip()
    start = text.find("{")
    if start == -1:
        return text

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    match = _GREEDY_OBJECT.search(text)
    if match:
        return match.group(0)
    return text[start:]


def _strip_comments(text: str) -> str:
    """Remove // and /* */ comments that are not inside string literals"""
    result = []
    i = 0
    in_string = False
    length = len(text)
    while i < length:
        char = text[i]
        if in_string:
            result.append(char)
            if char == "\\" and i + 1 < length:
                result.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue
        if char == '"':
            in_string = True
            result.append(char)
            i += 1
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = length if close == -1 else close + 2
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = length if newline == -1 else newline
        else:
            result.append(char)
            i += 1
    return "".join(result)


def clean_json_text(text: str) -> str:
    """Strip comments and trailing commas before } or ]"""
    return _TRAILING_COMMA.sub(r"\1", _strip_comments(text))


def _quote_bare_value(match: "re.Match[str]") -> str:
    value = match.group(2).strip()
    if value in _JSON_LITERALS:
        return match.group(0)
    return f'{match.group(1)}"{value}"{match.group(3)}'


def repair_json_text(text: str) -> str:
    """
    Apply mechanical repairs to almost-JSON text.

    Removes trailing commas, converts single-quoted strings to double quotes,
    quotes bare object keys and quotes bare scalar values that are not JSON
    literals or numbers.
    """
    repaired = _TRAILING_COMMA.sub(r"\1", text)
    repaired = _SINGLE_QUOTED.sub(r'"\1"', repaired)
    repaired = _BARE_KEY.sub(r'\1"\2":', repaired)
    repaired = _BARE_VALUE.sub(_quote_bare_value, repaired)
    return repaired


def parse_llm_json(text: str) -> Any:
    """
    Parse a model reply into a JSON value using the repair ladder.

    Raises:
        ParseError: neither the cleaned nor the repaired text is valid JSON
    """
    cleaned = clean_json_text(extract_json_block(text))
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"Model reply is not valid JSON ({e}), attempting repair")

    try:
        result = json.loads(repair_json_text(cleaned))
        logger.info("Model reply parsed after JSON repair")
        return result
    except json.JSONDecodeError as e:
        logger.warning(f"JSON repair failed: {e}. Reply starts with: {cleaned[:200]!r}")
        raise ParseError(f"Could not parse model reply as JSON: {e}") from e
