"""
JSON extraction for LLM-generated case records.

Gemini usually honours the JSON response MIME type, but long cases still come
back wrapped in code fences, cut off at the token limit, or with raw newlines
inside string values. extract_json tries progressively more invasive repairs
before giving up.
"""
import json
import logging
import re

from fastapi import HTTPException

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_MISSING_COMMA = re.compile(r'"\s*\n\s*"')


def _scan(text: str):
    """Yield (index, char, kind) where kind is "code", "quote", "string" or "escape"."""
    in_string = False
    i = 0
    while i < len(text):
        c = text[i]
        if in_string and c == "\\":
            yield i, c, "escape"
            if i + 1 < len(text):
                yield i + 1, text[i + 1], "escape"
            i += 2
            continue
        if c == '"':
            in_string = not in_string
            yield i, c, "quote"
        else:
            yield i, c, "string" if in_string else "code"
        i += 1


def _close_truncated(text: str) -> str:
    """Close a dangling string and any brackets left open by truncation."""
    text = re.sub(r",\s*$", "", text.rstrip())

    stack = []
    quote_open = False
    for _, c, kind in _scan(text):
        if kind == "quote":
            quote_open = not quote_open
        elif kind == "code":
            if c in "{[":
                stack.append(c)
            elif c == "}" and stack and stack[-1] == "{":
                stack.pop()
            elif c == "]" and stack and stack[-1] == "[":
                stack.pop()

    if quote_open:
        text += '"'
    for opener in reversed(stack):
        text += "]" if opener == "[" else "}"
    return text


def _flatten_string_newlines(text: str) -> str:
    """Replace literal newlines inside string values with spaces."""
    chars = list(text)
    for i, c, kind in _scan(text):
        if c == "\n" and kind == "string":
            chars[i] = " "
    return "".join(chars)


def _isolate_object(text: str) -> str:
    fenced = _CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1)

    start = text.find("{")
    if start == -1:
        logger.error(f"No JSON object found in model output: {text[:200]}...")
        raise HTTPException(status_code=502, detail="Model response contained no JSON")

    # Cut at the brace that closes the top-level object; no such brace means truncation
    depth = 0
    for i, c, kind in _scan(text[start:]):
        if kind != "code":
            continue
        if c in "{[":
            depth += 1
        elif c in "}]":
            depth -= 1
            if depth == 0:
                return text[start:start + i + 1]
    return text[start:]


def extract_json(text: str) -> dict:
    """Parse the first JSON object in an LLM response, repairing it if needed."""
    candidate = _flatten_string_newlines(_isolate_object(text or ""))

    attempts = (
        ("direct", lambda t: t),
        ("comma fix", lambda t: _TRAILING_COMMA.sub(r"\1", _MISSING_COMMA.sub('",\n"', t))),
        ("truncation repair", lambda t: _TRAILING_COMMA.sub(r"\1", _close_truncated(t))),
    )
    for name, repair in attempts:
        try:
            result = json.loads(repair(candidate))
        except json.JSONDecodeError as e:
            logger.warning(f"JSON parse failed ({name}): {e}")
            continue
        if not isinstance(result, dict):
            logger.warning(f"JSON parse ({name}) produced {type(result).__name__}, expected object")
            continue
        if name != "direct":
            logger.info(f"Model output repaired via {name}")
        return result

    logger.error(f"All JSON repair attempts failed. Raw text: {candidate[:500]}...")
    raise HTTPException(status_code=502, detail="Failed to parse model response as JSON")
