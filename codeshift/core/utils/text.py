"""Helpers for cleaning up raw LLM output."""

import json
import re
from typing import Any, Dict, Optional

_FENCE_RE = re.compile(r"^```[\w+-]*\s*$")


def strip_code_fences(raw: str) -> str:
    """Remove one outer markdown code fence, if the text is wrapped in one."""
    text = (raw or "").strip()
    if not text.startswith("```"):
        return text

    lines = text.split("\n")
    if _FENCE_RE.match(lines[0].strip()):
        lines = lines[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


def extract_balanced_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` substring, ignoring braces in strings."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Parse the first JSON object found in LLM output, or None."""
    text = strip_code_fences(raw)

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    candidate = extract_balanced_object(text)
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
