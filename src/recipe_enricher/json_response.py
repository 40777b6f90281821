"""Pull the classification object out of chat-completion text.

The model is asked for a bare JSON object.  What comes back is usually that,
sometimes inside a markdown fence or a sentence of prose, now and then with a
trailing comma, or cut short by ``max_tokens``.  Anything worse is left to the
rule-based fallback.
"""
from __future__ import annotations

import json
import re
from typing import Any, Optional

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*(?:```|$)", re.DOTALL | re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
# A separator or a key left hanging at the cut.
_DANGLING_RE = re.compile(r'(?:,?\s*"[^"\\]*"\s*:|,)\s*$')


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def _scan_object(text: str) -> Optional[tuple[str, list[str], bool]]:
    """Walk from the first ``{`` to its partner.

    Returns the object text, the closers still owed when the text ran out
    (outermost first) and whether the cut fell inside a string.
    """
    start = text.find("{")
    if start < 0:
        return None
    owed: list[str] = []
    in_string = escaped = False
    for pos in range(start, len(text)):
        ch = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            owed.append("}" if ch == "{" else "]")
        elif owed and ch == owed[-1]:
            owed.pop()
            if not owed:
                return text[start : pos + 1], [], False
    return text[start:], owed, in_string


def _close_truncated(body: str, owed: list[str], in_string: bool) -> str:
    if in_string:
        body = body[: body.rfind('"')]
    body = _DANGLING_RE.sub("", body.rstrip(), count=1).rstrip()
    return body + "".join(reversed(owed))


def _load_dict(text: str) -> Optional[dict[str, Any]]:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_json_object(result_text: Any) -> Optional[dict[str, Any]]:
    """Return the first JSON object in *result_text*, or ``None``."""
    if not isinstance(result_text, str) or not result_text.strip():
        return None
    scanned = _scan_object(strip_code_fences(result_text))
    if scanned is None:
        return None
    body, owed, in_string = scanned
    if owed:
        body = _close_truncated(body, owed, in_string)
    return _load_dict(body) or _load_dict(_TRAILING_COMMA_RE.sub(r"\1", body))
