"""Parsing helpers for raw LLM completions."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in ``text``, or None.

    Braces inside JSON string literals (including escaped quotes) do not
    count towards the balance, so prose such as ``Here is {your} plan:``
    before the payload only matters when it opens an unbalanced block.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            ch = text[idx]
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
                    return text[start : idx + 1]
        # Unbalanced from this brace onward; try the next opening brace.
        start = text.find("{", start + 1)
    return None


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Extract and decode the first JSON object in ``text``.

    Walks candidate blocks in order and returns the first that decodes to a
    dict. Returns None when nothing usable is found.
    """
    remaining = text or ""
    while True:
        block = extract_json_object(remaining)
        if block is None:
            return None
        try:
            parsed = json.loads(block)
        except json.JSONDecodeError:
            logger.debug("Discarding undecodable JSON candidate (%d chars)", len(block))
            offset = remaining.find(block) + 1
            remaining = remaining[offset:]
            continue
        if isinstance(parsed, dict):
            return parsed
        return None
