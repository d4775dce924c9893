"""Directive extraction from free-form assistant text.

The assistant is prompted to embed the request it wants the learner to try in
a fenced JSON block:

    ```json
    {"ready": true, "url": "https://...", "method": "POST", "payload": {...}}
    ```

Assistant output is untrusted, so extraction scans every fenced JSON segment
and skips anything that does not parse to a JSON object. The first object
whose "ready" field is truthy decides the result: it becomes the Directive,
or, when it does not validate, there is no directive at all. It never raises.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError

from quest_guide.models import Directive

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```[ \t]*json[ \t]*\r?\n(.*?)```", re.IGNORECASE | re.DOTALL)


def iter_json_segments(text: str) -> Iterator[str]:
    """Yield the raw body of each ```json fence, in order of appearance."""
    if not isinstance(text, str):
        return
    for match in _JSON_FENCE.finditer(text):
        yield match.group(1)


def _parse_segment(segment: str) -> dict[str, Any] | None:
    try:
        data = json.loads(segment)
    except (ValueError, RecursionError) as e:
        logger.warning("Skipping malformed JSON segment: %s", e)
        return None
    return data if isinstance(data, dict) else None


def extract_directive(text: str) -> Directive | None:
    """Return the first ready directive embedded in ``text``, or None."""
    for segment in iter_json_segments(text):
        data = _parse_segment(segment)
        if not data or not data.get("ready"):
            continue
        try:
            return Directive.model_validate({**data, "ready": True})
        except ValidationError as e:
            logger.warning("Ready segment is not a valid directive: %s", e.errors()[0]["msg"])
            return None
    return None


def strip_directive_blocks(text: str) -> str:
    """Return ``text`` with every ```json fence removed and blank runs collapsed."""
    if not isinstance(text, str):
        return ""
    stripped = _JSON_FENCE.sub("", text)
    return re.sub(r"\n{3,}", "\n\n", stripped).strip()
