"""Incremental extraction of top-level JSON objects from a text stream.

The analyzer streams a newline- or concatenation-delimited sequence of
JSON objects, split at arbitrary points. ``StreamTokenizer`` buffers the
text and hands back each object as soon as its closing brace arrives,
keeping any unterminated suffix for the next chunk.
"""

from __future__ import annotations

import json
import logging
from typing import Any, TypeAlias

logger = logging.getLogger(__name__)

JsonObject: TypeAlias = dict[str, Any]


def _parse_candidate(text: str) -> JsonObject | None:
    """Parse a brace-balanced span; None if it is not a tagged object."""
    try:
        value = json.loads(text)
    except ValueError:
        logger.debug(
            "event=tokenizer_parse_failed chars=%d", len(text)
        )
        return None
    if not isinstance(value, dict) or not value.get("type"):
        return None
    return value


def _find_object_end(
    buffer: str, pos: int, quote_aware: bool
) -> tuple[int, int]:
    """Scan *buffer* from *pos* for the next complete top-level object.

    Returns ``(start, end)`` where ``end`` is the index of the closing
    brace. ``end == -1`` means the buffer ran out; ``start`` is then
    the index of the unterminated object, or -1 if none is open.

    JSON strings never contain a raw newline, so one met inside a
    string means the open object is malformed: it is abandoned and the
    scan resumes after the newline.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i in range(pos, len(buffer)):
        ch = buffer[i]
        if in_string:
            if ch == "\n":
                logger.debug(
                    "event=tokenizer_resync discarded_chars=%d", i - start
                )
                depth = 0
                start = -1
                in_string = False
                escaped = False
            elif escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}":
            # Stray closer outside any object: noise, not structure
            if depth == 0:
                continue
            depth -= 1
            if depth == 0:
                return start, i
        elif ch == '"' and quote_aware and depth > 0:
            in_string = True
    return start, -1


def extract_json_objects(
    buffer: str, *, quote_aware: bool = True
) -> tuple[list[JsonObject], str]:
    """Split *buffer* into complete tagged objects and a remainder.

    Objects come back in the order their closing brace appears.
    Balanced spans that are not valid JSON, or that lack a ``type``,
    are dropped. Text between objects is discarded; an object still
    open at the end of the buffer is returned as the remainder.

    With ``quote_aware=False`` braces inside string values count
    toward depth, which is plain brace counting. Inputs whose string
    values contain no braces give the same result either way.
    """
    objects: list[JsonObject] = []
    pos = 0
    while True:
        start, end = _find_object_end(buffer, pos, quote_aware)
        if end == -1:
            remainder = buffer[start:] if start != -1 else ""
            return objects, remainder
        obj = _parse_candidate(buffer[start : end + 1])
        if obj is not None:
            objects.append(obj)
        pos = end + 1


class StreamTokenizer:
    """Resumable tokenizer fed one chunk at a time.

    Each batch of a run gets its own instance; buffers never carry
    across batches.
    """

    def __init__(self, *, quote_aware: bool = True) -> None:
        self._buffer = ""
        self._quote_aware = quote_aware
        self.emitted = 0

    @property
    def buffer(self) -> str:
        """Text held back waiting for more input."""
        return self._buffer

    def feed(self, chunk: str) -> list[JsonObject]:
        """Append *chunk* and return every object it completed."""
        if not chunk:
            return []
        objects, self._buffer = extract_json_objects(
            self._buffer + chunk, quote_aware=self._quote_aware
        )
        self.emitted += len(objects)
        return objects

    def reset(self) -> None:
        self._buffer = ""
        self.emitted = 0
