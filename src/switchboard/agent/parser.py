"""Incremental newline-delimited JSON parser for agent CLI stdout."""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from typing import Any

#: Maximum length of a single buffered line (1 MB).
MAX_LINE_CHARS = 1_048_576

#: Characters of a bad line kept for error reporting.
_PREVIEW_CHARS = 200


@dataclass(frozen=True)
class MalformedLine:
    """A complete line that could not be parsed as a JSON object."""

    line: str
    reason: str


ParsedItem = dict[str, Any] | MalformedLine


class JsonLineParser:
    """Turns arbitrary stdout chunks into parsed JSON records.

    Partial lines are buffered until a newline completes them, so records
    split across read events come out whole and in order.  A bad line never
    stops parsing of the lines after it.
    """

    def __init__(self, max_line_chars: int = MAX_LINE_CHARS) -> None:
        self._max_line_chars = max_line_chars
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._overflowed = False

    @property
    def pending(self) -> str:
        """Buffered text of the current unterminated line."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[ParsedItem]:
        """Consume *chunk* and return every record it completed."""
        if isinstance(chunk, bytes):
            text = self._decoder.decode(chunk)
        else:
            text = chunk

        items: list[ParsedItem] = []
        *complete, rest = (self._buffer + text).split("\n")
        self._buffer = rest

        for line in complete:
            if self._overflowed:
                # Tail of a line we already gave up on.
                self._overflowed = False
                continue
            item = _parse_line(line)
            if item is not None:
                items.append(item)

        if len(self._buffer) > self._max_line_chars:
            items.append(
                MalformedLine(
                    line=self._buffer[:_PREVIEW_CHARS],
                    reason=f"line exceeds {self._max_line_chars} characters",
                )
            )
            self._buffer = ""
            self._overflowed = True

        return items

    def flush(self) -> list[ParsedItem]:
        """Parse whatever is left in the buffer at end of stream."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if self._overflowed:
            self._overflowed = False
            return []
        item = _parse_line(remainder)
        return [item] if item is not None else []


def _parse_line(line: str) -> ParsedItem | None:
    stripped = line.strip()
    if not stripped:
        return None
    try:
        value = json.loads(stripped)
    except json.JSONDecodeError as exc:
        return MalformedLine(line=stripped[:_PREVIEW_CHARS], reason=str(exc))
    if not isinstance(value, dict):
        return MalformedLine(
            line=stripped[:_PREVIEW_CHARS],
            reason=f"expected a JSON object, got {type(value).__name__}",
        )
    return value
