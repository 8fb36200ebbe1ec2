"""Streaming restorer — buffers chunks and restores tokens as they complete.

For SSE/streaming responses where tokens arrive as fragments:
    [CLO  →  [CLOAK_EM  →  [CLOAK_EMAIL_  →  [CLOAK_EMAIL_1]

The restorer holds back anything that could still be the start of a token
and flushes restored text as soon as a token completes or clearly isn't one.

Usage:
    restorer = StreamingRestorer(entity_map)
    for chunk in sse_stream:
        ready_text = restorer.feed(chunk)
        if ready_text:
            yield ready_text
    # Flush any remaining buffer
    yield restorer.flush()
"""

from __future__ import annotations
from collections.abc import Mapping

from .types import TOKEN_PREFIX, TOKEN_RE
from .vault import check_entity_map

_OPEN = "[" + TOKEN_PREFIX


class StreamingRestorer:
    """Buffers streaming chunks and restores complete tokens."""

    __slots__ = ("_entity_map", "_buffer", "_max_token_len")

    def __init__(self, entity_map: Mapping[str, str], *, max_token_len: int = 48) -> None:
        self._entity_map = check_entity_map(entity_map)
        self._buffer = ""
        self._max_token_len = max_token_len  # safety limit

    def feed(self, chunk: str) -> str:
        """Feed a chunk, return any text ready to emit."""
        self._buffer += chunk
        return self._drain()

    def flush(self) -> str:
        """Flush remaining buffer (call at end of stream)."""
        out = self._drain()
        out += self._buffer
        self._buffer = ""
        return out

    def _drain(self) -> str:
        """Emit everything that cannot be part of an unfinished token."""
        out_parts: list[str] = []

        while self._buffer:
            idx = self._buffer.find("[")

            if idx == -1:
                out_parts.append(self._buffer)
                self._buffer = ""
                break

            if idx > 0:
                out_parts.append(self._buffer[:idx])
                self._buffer = self._buffer[idx:]

            # Buffer now starts with "["
            m = TOKEN_RE.match(self._buffer)
            if m:
                token = m.group()
                out_parts.append(self._entity_map.get(token, token))
                self._buffer = self._buffer[m.end():]
                continue

            head = self._buffer[:len(_OPEN)]
            if not _OPEN.startswith(head):
                # Plain bracket, not a token prefix
                out_parts.append("[")
                self._buffer = self._buffer[1:]
                continue

            close_idx = self._buffer.find("]")
            if close_idx != -1 or len(self._buffer) > self._max_token_len:
                # Closed or overlong but not a token: emit the "[" and rescan
                out_parts.append("[")
                self._buffer = self._buffer[1:]
                continue

            # Still accumulating a potential token
            break

        return "".join(out_parts)
