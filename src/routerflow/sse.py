"""Server-Sent Events framing and decoding for streaming responses."""

from __future__ import annotations

import codecs
import logging

from pydantic import ValidationError

from routerflow.events import DeltaEvent, SentinelEvent, SkipEvent, StreamEvent
from routerflow.schema import StreamPayload

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"


class LineFramer:
    """Splits raw transport bytes into ``data:`` payloads.

    Network reads do not line up with event boundaries, so any trailing
    partial line is kept until a later fragment completes it.  Text is
    decoded incrementally, which also keeps multi-byte characters that
    straddle two reads intact.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def feed(self, fragment: bytes) -> list[str]:
        """Add a fragment and return the payloads of all completed lines."""
        try:
            text = self._decoder.decode(fragment)
        except UnicodeDecodeError as e:
            logger.error(f"Failed to parse chunk as UTF-8: {e}")
            self._decoder.reset()
            return []

        *lines, self._buffer = (self._buffer + text).split("\n")

        payloads = []
        for line in lines:
            line = line.strip()
            if line.startswith(DATA_PREFIX):
                payloads.append(line[len(DATA_PREFIX):])
        return payloads


def decode_event(payload: str) -> StreamEvent:
    """Interpret a stripped ``data:`` payload."""
    if payload == DONE_MARKER:
        return SentinelEvent()
    try:
        return DeltaEvent(payload=StreamPayload.model_validate_json(payload))
    except ValidationError as e:
        logger.debug(f"Failed to parse stream chunk: {e} - Data: {payload}")
        return SkipEvent(reason=str(e))
