"""Stream controller: turns transport bytes into completion chunks.

The controller owns every piece of per-request state (line buffer,
tool-call fragments, usage) and drives them from a single task::

    transport bytes -> LineFramer -> decode_event
                    -> ToolCallAccumulator / UsageTracker
                    -> ChunkEmitter -> consumer

Whatever ends the stream, whether the ``[DONE]`` marker or the transport
closing early, the consumer receives exactly one terminal chunk.  A
transport error is reported once as a :class:`StreamError` instead.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from enum import Enum

from routerflow.emitter import ChunkEmitter
from routerflow.errors import StreamError
from routerflow.events import DeltaEvent, SentinelEvent, StreamEvent
from routerflow.schema import StreamPayload
from routerflow.sse import LineFramer, decode_event
from routerflow.streaming import (
    CompletionChunk,
    ToolCallAccumulator,
    Usage,
    UsageTracker,
)

logger = logging.getLogger(__name__)


class StreamState(Enum):
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


class StreamController:
    """Decodes one streaming response and publishes it to an emitter.

    Args:
        emitter: Queue shared with the consumer's ``CompletionStream``.
    """

    def __init__(self, emitter: ChunkEmitter):
        self.emitter = emitter
        self.state = StreamState.STREAMING
        self.error: StreamError | None = None
        self._framer = LineFramer()
        self._tool_calls = ToolCallAccumulator()
        self._usage = UsageTracker()

    async def run(self, transport: AsyncIterator[bytes]) -> Usage | None:
        """Consume *transport* until a terminal transition fires.

        Returns the latest usage snapshot, for logging and telemetry.
        """
        fragments = transport.__aiter__()
        while self.state is StreamState.STREAMING:
            try:
                fragment = await fragments.__anext__()
            except StopAsyncIteration:
                await self._finish()
                break
            except Exception as e:
                logger.error(f"Stream error: {e}")
                self.error = StreamError(f"Stream error: {e}")
                self.error.__cause__ = e
                await self.emitter.emit(self.error)
                self.state = StreamState.ERROR
                break

            for payload in self._framer.feed(fragment):
                await self._handle(decode_event(payload))
                if self.state is not StreamState.STREAMING:
                    break

        return self._usage.current()

    async def _handle(self, event: StreamEvent) -> None:
        if isinstance(event, SentinelEvent):
            logger.debug("Received stream completion marker")
            await self._finish()
        elif isinstance(event, DeltaEvent):
            await self._apply(event.payload)

    async def _apply(self, payload: StreamPayload) -> None:
        for choice in payload.choices:
            delta = choice.delta
            if delta.content is not None:
                chunk = CompletionChunk(content=delta.content)
                if not await self.emitter.emit(chunk):
                    logger.debug("Receiver dropped, stopping stream")
                    self.state = StreamState.DONE
                    return

            for tool_call in delta.tool_calls or []:
                if tool_call.index is None:
                    continue
                function = tool_call.function
                self._tool_calls.merge(
                    tool_call.index,
                    call_id=tool_call.id,
                    name=function.name if function else None,
                    arguments=function.arguments if function else None,
                )

        if payload.usage is not None:
            self._usage.observe(payload.usage.to_usage())

    async def _finish(self) -> None:
        tool_calls = self._tool_calls.finalize() if len(self._tool_calls) else None
        await self.emitter.emit(CompletionChunk(
            content="",
            finished=True,
            tool_calls=tool_calls,
            usage=self._usage.current(),
        ))
        self.state = StreamState.DONE
