"""Bounded hand-off between the stream controller and its consumer."""

from __future__ import annotations

import asyncio
import logging
import weakref

from routerflow.streaming import CompletionChunk, Usage

logger = logging.getLogger(__name__)

STREAM_BUFFER_SIZE = 100


class ChunkEmitter:
    """Single-producer, single-consumer queue with disconnect detection.

    The producer suspends in :meth:`emit` while the queue is full.  Once
    the consumer calls :meth:`close`, pending and future emits return
    ``False`` instead of blocking.

    Args:
        maxsize: Number of items that may be pending before the producer
            is suspended.
    """

    def __init__(self, maxsize: int = STREAM_BUFFER_SIZE):
        self._queue: asyncio.Queue[CompletionChunk | Exception] = asyncio.Queue(maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()

    async def emit(self, item: CompletionChunk | Exception) -> bool:
        """Queue a chunk or a failure; ``False`` means the consumer is gone."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            pass

        put = asyncio.ensure_future(self._queue.put(item))
        gone = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({put, gone}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            put.cancel()
            gone.cancel()
            await asyncio.gather(put, gone, return_exceptions=True)
        return not put.cancelled()

    async def receive(self) -> CompletionChunk | Exception:
        return await self._queue.get()


class CompletionStream:
    """Consumer end of a streaming completion.

    Iterate with ``async for`` to receive :class:`CompletionChunk` objects
    in order; iteration stops after the chunk with ``finished=True``.  A
    transport failure is raised from iteration as the queued exception.
    Leaving an ``async with`` block, calling :meth:`aclose`, or dropping
    the last reference to the stream disconnects, and the producer stops
    at its next emit.
    """

    def __init__(self, emitter: ChunkEmitter, task: asyncio.Task[Usage | None]):
        self._emitter = emitter
        self._task = task
        self._exhausted = False
        # the producer holds only the emitter; dropping the stream disconnects
        weakref.finalize(self, emitter.close)

    def __aiter__(self) -> CompletionStream:
        return self

    async def __anext__(self) -> CompletionChunk:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._emitter.receive()
        if isinstance(item, Exception):
            self._exhausted = True
            raise item
        if item.finished:
            self._exhausted = True
        return item

    async def __aenter__(self) -> CompletionStream:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if not self._emitter.closed:
            logger.debug("Consumer closed the completion stream")
        self._exhausted = True
        self._emitter.close()

    async def final_usage(self) -> Usage | None:
        """Wait for the producer to stop and return its last usage snapshot."""
        return await self._task
