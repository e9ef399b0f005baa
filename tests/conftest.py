import asyncio
import json

import pytest

from routerflow.controller import StreamController
from routerflow.emitter import ChunkEmitter, CompletionStream


# ---------------------------------------------------------------------------
# Wire helpers
# ---------------------------------------------------------------------------

def sse(*payloads) -> bytes:
    """Encode payloads as ``data:`` events.

    Dicts are JSON-encoded; strings are sent verbatim (use this for
    ``[DONE]`` or deliberately malformed lines).
    """
    lines = []
    for payload in payloads:
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        lines.append(f"data: {payload}\n\n")
    return "".join(lines).encode("utf-8")


def content_delta(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}}]}


def tool_call_delta(
    index: int,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    tool_call: dict = {"index": index}
    if call_id is not None:
        tool_call["id"] = call_id
    function = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        tool_call["function"] = function
    return {"choices": [{"delta": {"tool_calls": [tool_call]}}]}


def usage_delta(prompt: int, completion: int, total: int) -> dict:
    return {
        "choices": [{}],
        "usage": {
            "prompt_tokens": prompt,
            "completion_tokens": completion,
            "total_tokens": total,
        },
    }


async def byte_stream(data: bytes, size: int | None = None):
    """Yield *data* in pieces of *size* bytes (one piece when ``None``)."""
    if size is None:
        yield data
        return
    for start in range(0, len(data), size):
        yield data[start:start + size]


WEATHER_STREAM = sse(
    content_delta("Hel"),
    content_delta("lo"),
    tool_call_delta(0, "call_1", "get_weather", '{"loc'),
    tool_call_delta(0, arguments='ation":"Tokyo"}'),
    usage_delta(10, 5, 15),
    "[DONE]",
)


# ---------------------------------------------------------------------------
# Controller harness
# ---------------------------------------------------------------------------

@pytest.fixture
def run_stream():
    """Run a StreamController over a transport and drain its chunks.

    Returns ``(chunks, usage, controller)``.
    """
    async def _run(transport, maxsize: int = 100):
        emitter = ChunkEmitter(maxsize)
        controller = StreamController(emitter)
        task = asyncio.create_task(controller.run(transport))
        stream = CompletionStream(emitter, task)
        chunks = [chunk async for chunk in stream]
        usage = await stream.final_usage()
        return chunks, usage, controller
    return _run
