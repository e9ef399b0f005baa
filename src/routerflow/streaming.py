"""Streaming primitives for provider responses.

The stream controller yields :class:`CompletionChunk` objects.  The
:class:`ToolCallAccumulator` reassembles tool calls whose id, name and
arguments arrive in fragments across multiple delta events, and the
:class:`UsageTracker` keeps the latest token-usage snapshot.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

MAX_TOOL_CALLS = 128


@dataclass
class Usage:
    """Token accounting reported by the API."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ToolCall:
    """A resolved tool call with parsed arguments.

    ``args`` is ``None`` when the streamed argument text was not valid JSON.
    """

    id: str
    name: str
    args: Any = None


@dataclass
class CompletionChunk:
    """Unit delivered to the consumer of a stream.

    Exactly one chunk per stream has ``finished=True`` and it is always
    the last one.  Only that chunk carries ``tool_calls`` and ``usage``.
    """

    content: str = ""
    finished: bool = False
    tool_calls: list[ToolCall] | None = None
    usage: Usage | None = None


@dataclass
class ToolCallFragment:
    """Partially assembled state of one tool call at a fixed position."""

    call_id: str | None = None
    name: str | None = None
    arguments: list[str] = field(default_factory=list)

    def to_tool_call(self) -> ToolCall | None:
        if self.call_id is None or self.name is None:
            return None
        text = "".join(self.arguments)
        try:
            args = json.loads(text)
        except json.JSONDecodeError:
            logger.debug(
                f"Invalid JSON arguments for tool call {self.call_id}: {text!r}"
            )
            args = None
        return ToolCall(id=self.call_id, name=self.name, args=args)


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    Fragments live in a list indexed by position.  Positions may arrive
    in any order; the list is padded with empty fragments so it never
    has gaps.  Positions at or above ``MAX_TOOL_CALLS`` are ignored.
    """

    def __init__(self) -> None:
        self._fragments: list[ToolCallFragment] = []

    def __len__(self) -> int:
        return len(self._fragments)

    def merge(
        self,
        index: int,
        call_id: str | None = None,
        name: str | None = None,
        arguments: str | None = None,
    ) -> None:
        if index >= MAX_TOOL_CALLS:
            logger.warning(f"Ignoring tool call fragment at index {index}")
            return
        while len(self._fragments) <= index:
            self._fragments.append(ToolCallFragment())
        fragment = self._fragments[index]
        if call_id is not None:
            fragment.call_id = call_id
        if name is not None:
            fragment.name = name
        if arguments is not None:
            fragment.arguments.append(arguments)

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in position order.

        Fragments that never received both an id and a name are dropped.
        """
        calls = []
        for index, fragment in enumerate(self._fragments):
            call = fragment.to_tool_call()
            if call is None:
                logger.debug(f"Dropping incomplete tool call at index {index}")
                continue
            calls.append(call)
        return calls


class UsageTracker:
    """Holds the most recent usage snapshot.

    The API reports cumulative totals, so a new snapshot replaces the
    previous one instead of being added to it.
    """

    def __init__(self) -> None:
        self._usage: Usage | None = None

    def observe(self, usage: Usage) -> None:
        self._usage = usage

    def current(self) -> Usage | None:
        return self._usage
