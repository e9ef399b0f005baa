"""Decoded stream events produced from ``data:`` lines."""

from __future__ import annotations

from dataclasses import dataclass

from routerflow.schema import StreamPayload


@dataclass
class StreamEvent:
    """Base for all decoded stream events."""


@dataclass
class SentinelEvent(StreamEvent):
    """The ``[DONE]`` completion marker."""


@dataclass
class DeltaEvent(StreamEvent):
    """A JSON delta carrying content, tool-call fragments and/or usage."""

    payload: StreamPayload


@dataclass
class SkipEvent(StreamEvent):
    """A payload that could not be decoded; ignored by the controller."""

    reason: str = ""
