from routerflow.emitter import CompletionStream
from routerflow.errors import ProviderError, StreamError
from routerflow.instrumentation import instrument, uninstrument
from routerflow.log import configure_logging
from routerflow.message import (
    CompletionRequest,
    CompletionResponse,
    Message,
    MessageRole,
    Tool,
)
from routerflow.provider import ModelProvider, OpenRouterProvider, ProviderPreferences
from routerflow.streaming import CompletionChunk, ToolCall, Usage

__all__ = [
    "CompletionChunk",
    "CompletionRequest",
    "CompletionResponse",
    "CompletionStream",
    "Message",
    "MessageRole",
    "ModelProvider",
    "OpenRouterProvider",
    "ProviderError",
    "ProviderPreferences",
    "StreamError",
    "Tool",
    "ToolCall",
    "Usage",
    "configure_logging",
    "instrument",
    "uninstrument",
]
