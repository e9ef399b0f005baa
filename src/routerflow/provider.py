import asyncio
import copy
import json
import logging
import os
from contextlib import AsyncExitStack

from openai import AsyncOpenAI
from pydantic import BaseModel

from routerflow.controller import StreamController, StreamState
from routerflow.emitter import ChunkEmitter, CompletionStream
from routerflow.instrumentation import completion_span, record_error, record_usage
from routerflow.message import CompletionRequest, CompletionResponse
from routerflow.streaming import ToolCall, Usage

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-3.5-sonnet"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7


class ProviderPreferences(BaseModel):
    """OpenRouter routing preferences, sent as the ``provider`` field."""

    order: list[str] | None = None
    allow_fallbacks: bool | None = None
    require_parameters: bool | None = None


class ModelProvider:
    """Interface every completion backend implements."""

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def model(self) -> str:
        raise NotImplementedError

    @property
    def has_native_tool_calling(self) -> bool:
        return False

    @property
    def max_tokens(self) -> int:
        return DEFAULT_MAX_TOKENS

    @property
    def temperature(self) -> float:
        return DEFAULT_TEMPERATURE

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        raise NotImplementedError

    async def stream(self, request: CompletionRequest) -> CompletionStream:
        raise NotImplementedError


class OpenRouterProvider(ModelProvider):
    """Provider for OpenRouter's OpenAI-compatible chat-completions API.

    Streaming responses are read as raw bytes and decoded by a
    :class:`StreamController` running in its own task, so the caller
    receives chunks through a bounded :class:`CompletionStream`.

    Args:
        api_key: OpenRouter key; defaults to ``OPENROUTER_API_KEY``.
        model: Model id, e.g. ``"openai/gpt-4o"``.
        max_tokens: Default completion limit when the request has none.
        temperature: Default sampling temperature when the request has none.
        name: Provider name used in logs and spans.
        provider_preferences: Routing preferences forwarded to OpenRouter.
        http_referer: Sent as ``HTTP-Referer`` for OpenRouter analytics.
        x_title: Sent as ``X-Title`` for OpenRouter analytics.
        base_url: API root.
        max_retries: Connection-level retries performed by the client.
        timeout: Request timeout in seconds.
        http_client: Optional ``httpx.AsyncClient`` to send requests with.
    """

    def __init__(
            self,
            api_key: str | None = None,
            model: str | None = None,
            max_tokens: int | None = None,
            temperature: float | None = None,
            *,
            name: str = "openrouter",
            provider_preferences: ProviderPreferences | None = None,
            http_referer: str | None = None,
            x_title: str | None = None,
            base_url: str = OPENROUTER_BASE_URL,
            max_retries: int = 5,
            timeout: float = 180.0,
            http_client=None,
    ):
        if not api_key:
            api_key = os.getenv("OPENROUTER_API_KEY")
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            max_retries=max_retries,
            timeout=timeout,
            http_client=http_client,
        )
        self.base_url = base_url
        self._name = name
        self._model = model or DEFAULT_MODEL
        self._max_tokens = max_tokens
        self._temperature = temperature
        self.provider_preferences = provider_preferences
        self.http_referer = http_referer
        self.x_title = x_title

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    @property
    def has_native_tool_calling(self) -> bool:
        return True

    @property
    def max_tokens(self) -> int:
        return self._max_tokens or DEFAULT_MAX_TOKENS

    @property
    def temperature(self) -> float:
        if self._temperature is None:
            return DEFAULT_TEMPERATURE
        return self._temperature

    def with_provider_preferences(
            self, preferences: ProviderPreferences
    ) -> "OpenRouterProvider":
        provider = copy.copy(self)
        provider.provider_preferences = preferences
        return provider

    def with_http_referer(self, referer: str) -> "OpenRouterProvider":
        provider = copy.copy(self)
        provider.http_referer = referer
        return provider

    def with_x_title(self, title: str) -> "OpenRouterProvider":
        provider = copy.copy(self)
        provider.x_title = title
        return provider

    def build_request(self, request: CompletionRequest, stream: bool) -> dict:
        """Keyword arguments for ``chat.completions.create``."""
        kwargs = {
            "model": self._model,
            "messages": [m.model_dump() for m in request.messages],
            "stream": stream,
        }

        max_tokens = request.max_tokens or self._max_tokens
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        temperature = request.temperature
        if temperature is None:
            temperature = self._temperature
        if temperature is not None:
            kwargs["temperature"] = temperature

        if request.tools:
            kwargs["tools"] = [t.model_dump() for t in request.tools]

        if self.provider_preferences is not None:
            kwargs["extra_body"] = {
                "provider": self.provider_preferences.model_dump(exclude_none=True),
            }

        if stream:
            kwargs["stream_options"] = {"include_usage": True}

        headers = {}
        if self.http_referer:
            headers["HTTP-Referer"] = self.http_referer
        if self.x_title:
            headers["X-Title"] = self.x_title
        if headers:
            kwargs["extra_headers"] = headers

        return kwargs

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        logger.debug(
            f"Processing {self._name} completion request with "
            f"{len(request.messages)} messages"
        )
        kwargs = self.build_request(request, stream=False)

        async with completion_span(self._name, self._model) as span:
            try:
                response = await self.client.chat.completions.create(**kwargs)
            except Exception as e:
                record_error(span, e)
                raise
            record_usage(span, response.usage, getattr(response, "model", None))

        content = ""
        tool_calls = []
        if response.choices:
            message = response.choices[0].message
            content = message.content or ""
            for tc in message.tool_calls or []:
                try:
                    args = json.loads(tc.function.arguments)
                except json.JSONDecodeError:
                    args = None
                tool_calls.append(
                    ToolCall(id=tc.id, name=tc.function.name, args=args)
                )

        usage = Usage()
        if response.usage is not None:
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        logger.debug(
            f"{self._name} completion successful: "
            f"{usage.completion_tokens} tokens generated"
        )
        return CompletionResponse(
            content=content,
            usage=usage,
            model=self._model,
            tool_calls=tool_calls,
        )

    async def stream(self, request: CompletionRequest) -> CompletionStream:
        logger.debug(
            f"Processing {self._name} streaming request with "
            f"{len(request.messages)} messages"
        )
        kwargs = self.build_request(request, stream=True)

        # Entering the response raises for non-2xx statuses, before any
        # task is spawned.
        stack = AsyncExitStack()
        response = await stack.enter_async_context(
            self.client.chat.completions.with_streaming_response.create(**kwargs)
        )

        emitter = ChunkEmitter()
        task = asyncio.create_task(
            self._pump(StreamController(emitter), response, stack)
        )
        return CompletionStream(emitter, task)

    async def _pump(self, controller, response, stack) -> Usage | None:
        async with stack, completion_span(self._name, self._model, stream=True) as span:
            usage = await controller.run(response.iter_bytes())
            if controller.state is StreamState.ERROR:
                record_error(span, controller.error)
            record_usage(span, usage)

        if usage is not None:
            logger.debug(
                f"Stream completed with usage - prompt: {usage.prompt_tokens}, "
                f"completion: {usage.completion_tokens}, "
                f"total: {usage.total_tokens}"
            )
        return usage
