"""Optional OpenTelemetry instrumentation for routerflow.

Call ``routerflow.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; providers behave
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "routerflow") -> None:
    """Enable OpenTelemetry tracing for completions and streams.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install routerflow[otel]``

    Example::

        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        trace.set_tracer_provider(TracerProvider())

        import routerflow
        routerflow.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install routerflow[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured, spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("routerflow instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def completion_span(system: str, model: str, stream: bool = False):
    """Wrap a completion or a whole stream in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
            "routerflow.stream": stream,
        },
    ) as span:
        yield span


def record_usage(span, usage, response_model: str | None = None):
    """Set token-usage and response-model attributes on a span."""
    if span is None or usage is None:
        return
    if getattr(usage, "prompt_tokens", None) is not None:
        span.set_attribute(
            "gen_ai.usage.input_tokens",
            usage.prompt_tokens,
        )
    if getattr(usage, "completion_tokens", None) is not None:
        span.set_attribute(
            "gen_ai.usage.output_tokens",
            usage.completion_tokens,
        )
    if response_model:
        span.set_attribute(
            "gen_ai.response.model", response_model
        )


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
