class ProviderError(Exception):
    """Base class for errors raised by routerflow providers."""


class StreamError(ProviderError):
    """The transport failed while a streaming response was being read.

    Raised from ``CompletionStream`` iteration; ``__cause__`` holds the
    underlying transport exception.
    """
