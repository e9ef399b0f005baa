"""Wire models for OpenRouter's streaming chat-completion payloads."""

from pydantic import BaseModel, Field, NonNegativeInt

from routerflow.streaming import Usage


class DeltaFunction(BaseModel):
    name: str | None = None
    arguments: str | None = None


class DeltaToolCall(BaseModel):
    index: NonNegativeInt | None = None
    id: str | None = None
    function: DeltaFunction | None = None


class Delta(BaseModel):
    content: str | None = None
    tool_calls: list[DeltaToolCall] | None = None


class StreamChoice(BaseModel):
    delta: Delta = Field(default_factory=Delta)


class WireUsage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int

    def to_usage(self) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
            total_tokens=self.total_tokens,
        )


class StreamPayload(BaseModel):
    """One decoded ``data:`` line."""

    choices: list[StreamChoice] = Field(default_factory=list)
    usage: WireUsage | None = None
