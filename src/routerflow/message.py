import inspect
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field, field_serializer

from routerflow.streaming import ToolCall, Usage


class MessageRole(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    role: MessageRole
    content: str

    @field_serializer('role')
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value


class Tool(BaseModel):
    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict)

    def model_dump(self, **kwargs):
        """Override to return the OpenAI function schema"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }

    @classmethod
    def from_function(cls, func: Callable) -> "Tool":
        """Build a tool definition from a function's signature and docstring."""
        signature = inspect.signature(func)
        properties = {
            name: {
                "type": _json_type(param.annotation),
                "description": "",
            }
            for name, param in signature.parameters.items()
        }
        required = [
            name
            for name, param in signature.parameters.items()
            if param.default is inspect.Parameter.empty
        ]
        return cls(
            name=func.__name__,
            description=inspect.getdoc(func) or "",
            input_schema={
                "type": "object",
                "properties": properties,
                "required": required,
            },
        )


def _json_type(annotation) -> str:
    type_mapping = {
        'str': 'string',
        'int': 'integer',
        'float': 'number',
        'bool': 'boolean',
        'NoneType': 'null',
        'dict': 'object',
        'list': 'array',
        'tuple': 'array',
    }
    return type_mapping.get(getattr(annotation, "__name__", ""), 'string')


class CompletionRequest(BaseModel):
    messages: list[Message]
    max_tokens: int | None = None
    temperature: float | None = None
    stream: bool = False
    tools: list[Tool] | None = None
    disable_thinking: bool = Field(
        default=False,
        description="Accepted for interface parity; not sent to OpenRouter.",
    )


class CompletionResponse(BaseModel):
    content: str
    usage: Usage
    model: str
    tool_calls: list[ToolCall] = Field(default_factory=list)
