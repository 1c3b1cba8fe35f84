import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from sts_agent.exceptions import ProtocolError


@dataclass
class ToolCall:
    id: str
    tool_name: str
    arguments: dict
    result: str = ""
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Encode in the chat-completions ``tool_calls`` wire shape."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.tool_name,
                "arguments": json.dumps(self.arguments),
            },
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ToolCall":
        """Decode one wire tool call.

        Raises:
            ProtocolError: If the id, name or arguments are missing, or the
                arguments string isn't a JSON object.
        """
        try:
            call_id = data["id"]
            function = data["function"]
            name = function["name"]
            raw_arguments = function["arguments"]
        except (KeyError, TypeError) as e:
            raise ProtocolError(f"Malformed tool call: missing {e}") from e

        if not isinstance(call_id, str) or not isinstance(name, str):
            raise ProtocolError("Malformed tool call: id and name must be strings")

        if isinstance(raw_arguments, dict):
            arguments = raw_arguments
        else:
            try:
                arguments = json.loads(raw_arguments or "{}")
            except (TypeError, ValueError) as e:
                raise ProtocolError(
                    f"Malformed arguments for tool '{name}': {e}"
                ) from e

        if not isinstance(arguments, dict):
            raise ProtocolError(f"Arguments for tool '{name}' must be a JSON object")

        return cls(id=call_id, tool_name=name, arguments=arguments)


@dataclass(frozen=True)
class Message:
    role: str  # "system" | "user" | "assistant" | "tool"
    content: Optional[str]  # None only for assistant messages with tool calls
    tool_call_id: Optional[str] = None  # For tool responses
    tool_calls: Optional[list[ToolCall]] = None  # For assistant messages

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role="assistant", content=content)

    @classmethod
    def assistant_with_tool_calls(
        cls, tool_calls: list[ToolCall], content: Optional[str] = None
    ) -> "Message":
        return cls(role="assistant", content=content, tool_calls=list(tool_calls))

    @classmethod
    def tool_response(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)

    def to_dict(self) -> dict:
        """Encode for the chat-completions ``messages`` array."""
        data: dict[str, Any] = {"role": self.role}
        if self.content is not None:
            data["content"] = self.content
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        tool_calls = data.get("tool_calls")
        return cls(
            role=data["role"],
            content=data.get("content"),
            tool_call_id=data.get("tool_call_id"),
            tool_calls=[ToolCall.from_dict(tc) for tc in tool_calls]
            if tool_calls
            else None,
        )


@dataclass
class ChatResponse:
    content: Optional[str]
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class ToolResult:
    success: bool
    message: str

    @classmethod
    def ok(cls, message: str) -> "ToolResult":
        return cls(success=True, message=message)

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(success=False, message=message)

    @property
    def text(self) -> str:
        """Payload sent back to the model as the tool response."""
        if self.success:
            return self.message
        return json.dumps({"error": self.message})

    def __str__(self) -> str:
        return self.message if self.success else f"Error: {self.message}"


@dataclass
class Run:
    mode: str
    input: Optional[str] = None
    response: str = ""
    output: list[str] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    iterations: int = 0
    # "running" | "completed" | "failed" | "cancelled" | "max_iterations" | "rejected"
    state: str = "running"
    error: Optional[str] = None
    metadata: dict = field(default_factory=dict)
