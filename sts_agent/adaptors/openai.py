"""OpenAI-compatible chat-completions adaptor for sts-agent."""

import json
import logging
import os
from typing import AsyncIterator, Optional

import httpx

from sts_agent.exceptions import ConfigError, NetworkError, ProtocolError
from sts_agent.execution import ChatResponse, Message, ToolCall
from sts_agent.model import ModelAdaptor
from sts_agent.tools import Tool

logger = logging.getLogger(__name__)

# Tool-calling turns can take a long time to generate.
DEFAULT_TIMEOUT = httpx.Timeout(30.0, read=120.0)


class OpenAIAdaptor(ModelAdaptor):
    """OpenAI-compatible model adaptor.

    Supports the OpenAI API and compatible endpoints (OpenRouter, local
    servers, proxies, etc.).

    Args:
        api_key: API key. Falls back to OPENAI_API_KEY environment variable.
        model: Model name (default: gpt-4o-mini).
        base_url: Base URL for the API (default: https://api.openai.com/v1).
        timeout: httpx timeout applied to every request.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ConfigError(
                "OpenAI API key not provided. "
                "Pass api_key argument or set OPENAI_API_KEY environment variable."
            )

        self.model = model
        self.base_url = base_url or "https://api.openai.com/v1"
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        self._base_url = value.rstrip("/")

    async def complete(self, messages: list[Message], **kwargs) -> str:
        """Plain completion, used for summaries and quick tips.

        Raises:
            NetworkError: On transport failure or a non-200 status.
            ProtocolError: If the response has no message content.
        """
        data = await self._post(self._build_payload(messages, **kwargs))
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProtocolError(f"Unexpected completion response: missing {e}") from e
        if not isinstance(content, str):
            raise ProtocolError("Completion response has no text content")
        return content

    async def complete_with_tools(
        self,
        messages: list[Message],
        tools: list[Tool],
        **kwargs,
    ) -> ChatResponse:
        """Call the API with messages and available tools.

        Args:
            messages: Conversation so far.
            tools: Tools the model may call this turn.
            **kwargs: Extra request fields (temperature, tool_choice, ...).

        Returns:
            ChatResponse with content, every tool call and the finish reason.

        Raises:
            NetworkError: If the request fails.
            ProtocolError: If the response or any tool call is malformed.
        """
        payload = self._build_payload(messages, tools=tools, **kwargs)
        data = await self._post(payload)
        return self._parse_response(data)

    async def stream(self, messages: list[Message], **kwargs) -> AsyncIterator[str]:
        """Yield content deltas from a server-sent-events completion.

        Malformed events are skipped; ``data: [DONE]`` ends the stream.
        """
        payload = self._build_payload(messages, stream=True, **kwargs)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                ) as response:
                    if response.status_code != 200:
                        body = await response.aread()
                        raise NetworkError(
                            f"LLM API error: {response.status_code} - "
                            f"{body.decode(errors='replace')}"
                        )

                    async for line in response.aiter_lines():
                        if not line.startswith("data: "):
                            continue
                        data = line[len("data: "):].strip()
                        if data == "[DONE]":
                            break
                        delta = self._parse_delta(data)
                        if delta:
                            yield delta
        except httpx.HTTPError as e:
            raise NetworkError(f"LLM stream failed: {e}") from e

    async def check_connection(self) -> bool:
        """Send a trivial prompt to verify credentials and endpoint."""
        try:
            reply = await self.complete(
                [Message.user("Say 'OK' if you can hear me.")]
            )
        except (NetworkError, ProtocolError) as e:
            logger.error("LLM connection test failed: %s", e)
            return False
        return bool(reply)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        messages: list[Message],
        tools: Optional[list[Tool]] = None,
        stream: bool = False,
        **kwargs,
    ) -> dict:
        payload = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "stream": stream,
        }

        if tools:
            payload["tools"] = [self._convert_tool(tool) for tool in tools]
            payload["tool_choice"] = kwargs.pop("tool_choice", "auto")

        payload.update(kwargs)
        return payload

    async def _post(self, payload: dict) -> dict:
        logger.debug("LLM request: %s", payload)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            raise NetworkError(f"LLM request failed: {e}") from e

        if response.status_code != 200:
            raise NetworkError(
                f"LLM API error: {response.status_code} - {self._error_message(response)}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"LLM response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise ProtocolError("LLM response is not a JSON object")
        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error = response.json().get("error", {})
        except (ValueError, AttributeError):
            return response.text or "Unknown error"
        if isinstance(error, dict):
            return error.get("message", "Unknown error")
        return str(error)

    def _convert_messages(self, messages: list[Message]) -> list[dict]:
        """Convert Message objects to the chat-completions format."""
        return [msg.to_dict() for msg in messages]

    def _convert_tool(self, tool: Tool) -> dict:
        """Convert a Tool to the OpenAI function tool format."""
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.schema(),
            },
        }

    def _parse_response(self, data: dict) -> ChatResponse:
        """Parse a non-streaming response into a ChatResponse.

        Raises:
            ProtocolError: If ``choices`` is missing or any tool call is
                malformed. One bad tool call fails the whole response.
        """
        choices = data.get("choices")
        if not choices or not isinstance(choices, list):
            raise ProtocolError("LLM response missing 'choices' field")

        choice = choices[0]
        if not isinstance(choice, dict):
            raise ProtocolError("LLM response choice is not an object")
        message = choice.get("message") or {}

        content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise ProtocolError("LLM response content is not a string")

        raw_tool_calls = message.get("tool_calls") or []
        if not isinstance(raw_tool_calls, list):
            raise ProtocolError("LLM response 'tool_calls' is not a list")

        return ChatResponse(
            content=content,
            tool_calls=[ToolCall.from_dict(tc) for tc in raw_tool_calls],
            finish_reason=choice.get("finish_reason"),
        )

    @staticmethod
    def _parse_delta(data: str) -> Optional[str]:
        """Extract ``choices[0].delta.content`` from one stream event."""
        try:
            event = json.loads(data)
            delta = event["choices"][0]["delta"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.debug("Skipping malformed stream event: %s", data)
            return None
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, str) else None
