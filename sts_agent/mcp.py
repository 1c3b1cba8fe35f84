"""MCP (Model Context Protocol) client for the game action server.

The action server exposes a single side-effecting tool, ``execute_actions``,
over JSON-RPC 2.0 on HTTP. Outgoing envelopes are built with the ``mcp`` SDK's
pydantic types; replies are read as plain JSON. Transport is plain httpx so
that one session survives across the short-lived event loops each agent run
uses.
"""

import itertools
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from pydantic import Field

from mcp.types import (
    CallToolRequestParams,
    ClientCapabilities,
    Implementation,
    InitializeRequestParams,
    JSONRPCNotification,
    JSONRPCRequest,
)

from sts_agent.exceptions import NetworkError, ProtocolError
from sts_agent.execution import ToolResult
from sts_agent.tools import Tool, ToolInput

logger = logging.getLogger(__name__)

EXECUTE_ACTIONS = "execute_actions"
PROTOCOL_VERSION = "2024-11-05"
SESSION_HEADER = "Mcp-Session-Id"

DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=60.0)
HEALTH_TIMEOUT = 5.0


class ActionsInput(ToolInput):
    actions: list[Any] = Field(
        ...,
        description=(
            "Array of action objects. Each has 'action' field plus parameters. "
            "Indices are 1-based and stable (don't recalculate as actions execute)."
        ),
    )


class ExecuteActionsTool(Tool):
    name = EXECUTE_ACTIONS
    description = (
        "Execute game actions. Available actions: "
        "play_card(card_index OR card_name, target_index for attacks), "
        "end_turn, "
        "choose(choice_index - 1-based), "
        "proceed, skip, cancel, confirm, "
        "use_potion(potion_slot, target_index?), "
        "discard_potion(potion_slot), "
        "select_cards(drop:[cards] OR keep:[cards]). "
        'Example: [{"action":"play_card","card_name":"Bash","target_index":1},'
        '{"action":"end_turn"}]'
    )
    input_model = ActionsInput


@dataclass
class MCPSession:
    """Handshake state bound to one action server endpoint.

    Changing the endpoint replaces the session instead of mutating it, so a
    request still in flight against the old endpoint can't mark the new one
    initialized or hand it a stale session id.
    """

    base_url: str
    session_id: Optional[str] = None
    initialized: bool = False


class MCPExecutor:
    """Session-oriented client for the action server.

    The handshake runs lazily on the first tool call. A failed handshake
    leaves the session uninitialized so the next call retries it. Changing
    ``base_url`` starts a fresh session.

    Args:
        base_url: Server root; requests go to ``<base_url>/mcp`` and the
            liveness probe to ``<base_url>/health``.
        timeout: httpx timeout for JSON-RPC requests.
        client_name: Name reported in ``clientInfo``.
        client_version: Version reported in ``clientInfo``.

    Usage:
        executor = MCPExecutor("http://127.0.0.1:8080")
        if executor.is_available():
            result = await executor.execute_actions([{"action": "end_turn"}])
    """

    def __init__(
        self,
        base_url: str,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        client_name: str = "sts-agent",
        client_version: str = "0.1.0",
    ):
        self._lock = threading.Lock()
        self._request_ids = itertools.count(1)
        self.base_url = base_url
        self.timeout = timeout
        self.client_name = client_name
        self.client_version = client_version

    @property
    def base_url(self) -> str:
        return self.session.base_url

    @base_url.setter
    def base_url(self, value: str) -> None:
        with self._lock:
            self.session = MCPSession(base_url=value.rstrip("/"))

    @property
    def tool(self) -> Tool:
        """Definition of the action tool advertised in play mode."""
        return ExecuteActionsTool()

    def is_available(self) -> bool:
        """Probe ``GET /health``. Any 2xx means the server is up."""
        try:
            response = httpx.get(f"{self.base_url}/health", timeout=HEALTH_TIMEOUT)
        except httpx.HTTPError as e:
            logger.debug("Action server health check failed: %s", e)
            return False
        return response.is_success

    async def ensure_initialized(self) -> bool:
        """Run the initialize handshake unless it already succeeded."""
        return await self._ensure_initialized(self.session)

    async def _ensure_initialized(self, session: MCPSession) -> bool:
        if session.initialized:
            return True

        params = InitializeRequestParams(
            protocolVersion=PROTOCOL_VERSION,
            capabilities=ClientCapabilities(),
            clientInfo=Implementation(
                name=self.client_name, version=self.client_version
            ),
        )
        try:
            response = await self._send_request(session, "initialize", _dump(params))
        except (NetworkError, ProtocolError) as e:
            logger.error("Failed to initialize MCP client: %s", e)
            return False

        if "result" not in response:
            logger.error("MCP initialize rejected: %s", response.get("error"))
            return False

        with self._lock:
            session.initialized = True
        await self._send_notification(session, "notifications/initialized", {})
        logger.info("MCP client initialized (session %s)", session.session_id)
        return True

    async def execute_actions(self, actions: list) -> ToolResult:
        """Execute game actions through the ``execute_actions`` tool."""
        return await self.call_tool(EXECUTE_ACTIONS, {"actions": actions})

    async def call_tool(
        self, name: str, arguments: Optional[dict] = None
    ) -> ToolResult:
        """Call a server tool. Never raises; failures become error results."""
        session = self.session
        if not await self._ensure_initialized(session):
            return ToolResult.error("MCP client not initialized")

        params = CallToolRequestParams(name=name, arguments=arguments or {})
        try:
            response = await self._send_request(session, "tools/call", _dump(params))
        except (NetworkError, ProtocolError) as e:
            logger.error("Error calling tool %s: %s", name, e)
            return ToolResult.error(str(e))

        try:
            return _parse_tool_response(response)
        except Exception as e:
            logger.error("Unreadable response from tool %s: %s", name, response, exc_info=True)
            return ToolResult.error(f"Invalid response format: {e}")

    def _headers(self, session: MCPSession) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if session.session_id is not None:
            headers[SESSION_HEADER] = session.session_id
        return headers

    def _remember_session(self, session: MCPSession, response: httpx.Response) -> None:
        session_id = response.headers.get(SESSION_HEADER)
        if session_id is not None:
            with self._lock:
                session.session_id = session_id

    async def _send_request(self, session: MCPSession, method: str, params: dict) -> dict:
        request = JSONRPCRequest(
            jsonrpc="2.0",
            id=next(self._request_ids),
            method=method,
            params=params,
        )
        body = _dump(request)
        logger.debug("MCP request: %s", body)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{session.base_url}/mcp", json=body, headers=self._headers(session)
                )
        except httpx.HTTPError as e:
            raise NetworkError(f"MCP request failed: {e}") from e

        self._remember_session(session, response)

        if not response.is_success:
            raise NetworkError(
                f"MCP request failed: {response.status_code} - {response.text}"
            )

        logger.debug("MCP response: %s", response.text)
        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"MCP response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise ProtocolError("MCP response is not a JSON object")
        return data

    async def _send_notification(
        self, session: MCPSession, method: str, params: dict
    ) -> None:
        notification = JSONRPCNotification(jsonrpc="2.0", method=method, params=params)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{session.base_url}/mcp",
                    json=_dump(notification),
                    headers=self._headers(session),
                )
            self._remember_session(session, response)
        except httpx.HTTPError as e:
            logger.warning("Failed to send notification %s: %s", method, e)


def _parse_tool_response(response: dict) -> ToolResult:
    """Turn a ``tools/call`` reply into a ToolResult.

    Only ``error.message``, ``result.content[0].text`` and ``result.isError``
    are read; a result without text content is passed on as raw JSON.
    """
    if "error" in response:
        error = response["error"]
        if isinstance(error, dict):
            return ToolResult.error(str(error.get("message", "Unknown error")))
        return ToolResult.error(str(error))

    if "result" not in response:
        return ToolResult.error("Invalid response format")

    result = response["result"]
    if not isinstance(result, dict):
        return ToolResult.error("Invalid response format")

    content = result.get("content")
    if isinstance(content, list) and content:
        first = content[0]
        if not isinstance(first, dict):
            return ToolResult.error("Invalid response format")
        if "text" in first:
            is_error = result.get("isError") is True
            return ToolResult(success=not is_error, message=str(first["text"]))
    return ToolResult.ok(json.dumps(result))


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
