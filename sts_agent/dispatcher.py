import logging

from pydantic import ValidationError

from sts_agent.exceptions import STSAgentError
from sts_agent.execution import ToolCall, ToolResult
from sts_agent.mcp import EXECUTE_ACTIONS, ActionsInput, MCPExecutor
from sts_agent.modes import MODE_PROFILES, Mode
from sts_agent.state_tools import LocalToolProvider

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Routes a model tool call to the local state tools or the action server.

    ``dispatch`` never raises: every failure comes back as an error
    ToolResult so the model can see it and adapt.
    """

    def __init__(self, local_tools: LocalToolProvider, executor: MCPExecutor):
        self.local_tools = local_tools
        self.executor = executor

    async def dispatch(self, mode: Mode, tool_call: ToolCall) -> ToolResult:
        name = tool_call.tool_name
        logger.info("Executing tool: %s with args: %s", name, tool_call.arguments)

        if self.local_tools.has_tool(name):
            try:
                result = self.local_tools.execute(name, tool_call.arguments)
            except STSAgentError as e:
                return ToolResult.error(str(e))
            logger.debug("Local tool result: %s", result)
            return ToolResult.ok(result)

        if name == EXECUTE_ACTIONS:
            if MODE_PROFILES[mode].blocks_actions:
                return ToolResult.error(
                    f"Action execution not allowed in {mode.value} mode"
                )
            try:
                validated = ActionsInput(**tool_call.arguments)
            except ValidationError:
                return ToolResult.error("Missing 'actions' parameter")
            return await self.executor.execute_actions(validated.actions)

        return ToolResult.error(f"Unknown tool: {name}")
