from sts_agent.adaptors.openai import OpenAIAdaptor
from sts_agent.agent import Agent, RunState
from sts_agent.config import AgentConfig
from sts_agent.dispatcher import ToolDispatcher
from sts_agent.exceptions import (
    AgentBusy,
    ConfigError,
    ExecutorUnavailable,
    NetworkError,
    ProtocolError,
    STSAgentError,
    ToolExecutionError,
    ToolNotFound,
)
from sts_agent.execution import ChatResponse, Message, Run, ToolCall, ToolResult
from sts_agent.history import ConversationStore
from sts_agent.hooks import (
    AfterCompactionEventData,
    AfterIterationEventData,
    AfterModelCallEventData,
    AfterRunEventData,
    AfterToolCallEventData,
    BeforeIterationEventData,
    BeforeModelCallEventData,
    BeforeRunEventData,
    BeforeToolCallEventData,
    HookEvent,
    HookRegistry,
    HookResponse,
    Middleware,
    OnToolErrorEventData,
)
from sts_agent.mcp import EXECUTE_ACTIONS, ExecuteActionsTool, MCPExecutor, MCPSession
from sts_agent.model import ModelAdaptor
from sts_agent.modes import MODE_PROFILES, Mode, ModeProfile
from sts_agent.state_tools import LocalToolProvider, StateQueryTool, StateReader
from sts_agent.tools import Tool, ToolInput

__version__ = "0.1.0"

__all__ = [
    # Core
    "Agent",
    "AgentConfig",
    "ChatResponse",
    "ConversationStore",
    "LocalToolProvider",
    "MCPExecutor",
    "MCPSession",
    "Message",
    "Mode",
    "ModeProfile",
    "MODE_PROFILES",
    "ModelAdaptor",
    "OpenAIAdaptor",
    "Run",
    "RunState",
    "StateQueryTool",
    "StateReader",
    "Tool",
    "ToolCall",
    "ToolDispatcher",
    "ToolInput",
    "ToolResult",
    "EXECUTE_ACTIONS",
    "ExecuteActionsTool",
    # Hooks
    "HookRegistry",
    "HookEvent",
    "HookResponse",
    "Middleware",
    # Hook Event Data
    "BeforeRunEventData",
    "AfterRunEventData",
    "BeforeIterationEventData",
    "AfterIterationEventData",
    "BeforeModelCallEventData",
    "AfterModelCallEventData",
    "BeforeToolCallEventData",
    "AfterToolCallEventData",
    "OnToolErrorEventData",
    "AfterCompactionEventData",
    # Exceptions
    "STSAgentError",
    "AgentBusy",
    "ConfigError",
    "ExecutorUnavailable",
    "NetworkError",
    "ProtocolError",
    "ToolExecutionError",
    "ToolNotFound",
]
