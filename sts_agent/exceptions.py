class STSAgentError(Exception):
    """Base exception for sts-agent errors."""


class ConfigError(STSAgentError, ValueError):
    """Raised when a required setting (such as the API key) is missing."""


class AgentBusy(STSAgentError):
    """Raised when a run is requested while another one is active."""


class ExecutorUnavailable(STSAgentError):
    """Raised when play mode is requested but the action server is unreachable."""


class NetworkError(STSAgentError):
    """Raised on transport failures or non-success HTTP status codes."""


class ProtocolError(STSAgentError):
    """Raised when a peer returns a payload with an unexpected shape."""


class ToolNotFound(STSAgentError):
    """Raised when a tool name doesn't match any local tool."""


class ToolExecutionError(STSAgentError):
    """Raised when a local tool fails while reading state."""
