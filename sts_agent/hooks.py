"""Hook system for sts-agent.

Lets a presentation layer or test observe and steer runs without
modifying the Agent. Follows Flask's before_request/after_request pattern.

Architecture:
- HookRegistry is the CORE implementation
- Decorator (@hooks.on, @agent.hook) and Middleware are convenience wrappers
- Everything goes through HookRegistry
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class HookEvent(str, Enum):
    """Available hook points in a run."""

    BEFORE_RUN = "before_run"
    AFTER_RUN = "after_run"

    BEFORE_ITERATION = "before_iteration"
    AFTER_ITERATION = "after_iteration"

    BEFORE_MODEL_CALL = "before_model_call"
    AFTER_MODEL_CALL = "after_model_call"

    BEFORE_TOOL_CALL = "before_tool_call"
    AFTER_TOOL_CALL = "after_tool_call"
    ON_TOOL_ERROR = "on_tool_error"

    AFTER_COMPACTION = "after_compaction"


# ============================================================================
# Hook Event Data Classes
# ============================================================================


@dataclass
class BeforeRunEventData:
    """Called before the loop starts."""

    agent: Any  # Agent instance
    run: Any  # Run instance
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class AfterRunEventData:
    """Called after the loop ends, whatever the outcome."""

    run: Any
    total_time_ms: float
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class BeforeIterationEventData:
    run: Any
    iteration: int


@dataclass
class AfterIterationEventData:
    run: Any
    iteration: int
    elapsed_time_ms: float


@dataclass
class BeforeModelCallEventData:
    run: Any
    messages: List[Any]  # List of Message objects
    tools: List[Any]  # List of Tool objects


@dataclass
class AfterModelCallEventData:
    run: Any
    response: Any  # ChatResponse object
    response_time_ms: float


@dataclass
class BeforeToolCallEventData:
    run: Any
    tool_call: Any  # ToolCall object
    tool_name: str
    arguments: Dict[str, Any]


@dataclass
class AfterToolCallEventData:
    run: Any
    tool_call: Any
    tool_name: str
    result: Any  # ToolResult object
    execution_time_ms: float


@dataclass
class OnToolErrorEventData:
    """Called when a tool call comes back as an error result."""

    run: Any
    tool_name: str
    arguments: Dict[str, Any]
    error_message: str


@dataclass
class AfterCompactionEventData:
    """Called after history was folded into a new summary."""

    summary: Optional[str]
    kept_messages: int


# ============================================================================
# Hook Response
# ============================================================================


@dataclass
class HookResponse:
    """What a hook can return to influence execution."""

    action: Optional[str] = None  # 'abort' (before_iteration), 'skip' (before_tool_call)
    cached_result: Optional[str] = None  # Tool result to use when skipping

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["HookResponse"]:
        """Convert dict to HookResponse."""
        if data is None:
            return None
        if isinstance(data, HookResponse):
            return data
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


# ============================================================================
# Hook Registry
# ============================================================================


class HookRegistry:
    """Central registry for all hooks.

    Supports both decorator-style and direct registration.

    Usage:
        hooks = HookRegistry()

        @hooks.on('after_tool_call')
        async def log_tool(event):
            print(f"Tool: {event.tool_name}")
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {
            event.value: [] for event in HookEvent
        }

    def on(self, hook_name: str):
        """Decorator for registering hook handlers."""

        def decorator(func: Callable) -> Callable:
            self.register_handler(hook_name, func)
            return func

        return decorator

    def register_handler(self, hook_name: str, handler: Callable) -> None:
        """Register an async hook handler.

        Raises:
            ValueError: If hook_name is not valid
        """
        if hook_name not in self._handlers:
            valid_hooks = [e.value for e in HookEvent]
            raise ValueError(
                f"Invalid hook name '{hook_name}'. Valid hooks: {valid_hooks}"
            )
        self._handlers[hook_name].append(handler)

    async def trigger(
        self,
        hook_name: str,
        event_data: Any,
    ) -> Optional[HookResponse]:
        """Execute all handlers for a hook.

        Returns:
            First non-None response from any handler, or None
        """
        handlers = self._handlers.get(hook_name, [])

        for handler in handlers:
            try:
                result = await handler(event_data)
                if result is not None:
                    return HookResponse.from_dict(result)
            except Exception as e:
                # Log but don't fail the run
                logger.warning(f"Hook '{hook_name}' raised exception: {e}")

        return None

    def has_handlers(self, hook_name: str) -> bool:
        return len(self._handlers.get(hook_name, [])) > 0

    def clear(self) -> None:
        """Clear all handlers (useful for testing)."""
        for hook_name in self._handlers:
            self._handlers[hook_name] = []


# ============================================================================
# Middleware Base Class (Optional, for stateful handlers)
# ============================================================================


class Middleware:
    """Base class for middleware (stateful hook handlers).

    Override methods for hooks you want to handle.

    Usage:
        class TranscriptMiddleware(Middleware):
            async def after_tool_call(self, event):
                self.lines.append(f"{event.tool_name} -> {event.result}")

        agent = Agent(..., middlewares=[TranscriptMiddleware()])
    """

    async def before_run(self, event: BeforeRunEventData) -> Optional[Dict]:
        pass

    async def after_run(self, event: AfterRunEventData) -> Optional[Dict]:
        pass

    async def before_iteration(
        self, event: BeforeIterationEventData
    ) -> Optional[Dict]:
        pass

    async def after_iteration(self, event: AfterIterationEventData) -> Optional[Dict]:
        pass

    async def before_model_call(
        self, event: BeforeModelCallEventData
    ) -> Optional[Dict]:
        pass

    async def after_model_call(self, event: AfterModelCallEventData) -> Optional[Dict]:
        pass

    async def before_tool_call(self, event: BeforeToolCallEventData) -> Optional[Dict]:
        pass

    async def after_tool_call(self, event: AfterToolCallEventData) -> Optional[Dict]:
        pass

    async def on_tool_error(self, event: OnToolErrorEventData) -> Optional[Dict]:
        pass

    async def after_compaction(
        self, event: AfterCompactionEventData
    ) -> Optional[Dict]:
        pass
