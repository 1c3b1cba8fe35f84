import asyncio
import inspect
import logging
import threading
import time
from concurrent.futures import Future
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Union

from sts_agent.config import AgentConfig
from sts_agent.dispatcher import ToolDispatcher
from sts_agent.exceptions import (
    AgentBusy,
    ConfigError,
    ExecutorUnavailable,
    STSAgentError,
)
from sts_agent.execution import ChatResponse, Message, Run, ToolCall, ToolResult
from sts_agent.history import ConversationStore
from sts_agent.mcp import EXECUTE_ACTIONS, MCPExecutor
from sts_agent.model import ModelAdaptor
from sts_agent.modes import MODE_PROFILES, Mode, ModeProfile
from sts_agent.state_tools import GET_COMBAT_STATE, LocalToolProvider, StateReader
from sts_agent.tools import Tool

if TYPE_CHECKING:
    from sts_agent.hooks import HookRegistry, Middleware

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 20

QUICK_TIP_PROMPT = (
    "You are a Slay the Spire expert. Give a VERY brief suggestion (1-2 sentences) "
    "for what cards to play this turn. Focus on the most important action."
)

OutputCallback = Callable[[str], None]
CompleteCallback = Callable[[Run], None]


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCEL_REQUESTED = "cancel_requested"


def _discard(text: str) -> None:
    pass


class Agent:
    """Drives the reason-act loop between the player, the model and the game.

    State queries are answered locally by the StateReader; game actions go
    to the MCP action server and are only offered in play mode. At most one
    run (or quick tip) is active at a time. Runs execute on a worker thread
    and report through ``on_output`` / ``on_complete``.
    """

    def __init__(
        self,
        model: ModelAdaptor,
        executor: MCPExecutor,
        reader: StateReader,
        config: AgentConfig,
        store: Optional[ConversationStore] = None,
        max_iterations: int = MAX_ITERATIONS,
        hooks: Optional["HookRegistry"] = None,
        middlewares: Optional[list["Middleware"]] = None,
    ):
        self.model = model
        self.executor = executor
        self.config = config
        self.local_tools = LocalToolProvider(reader)
        self.dispatcher = ToolDispatcher(self.local_tools, executor)
        self.store = store if store is not None else ConversationStore(model)
        self.max_iterations = max_iterations

        self._state = RunState.IDLE
        self._state_lock = threading.Lock()

        if hooks is None:
            from sts_agent.hooks import HookRegistry

            hooks = HookRegistry()
        self.hooks = hooks

        # Middleware is syntactic sugar over the same HookRegistry
        if middlewares:
            self._register_middlewares(middlewares)

    @classmethod
    def from_config(
        cls, config: AgentConfig, reader: StateReader, **kwargs
    ) -> "Agent":
        """Build the OpenAI adaptor and MCP executor described by ``config``."""
        from sts_agent.adaptors.openai import OpenAIAdaptor

        config.log_summary()
        model = OpenAIAdaptor(
            api_key=config.llm_api_key or None,
            model=config.llm_model,
            base_url=config.llm_base_url,
        )
        executor = MCPExecutor(config.mcp_server_url)
        return cls(model=model, executor=executor, reader=reader, config=config, **kwargs)

    def _register_middlewares(self, middlewares: list["Middleware"]) -> None:
        """Convert middleware instances to HookRegistry handlers."""
        from sts_agent.hooks import HookEvent

        hook_names = [e.value for e in HookEvent]
        for middleware in middlewares:
            for hook_name in hook_names:
                handler = getattr(middleware, hook_name, None)
                if handler is not None and inspect.iscoroutinefunction(handler):
                    self.hooks.register_handler(hook_name, handler)

    def hook(self, hook_name: str):
        """Decorator for registering hooks directly on the agent.

        Usage:
            @agent.hook('after_tool_call')
            async def log_tool(event):
                print(f"Tool: {event.tool_name}")
        """
        return self.hooks.on(hook_name)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is not RunState.IDLE

    def cancel(self) -> None:
        """Ask the active run to stop at the next iteration boundary.

        Model and tool calls already in flight are allowed to finish.
        """
        with self._state_lock:
            if self._state is RunState.RUNNING:
                self._state = RunState.CANCEL_REQUESTED
                logger.info("Cancellation requested")

    def _cancel_requested(self) -> bool:
        with self._state_lock:
            return self._state is RunState.CANCEL_REQUESTED

    def _ensure_ready_locked(self) -> None:
        if self._state is not RunState.IDLE:
            raise AgentBusy("Agent is already running...")
        if not self.config.has_api_key:
            raise ConfigError("API key not configured. Edit config file.")

    def _acquire(self, profile: ModeProfile) -> None:
        """Check preconditions and mark the agent busy, or raise."""
        with self._state_lock:
            self._ensure_ready_locked()

        # The health probe is a network call; keep it outside the lock.
        if profile.allows_actions and not self.executor.is_available():
            raise ExecutorUnavailable(
                "MCP server not available. Start the action server first!"
            )

        with self._state_lock:
            self._ensure_ready_locked()
            self._state = RunState.RUNNING

    def _release(self) -> None:
        with self._state_lock:
            self._state = RunState.IDLE

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def run(
        self,
        mode: Union[Mode, str],
        user_input: Optional[str] = None,
        on_output: Optional[OutputCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> Optional[threading.Thread]:
        """Start a run in the background and return immediately.

        Returns the worker thread, or None if the run was rejected. A
        rejected run reports its reason through ``on_output`` and calls
        ``on_complete`` before returning.
        """
        mode = Mode(mode)
        emit = on_output or _discard
        run = Run(mode=mode.value, input=user_input)

        try:
            self._acquire(MODE_PROFILES[mode])
        except STSAgentError as e:
            logger.info("%s run rejected: %s", mode.value, e)
            run.state = "rejected"
            run.error = str(e)
            self._emit(run, emit, str(e))
            if on_complete is not None:
                on_complete(run)
            return None

        worker = threading.Thread(
            target=self._work,
            args=(mode, user_input, emit, on_complete, run),
            name=f"sts-agent-{mode.value}",
            daemon=True,
        )
        worker.start()
        return worker

    def analyze(self, on_output=None, on_complete=None) -> Optional[threading.Thread]:
        """Read-only analysis of the current game state."""
        return self.run(Mode.ANALYZE, None, on_output, on_complete)

    def play(self, on_output=None, on_complete=None) -> Optional[threading.Thread]:
        """Let the model play through the action server."""
        return self.run(Mode.PLAY, None, on_output, on_complete)

    def chat(
        self, question: str, on_output=None, on_complete=None
    ) -> Optional[threading.Thread]:
        """Answer a question about the game."""
        return self.run(Mode.CHAT, question, on_output, on_complete)

    def quick_tip(self) -> "Future[str]":
        """One-shot combat suggestion, sharing the busy guard with ``run``."""
        future: "Future[str]" = Future()
        with self._state_lock:
            if self._state is not RunState.IDLE:
                future.set_result("Agent is busy...")
                return future
            if not self.config.has_api_key:
                future.set_result("API key not configured.")
                return future
            self._state = RunState.RUNNING

        threading.Thread(
            target=self._quick_tip_work,
            args=(future,),
            name="sts-agent-tip",
            daemon=True,
        ).start()
        return future

    def clear_history(self) -> None:
        self.store.clear()

    def is_in_game(self) -> bool:
        return self.local_tools.reader.is_in_game()

    def is_in_combat(self) -> bool:
        return self.local_tools.reader.is_in_combat()

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _work(
        self,
        mode: Mode,
        user_input: Optional[str],
        emit: OutputCallback,
        on_complete: Optional[CompleteCallback],
        run: Run,
    ) -> None:
        try:
            asyncio.run(self.run_async(mode, user_input, emit, run=run))
        except Exception as e:
            logger.error("%s run failed", mode.value, exc_info=True)
            run.state = "failed"
            run.error = str(e)
            self._emit(run, emit, f"\n[Error: {e}]")
        finally:
            self._release()
            if on_complete is not None:
                on_complete(run)

    def _quick_tip_work(self, future: "Future[str]") -> None:
        try:
            tip = asyncio.run(self._quick_tip_async())
        except Exception as e:
            logger.error("Error getting quick tip", exc_info=True)
            tip = f"Error: {e}"
        finally:
            self._release()
        future.set_result(tip)

    async def _quick_tip_async(self) -> str:
        if not self.local_tools.reader.is_in_combat():
            return "Not in combat."

        combat_state = self.local_tools.execute(GET_COMBAT_STATE)
        tip = await self.model.complete(
            [
                Message.system(QUICK_TIP_PROMPT),
                Message.user(f"Combat state:\n{combat_state}\n\nWhat should I play?"),
            ]
        )
        await self._remember("[User requested quick combat tip]", tip)
        return tip

    # ------------------------------------------------------------------
    # The loop
    # ------------------------------------------------------------------

    async def run_async(
        self,
        mode: Union[Mode, str],
        user_input: Optional[str] = None,
        on_output: Optional[OutputCallback] = None,
        run: Optional[Run] = None,
    ) -> Run:
        """Run the reason-act loop in the current event loop.

        This doesn't touch the busy state; ``run`` does that around it.
        """
        from sts_agent.hooks import (
            AfterIterationEventData,
            AfterRunEventData,
            BeforeIterationEventData,
            BeforeRunEventData,
        )

        mode = Mode(mode)
        profile = MODE_PROFILES[mode]
        emit = on_output or _discard
        if run is None:
            run = Run(mode=mode.value, input=user_input)

        start_time = time.time()
        await self.hooks.trigger("before_run", BeforeRunEventData(agent=self, run=run))

        tools = self._build_tools(profile)
        messages = self._build_messages(profile, user_input)
        last_content: Optional[str] = None

        while run.iterations < self.max_iterations:
            if self._cancel_requested():
                logger.info("Run cancelled after %d iterations", run.iterations)
                run.state = "cancelled"
                break

            iteration_start = time.time()
            run.iterations += 1

            hook_response = await self.hooks.trigger(
                "before_iteration",
                BeforeIterationEventData(run=run, iteration=run.iterations),
            )
            if hook_response and hook_response.action == "abort":
                logger.info("Run aborted by hook at iteration %d", run.iterations)
                run.state = "cancelled"
                break

            try:
                response = await self._call_model(run, messages, tools)

                if response.content:
                    self._emit(run, emit, response.content)
                    last_content = response.content

                if not response.has_tool_calls:
                    logger.info("Agent finished after %d iterations", run.iterations)
                    run.state = "completed"
                    break

                messages.append(
                    Message.assistant_with_tool_calls(
                        response.tool_calls, content=response.content
                    )
                )
                for tool_call in response.tool_calls:
                    result = await self._execute_tool_call(run, mode, tool_call, emit)
                    messages.append(Message.tool_response(tool_call.id, result.text))

            except Exception as e:
                logger.error("Error in agent loop", exc_info=True)
                run.state = "failed"
                run.error = str(e)
                self._emit(run, emit, f"\n[Error: {e}]")
                break

            await self.hooks.trigger(
                "after_iteration",
                AfterIterationEventData(
                    run=run,
                    iteration=run.iterations,
                    elapsed_time_ms=(time.time() - iteration_start) * 1000,
                ),
            )

        if run.state == "running":
            run.state = "max_iterations"
            self._emit(run, emit, "\n[Reached max iterations]")

        if last_content:
            run.response = last_content
            await self._remember(profile.history_prompt(user_input), last_content)

        await self.hooks.trigger(
            "after_run",
            AfterRunEventData(run=run, total_time_ms=(time.time() - start_time) * 1000),
        )
        return run

    def _build_tools(self, profile: ModeProfile) -> list[Tool]:
        tools: list[Tool] = list(self.local_tools.tools)
        if profile.allows_actions:
            tools.append(self.executor.tool)
        return tools

    def _build_messages(
        self, profile: ModeProfile, user_input: Optional[str]
    ) -> list[Message]:
        messages = [Message.system(profile.system_prompt(self.config))]

        summary, history = self.store.snapshot()
        if summary is not None:
            messages.append(
                Message.system(f"Previous conversation summary:\n{summary}")
            )
        messages.extend(history)

        messages.append(Message.user(profile.user_prompt(user_input)))
        return messages

    async def _call_model(
        self, run: Run, messages: list[Message], tools: list[Tool]
    ) -> ChatResponse:
        from sts_agent.hooks import AfterModelCallEventData, BeforeModelCallEventData

        await self.hooks.trigger(
            "before_model_call",
            BeforeModelCallEventData(run=run, messages=messages, tools=tools),
        )

        model_start = time.time()
        response = await self.model.complete_with_tools(messages, tools)

        await self.hooks.trigger(
            "after_model_call",
            AfterModelCallEventData(
                run=run,
                response=response,
                response_time_ms=(time.time() - model_start) * 1000,
            ),
        )
        return response

    async def _execute_tool_call(
        self,
        run: Run,
        mode: Mode,
        tool_call: ToolCall,
        emit: OutputCallback,
    ) -> ToolResult:
        from sts_agent.hooks import (
            AfterToolCallEventData,
            BeforeToolCallEventData,
            OnToolErrorEventData,
        )

        tool_start = time.time()
        hook_response = await self.hooks.trigger(
            "before_tool_call",
            BeforeToolCallEventData(
                run=run,
                tool_call=tool_call,
                tool_name=tool_call.tool_name,
                arguments=tool_call.arguments,
            ),
        )

        if (
            hook_response
            and hook_response.action == "skip"
            and hook_response.cached_result is not None
        ):
            result = ToolResult.ok(hook_response.cached_result)
        else:
            is_action = (
                tool_call.tool_name == EXECUTE_ACTIONS
                and not MODE_PROFILES[mode].blocks_actions
            )
            if is_action:
                self._emit(run, emit, "\n[Executing actions...] ")
            result = await self.dispatcher.dispatch(mode, tool_call)
            if is_action:
                self._emit(run, emit, str(result))

        tool_call.result = result.text
        if not result.success:
            tool_call.error = result.message
            await self.hooks.trigger(
                "on_tool_error",
                OnToolErrorEventData(
                    run=run,
                    tool_name=tool_call.tool_name,
                    arguments=tool_call.arguments,
                    error_message=result.message,
                ),
            )

        run.tool_calls.append(tool_call)
        await self.hooks.trigger(
            "after_tool_call",
            AfterToolCallEventData(
                run=run,
                tool_call=tool_call,
                tool_name=tool_call.tool_name,
                result=result,
                execution_time_ms=(time.time() - tool_start) * 1000,
            ),
        )
        return result

    async def _remember(self, user_text: str, assistant_text: str) -> None:
        """Save a finished turn and compact history when it's due."""
        from sts_agent.hooks import AfterCompactionEventData

        due = self.store.append(Message.user(user_text), Message.assistant(assistant_text))
        if due and await self.store.compact():
            summary, kept = self.store.snapshot()
            await self.hooks.trigger(
                "after_compaction",
                AfterCompactionEventData(summary=summary, kept_messages=len(kept)),
            )

    @staticmethod
    def _emit(run: Run, emit: OutputCallback, text: str) -> None:
        run.output.append(text)
        emit(text)
