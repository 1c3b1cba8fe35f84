import asyncio
import json
import threading
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from sts_agent.config import AgentConfig
from sts_agent.execution import ChatResponse, Run, ToolCall, ToolResult
from sts_agent.mcp import ExecuteActionsTool, MCPExecutor
from sts_agent.model import ModelAdaptor


class FakeReader:
    """In-memory StateReader with a canned snapshot per query."""

    def __init__(self, in_game: bool = True, in_combat: bool = True):
        self.in_game = in_game
        self.in_combat = in_combat
        self.queries: list[str] = []

    def _answer(self, name: str, payload: dict) -> str:
        self.queries.append(name)
        return json.dumps(payload)

    def is_in_game(self) -> bool:
        return self.in_game

    def is_in_combat(self) -> bool:
        return self.in_combat

    def get_game_state(self) -> str:
        return self._answer("get_game_state", {"character": "Ironclad", "hp": "70/80"})

    def get_combat_state(self) -> str:
        if not self.in_combat:
            self.queries.append("get_combat_state")
            return "Not in combat."
        return self._answer(
            "get_combat_state",
            {"energy": 3, "hand": ["Strike", "Bash"], "enemies": ["Jaw Worm"]},
        )

    def get_screen(self) -> str:
        return self._answer("get_screen", {"screen": "NONE"})

    def get_deck(self) -> str:
        return self._answer("get_deck", {"cards": ["Strike", "Defend", "Bash"]})

    def get_relics(self) -> str:
        return self._answer("get_relics", {"relics": ["Burning Blood"]})

    def get_potions(self) -> str:
        return self._answer("get_potions", {"slots": []})

    def get_map(self) -> str:
        return self._answer("get_map", {"floor": 3, "act": 1})


class ScriptedModel(ModelAdaptor):
    """Returns queued ChatResponses; raises queued exceptions."""

    def __init__(self, responses=None, completion="A short summary."):
        self.responses = list(responses or [])
        self.completion = completion
        self.calls: list[tuple[list, list]] = []
        self.complete_calls: list[list] = []

    async def complete_with_tools(self, messages, tools, **kwargs):
        self.calls.append((list(messages), list(tools)))
        if not self.responses:
            return ChatResponse(content="done", finish_reason="stop")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def complete(self, messages, **kwargs):
        self.complete_calls.append(list(messages))
        if isinstance(self.completion, Exception):
            raise self.completion
        return self.completion


class BlockingModel(ModelAdaptor):
    """Blocks its first model call until ``release`` is set."""

    def __init__(self, response: Optional[ChatResponse] = None):
        self.started = threading.Event()
        self.release = threading.Event()
        self.response = response or ChatResponse(content="finished")
        self.call_count = 0

    async def complete_with_tools(self, messages, tools, **kwargs):
        self.call_count += 1
        self.started.set()
        await asyncio.to_thread(self.release.wait, 5)
        return self.response

    async def complete(self, messages, **kwargs):
        self.started.set()
        await asyncio.to_thread(self.release.wait, 5)
        return "Play Bash on the Jaw Worm."


def tool_call(name: str, arguments: Optional[dict] = None, call_id: str = "call_1") -> ToolCall:
    return ToolCall(id=call_id, tool_name=name, arguments=arguments or {})


def tool_response(*calls: ToolCall, content: Optional[str] = None) -> ChatResponse:
    return ChatResponse(content=content, tool_calls=list(calls), finish_reason="tool_calls")


def run_and_wait(agent, mode, user_input=None, timeout: float = 5.0):
    """Start a run on its worker thread and block until on_complete fires."""
    done = threading.Event()
    output: list[str] = []
    finished: dict[str, Run] = {}

    def on_complete(run: Run) -> None:
        finished["run"] = run
        done.set()

    agent.run(mode, user_input, output.append, on_complete)
    assert done.wait(timeout), "run did not complete"
    return finished["run"], output


@pytest.fixture
def reader():
    return FakeReader()


@pytest.fixture
def config():
    return AgentConfig(llm_api_key="sk-test")


@pytest.fixture
def executor():
    mock = MagicMock(spec=MCPExecutor)
    mock.tool = ExecuteActionsTool()
    mock.is_available.return_value = True
    mock.execute_actions = AsyncMock(return_value=ToolResult.ok("Actions executed"))
    return mock
