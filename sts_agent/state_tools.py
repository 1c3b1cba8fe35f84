"""Read-only game state tools answered by a local state reader.

These tools run in-process and never change game state, so they are
offered to the model in every mode.
"""

import logging
from typing import Callable, Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from sts_agent.exceptions import ToolExecutionError, ToolNotFound
from sts_agent.tools import Tool, ToolInput

logger = logging.getLogger(__name__)

GET_GAME_STATE = "get_game_state"
GET_COMBAT_STATE = "get_combat_state"
GET_SCREEN = "get_screen"
GET_DECK = "get_deck"
GET_RELICS = "get_relics"
GET_POTIONS = "get_potions"
GET_MAP = "get_map"


@runtime_checkable
class StateReader(Protocol):
    """Produces text snapshots of the running game.

    Every query must be safe to call at any time and return a string,
    describing why the query doesn't apply when it doesn't (for example
    ``get_combat_state`` outside of combat).
    """

    def is_in_game(self) -> bool: ...

    def is_in_combat(self) -> bool: ...

    def get_game_state(self) -> str: ...

    def get_combat_state(self) -> str: ...

    def get_screen(self) -> str: ...

    def get_deck(self) -> str: ...

    def get_relics(self) -> str: ...

    def get_potions(self) -> str: ...

    def get_map(self) -> str: ...


class StateQueryInput(ToolInput):
    """State queries take no parameters."""


class StateQueryTool(Tool):
    """One named read-only query against a StateReader."""

    input_model = StateQueryInput

    def __init__(
        self,
        name: str,
        description: str,
        query: Callable[[StateReader], str],
    ):
        self.name = name
        self.description = description
        self._query = query

    def read(self, reader: StateReader) -> str:
        return self._query(reader)


def _default_tools() -> list[StateQueryTool]:
    return [
        StateQueryTool(
            GET_GAME_STATE,
            "Get basic game state: character, HP, gold, floor, act, ascension level. "
            "Use this first to understand the overall situation.",
            lambda reader: reader.get_game_state(),
        ),
        StateQueryTool(
            GET_COMBAT_STATE,
            "Get combat state: energy, hand cards (with index, name, cost, type, "
            "playable status), enemies (with index, name, HP, intent, powers), "
            "player powers/buffs. Only available during combat. "
            "Card and enemy indices are 1-based.",
            lambda reader: reader.get_combat_state(),
        ),
        StateQueryTool(
            GET_SCREEN,
            "Get current screen state: screen type, available choices (with 1-based "
            "index), button availability (can_proceed, can_skip, can_cancel). "
            "Use this to understand what actions are available.",
            lambda reader: reader.get_screen(),
        ),
        StateQueryTool(
            GET_DECK,
            "Get full deck information: all cards with name, type, cost, rarity, "
            "upgrade status.",
            lambda reader: reader.get_deck(),
        ),
        StateQueryTool(
            GET_RELICS,
            "Get equipped relics: name, id, counter value.",
            lambda reader: reader.get_relics(),
        ),
        StateQueryTool(
            GET_POTIONS,
            "Get potion slots: slot number (1-based), name, whether empty, "
            "can_use status, requires_target.",
            lambda reader: reader.get_potions(),
        ),
        StateQueryTool(
            GET_MAP,
            "Get map information: current floor, act, current room, available next "
            "nodes with symbols, boss name.",
            lambda reader: reader.get_map(),
        ),
    ]


class LocalToolProvider:
    """Serves the state query tools from an injected StateReader."""

    def __init__(
        self,
        reader: StateReader,
        tools: Optional[list[StateQueryTool]] = None,
    ):
        self.reader = reader
        if tools is None:
            tools = _default_tools()
        self._tools = {tool.name: tool for tool in tools}

    @property
    def tools(self) -> list[StateQueryTool]:
        return list(self._tools.values())

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def execute(self, name: str, arguments: Optional[dict] = None) -> str:
        """Run a state query synchronously and return its text payload.

        Raises:
            ToolNotFound: If ``name`` isn't a local tool.
            ToolExecutionError: If the arguments are invalid or the reader fails.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFound(f"Unknown tool: {name}")

        try:
            tool.validate(arguments or {})
        except ValidationError as e:
            raise ToolExecutionError(f"Invalid arguments for '{name}': {e}") from e

        try:
            return tool.read(self.reader)
        except Exception as e:
            logger.error("State query '%s' failed", name, exc_info=True)
            raise ToolExecutionError(f"State query '{name}' failed: {e}") from e
