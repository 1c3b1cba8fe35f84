#!/usr/bin/env python3
"""Offline walkthrough of the agent loop with a scripted model.

No API key or action server is needed: the model replays canned
responses and the game state comes from an in-memory reader. Useful
for seeing the shape of a run (tool calls, output, history).

Run:
    python examples/mock_agent.py
"""

import json
import os
import sys
import threading

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sts_agent import (
    Agent,
    AgentConfig,
    ChatResponse,
    MCPExecutor,
    ModelAdaptor,
    ToolCall,
)


class ScriptedModelAdaptor(ModelAdaptor):
    """Replays predefined responses, one per model call."""

    def __init__(self):
        self.responses = [
            ChatResponse(
                content="Let me look at the fight first.",
                tool_calls=[
                    ToolCall(id="call-001", tool_name="get_combat_state", arguments={}),
                    ToolCall(id="call-002", tool_name="get_relics", arguments={}),
                ],
            ),
            ChatResponse(
                content=(
                    "The Jaw Worm intends to attack for 11. Play Defend twice and "
                    "Bash with the last energy: Vulnerable makes next turn's Strikes hit harder."
                ),
            ),
        ]

    async def complete_with_tools(self, messages, tools, **kwargs):
        print(f"  [model] {len(messages)} messages, {len(tools)} tools")
        return self.responses.pop(0)

    async def complete(self, messages, **kwargs):
        return "The player asked for combat advice against a Jaw Worm."


class InMemoryReader:
    state = {
        "game_state": {"character": "IRONCLAD", "hp": 62, "max_hp": 80, "floor": 3},
        "combat_state": {
            "energy": 3,
            "hand": [
                {"index": 1, "name": "Strike", "cost": 1},
                {"index": 2, "name": "Defend", "cost": 1},
                {"index": 3, "name": "Defend", "cost": 1},
                {"index": 4, "name": "Bash", "cost": 2},
            ],
            "enemies": [{"index": 1, "name": "Jaw Worm", "hp": 42, "intent": "ATTACK 11"}],
        },
        "relics": [{"name": "Burning Blood"}],
    }

    def is_in_game(self):
        return True

    def is_in_combat(self):
        return True

    def _get(self, key):
        return json.dumps(self.state.get(key, {}))

    def get_game_state(self):
        return self._get("game_state")

    def get_combat_state(self):
        return self._get("combat_state")

    def get_screen(self):
        return json.dumps({"screen": "NONE"})

    def get_deck(self):
        return self._get("deck")

    def get_relics(self):
        return self._get("relics")

    def get_potions(self):
        return self._get("potions")

    def get_map(self):
        return self._get("map")


def main():
    agent = Agent(
        model=ScriptedModelAdaptor(),
        executor=MCPExecutor("http://127.0.0.1:8080"),
        reader=InMemoryReader(),
        config=AgentConfig(llm_api_key="offline"),
    )

    @agent.hook("after_tool_call")
    async def trace(event):
        print(f"  [tool] {event.tool_name} -> {event.result.message[:60]}...")

    done = threading.Event()
    finished = {}

    def on_complete(run):
        finished["run"] = run
        done.set()

    agent.chat("What should I play this turn?", lambda text: print(text), on_complete)
    done.wait()

    run = finished["run"]
    print(f"\nState: {run.state}, iterations: {run.iterations}")
    print(f"Tool calls: {[tc.tool_name for tc in run.tool_calls]}")
    print(f"History: {len(agent.store)} messages")


if __name__ == "__main__":
    main()
