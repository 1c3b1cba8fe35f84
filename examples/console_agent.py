#!/usr/bin/env python3
"""Interactive console for the agent.

Reads game state from a JSON snapshot file and sends actions to the MCP
action server configured in the environment.

Requirements:
- STS_AGENT_LLM_API_KEY or OPENAI_API_KEY
- An action server at STS_AGENT_MCP_SERVER_URL for ``play``

Run:
    python examples/console_agent.py snapshot.json

Commands: ``analyze``, ``play``, ``tip``, ``clear``, ``cancel``, ``quit``;
anything else is sent as a chat question.
"""

import logging
import os
import sys
import threading

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from snapshot_reader import SnapshotReader

from sts_agent import Agent, AgentConfig


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        filename="sts-agent.log",
    )

    snapshot = sys.argv[1] if len(sys.argv) > 1 else "snapshot.json"
    agent = Agent.from_config(AgentConfig(), SnapshotReader(snapshot))

    @agent.hook("after_compaction")
    async def on_compaction(event):
        print(f"\n[history compacted, kept {event.kept_messages} messages]")

    finished = threading.Event()

    def on_output(text: str) -> None:
        print(text, end="", flush=True)

    def on_complete(run) -> None:
        print(f"\n[{run.state}]")
        finished.set()

    while True:
        try:
            line = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not line:
            continue
        if line == "quit":
            break
        if line == "cancel":
            agent.cancel()
            continue
        if line == "clear":
            agent.clear_history()
            continue
        if line == "tip":
            print(agent.quick_tip().result())
            continue

        finished.clear()
        if line == "analyze":
            agent.analyze(on_output, on_complete)
        elif line == "play":
            agent.play(on_output, on_complete)
        else:
            agent.chat(line, on_output, on_complete)
        finished.wait()


if __name__ == "__main__":
    main()
