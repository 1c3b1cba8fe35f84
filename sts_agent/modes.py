from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from sts_agent.config import AgentConfig


class Mode(str, Enum):
    """How the agent is allowed to interact with the game."""

    ANALYZE = "analyze"  # read-only advice
    PLAY = "play"  # full loop, may execute actions
    CHAT = "chat"  # free-form questions


@dataclass(frozen=True)
class ModeProfile:
    """Everything the loop needs to know about one mode."""

    # Whether execute_actions is advertised to the model.
    allows_actions: bool
    prompt_addendum: Callable[[AgentConfig], Optional[str]]
    # Fixed user instruction; None means "use the caller's input".
    instruction: Optional[str] = None
    # What gets stored in history in place of the instruction.
    history_label: Optional[str] = None
    # Refuse execute_actions even if the model calls it unprompted.
    blocks_actions: bool = False

    def system_prompt(self, config: AgentConfig) -> str:
        addendum = self.prompt_addendum(config)
        if addendum:
            return f"{config.system_prompt}\n\n{addendum}"
        return config.system_prompt

    def user_prompt(self, user_input: Optional[str]) -> str:
        if self.instruction is not None:
            return self.instruction
        return user_input or "Hello"

    def history_prompt(self, user_input: Optional[str]) -> str:
        if self.history_label is not None:
            return self.history_label
        return self.user_prompt(user_input)


MODE_PROFILES: dict[Mode, ModeProfile] = {
    Mode.ANALYZE: ModeProfile(
        allows_actions=False,
        prompt_addendum=lambda config: config.analyze_prompt,
        instruction=(
            "Analyze the current game state and provide strategic advice. "
            "Use the state query tools to understand the situation."
        ),
        history_label="[User requested game state analysis]",
        blocks_actions=True,
    ),
    Mode.PLAY: ModeProfile(
        allows_actions=True,
        prompt_addendum=lambda config: config.play_prompt,
        instruction=(
            "Play the game. First use state query tools to understand the "
            "situation, then use execute_actions to play. Say 'done' when finished."
        ),
        history_label="[User requested AI to play]",
    ),
    Mode.CHAT: ModeProfile(
        allows_actions=False,
        prompt_addendum=lambda config: None,
    ),
}
