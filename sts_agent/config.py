"""Agent settings loaded from the environment.

Every field can be set with an ``STS_AGENT_`` prefixed variable
(``STS_AGENT_LLM_MODEL``, ``STS_AGENT_MCP_SERVER_URL``, ...). The API key
also falls back to ``OPENAI_API_KEY``.
"""

import logging

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert Slay the Spire AI assistant.\n"
    "You have access to tools that can read the game state and execute actions.\n"
    "All card and enemy indices are 1-based (first = 1).\n"
    "Attack cards require target_index to specify which enemy to attack."
)

DEFAULT_ANALYZE_PROMPT = (
    "ANALYZE MODE: Provide strategic advice WITHOUT executing actions.\n"
    "Use state query tools to understand the situation, then give recommendations.\n"
    "Consider: energy efficiency, enemy intents, card synergies, relic effects.\n"
    "Be concise but actionable. Start with your recommendation."
)

DEFAULT_PLAY_PROMPT = (
    "PLAY MODE: Play the game using available tools.\n"
    "1. First use get_combat_state or get_screen to understand the situation\n"
    "2. Then use execute_actions to play cards and make decisions\n"
    "3. In combat: play cards efficiently, use all energy, then end_turn\n"
    "4. Outside combat: use choose() for options, proceed() to continue\n"
    "Say 'done' when you've completed your turn or action."
)

_PROMPT_DEFAULTS = {
    "system_prompt": DEFAULT_SYSTEM_PROMPT,
    "analyze_prompt": DEFAULT_ANALYZE_PROMPT,
    "play_prompt": DEFAULT_PLAY_PROMPT,
}


class AgentConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STS_AGENT_", extra="ignore")

    llm_api_key: str = Field(
        "",
        validation_alias=AliasChoices("STS_AGENT_LLM_API_KEY", "OPENAI_API_KEY", "llm_api_key"),
    )
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o-mini"

    mcp_server_url: str = "http://127.0.0.1:8080"

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    analyze_prompt: str = DEFAULT_ANALYZE_PROMPT
    play_prompt: str = DEFAULT_PLAY_PROMPT

    @field_validator("system_prompt", "analyze_prompt", "play_prompt", mode="before")
    @classmethod
    def _parse_prompt(cls, v, info):
        # Single-line config values encode newlines as a literal "\n".
        if v is None or not str(v).strip():
            return _PROMPT_DEFAULTS[info.field_name]
        return str(v).replace("\\n", "\n")

    @property
    def has_api_key(self) -> bool:
        return bool(self.llm_api_key and self.llm_api_key.strip())

    def log_summary(self) -> None:
        logger.info("LLM: %s @ %s", self.llm_model, self.llm_base_url)
        logger.info("MCP: %s", self.mcp_server_url)
