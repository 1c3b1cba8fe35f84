"""Model adaptors for sts-agent.

This module provides implementations of ModelAdaptor for LLM providers.
"""

from sts_agent.adaptors.openai import OpenAIAdaptor

__all__ = ["OpenAIAdaptor"]
