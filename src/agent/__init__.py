"""Agno agent logic for the text-generation provider.

Responsibilities:
    - Provider configuration from the environment
    - The fixed system instruction
    - Streaming completions adapted into StreamEvents
    - Provider error classification

Maintains clean separation from the HTTP layer.
"""

from src.agent.chat_agent import AgentService, ChatProvider, ProviderFactory, get_agent_service
from src.agent.config import AgentConfig, get_agent_config, load_agent_config

__all__ = [
    "AgentConfig",
    "AgentService",
    "ChatProvider",
    "ProviderFactory",
    "get_agent_config",
    "get_agent_service",
    "load_agent_config",
]
