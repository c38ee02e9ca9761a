"""Agno agent service adapting the provider's token stream to StreamEvents.

Core module for talking to the remote text-generation provider.

Architecture Decisions:

1. **Explicit event boundary** - Agno's run events change shape between
   releases (callback hooks went away, event classes were renamed). The
   service translates them into our own StreamEvent type here, so the
   endpoint never depends on a third-party event signature.

2. **Errors raised, not yielded** - Provider failures surface as
   ProviderError exceptions, classified once (rate limit vs. generic). The
   endpoint decides whether that becomes an HTTP status (before the first
   byte) or an in-band error marker (after).

3. **Stateless runs** - The full history arrives with every request, so the
   agent has no storage and no session history of its own.

4. **Singleton Pattern** - One agent per configuration, reused across
   requests; rebuilt only when the configuration changes.
"""

import logging
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Protocol

from agno.agent import Agent
from agno.exceptions import ModelProviderError
from agno.models.message import Message as AgnoMessage
from agno.models.openai import OpenAIChat
from agno.run.agent import RunContentEvent, RunErrorEvent

from src.agent.config import AgentConfig
from src.errors import ProviderError
from src.models.schemas import ChatMessage, StreamEvent

logger = logging.getLogger(__name__)


class ChatProvider(Protocol):
    """Anything that turns a conversation into a stream of StreamEvents."""

    def stream_reply(self, messages: Sequence[ChatMessage]) -> AsyncIterator[StreamEvent]: ...


ProviderFactory = Callable[[AgentConfig], ChatProvider]


class AgentService:
    """Service wrapping an Agno agent for streamed chat completions.

    Wraps Agno's Agent with:
    - The fixed system instruction from configuration
    - Bounded generation length and fixed temperature
    - Translation of run events into StreamEvents
    - Classification of provider failures
    """

    def __init__(self, config: AgentConfig) -> None:
        """Initialize the agent service.

        Args:
            config: Provider configuration, including the system prompt.
        """
        self._config = config
        self._agent = self._create_agent()

    @property
    def config(self) -> AgentConfig:
        return self._config

    def _create_agent(self) -> Agent:
        """Create the Agno agent instance.

        Returns:
            Agent with an OpenAI model and the configured system message.
        """
        model = OpenAIChat(
            id=self._config.model_name,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )

        return Agent(
            model=model,
            # Used verbatim as the system message, ahead of the conversation
            system_message=self._config.system_prompt,
            markdown=False,
        )

    async def stream_reply(self, messages: Sequence[ChatMessage]) -> AsyncIterator[StreamEvent]:
        """Stream the assistant's reply to a conversation.

        Args:
            messages: Full conversation history, oldest first.

        Yields:
            One text-delta event per fragment, then a finish event.

        Raises:
            ProviderError: If the provider rejects the request or the run fails.
        """
        run_input = [AgnoMessage(role=m.role.value, content=m.content) for m in messages]
        run = self._agent.arun(run_input, stream=True)

        try:
            async for chunk in run:
                if isinstance(chunk, RunErrorEvent):
                    raise ProviderError.classify(
                        str(chunk.content or "Unknown error occurred during streaming.")
                    )
                if isinstance(chunk, RunContentEvent) and chunk.content:
                    yield StreamEvent.text_delta(str(chunk.content))
        except ModelProviderError as e:
            raise ProviderError.classify(str(e), getattr(e, "status_code", None)) from e
        finally:
            aclose = getattr(run, "aclose", None)
            if aclose is not None:
                await aclose()

        yield StreamEvent.finish()


# Module-level singleton instance
_agent_service: AgentService | None = None


def get_agent_service(config: AgentConfig) -> AgentService:
    """Get or create the global agent service for a configuration.

    Args:
        config: Configuration loaded for the current request.

    Returns:
        The AgentService instance.
    """
    global _agent_service
    if _agent_service is None or _agent_service.config != config:
        logger.info(f"Creating agent service for model {config.model_name}")
        _agent_service = AgentService(config)
    return _agent_service
