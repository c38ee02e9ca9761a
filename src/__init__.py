"""Chat Stream - a streaming chat relay and client.

Combines FastAPI for HTTP streaming, Agno for provider access,
httpx for the streaming client, NiceGUI for visualization, and
Pydantic for data validation.

Components:
    - api: Streaming chat endpoint and SSE framing
    - agent: Provider configuration and streamed completions
    - client: Conversation state and the streaming client
    - ui: Web interface for chat interactions
    - models: Message and wire protocol schemas
"""

__version__ = "0.1.0"
