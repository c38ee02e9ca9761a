"""FastAPI endpoints for the streaming chat relay.

HTTP and streaming routes with async request handling.
Replies are streamed as Server-Sent Events.

Endpoints:
    - GET /health: Service health status
    - POST /api/chat: Streamed chat completion
"""

from src.api.app import app, create_app

__all__ = ["app", "create_app"]
