"""Integration tests for components working together as a system.

Coverage:
    - POST /api/chat with real HTTP requests through ASGITransport
    - StreamingChatClient against the real endpoint
    - Client behaviour on hand-built streams and transport faults
    - Live LLM calls (when OPENAI_API_KEY is configured)
"""
