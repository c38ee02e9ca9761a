"""Unit tests for individual components in isolation.

Coverage:
    - agent/: Configuration and provider event translation
    - client/: Conversation invariants
    - errors, SSE framing and structured logging

Uses mocks for Agno classes. Follows single responsibility per test function.
"""
