"""Test package for the streaming chat relay.

Structure:
    - unit/: Individual function and class tests
    - integration/: Endpoint and client workflows over HTTP

The remote provider is replaced by a scripted stub unless a test is
marked as needing a real API key.
"""
