"""NiceGUI interface - thin visualization layer for chat interactions.

Responsibilities:
    - Chat message display, re-rendered on every streamed fragment
    - Example prompt shortcuts
    - Error notifications

Contains no protocol logic. Delegates all operations to StreamingChatClient.
"""
