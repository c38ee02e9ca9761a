"""Client side of the streaming chat protocol.

Responsibilities:
    - Owning one conversation and its message lifecycle
    - Posting the history and consuming the streamed reply
    - Notifying the presentation layer on every change

Contains no rendering logic.
"""

from src.client.chat_client import StreamingChatClient
from src.client.conversation import Conversation

__all__ = ["Conversation", "StreamingChatClient"]
