"""Conversation store implementations."""

from tandem.conversation.store import ConversationStore
from tandem.conversation.stores.inmemory import InMemoryConversationStore
from tandem.conversation.stores.redis import RedisConversationStore

__all__ = [
    "ConversationStore",
    "InMemoryConversationStore",
    "RedisConversationStore",
]
