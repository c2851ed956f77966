from .controller import ConversationController
from .log import MessageLog
from .models import ChatMessage, ConversationSnapshot, ConversationState, Participant

__all__ = [
    "ConversationController",
    "MessageLog",
    "ChatMessage",
    "ConversationSnapshot",
    "ConversationState",
    "Participant",
]
