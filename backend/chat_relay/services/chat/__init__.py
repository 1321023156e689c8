from chat_relay.services.chat.chat_service import ChatHistory, ChatService
from chat_relay.services.chat.exceptions import ChatServiceError, MessageValidationError

__all__ = [
    "ChatHistory",
    "ChatService",
    "ChatServiceError",
    "MessageValidationError",
]
