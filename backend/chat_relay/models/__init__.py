from chat_relay.models.chat_session import ChatSession
from chat_relay.models.message import Message, Sender

__all__ = ["ChatSession", "Message", "Sender"]
