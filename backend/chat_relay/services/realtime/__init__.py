from chat_relay.services.realtime.coordinator import ChatCoordinator
from chat_relay.services.realtime.rooms import Connection, RoomRegistry

__all__ = ["ChatCoordinator", "Connection", "RoomRegistry"]
