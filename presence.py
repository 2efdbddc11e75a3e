"""Presence directory and real-time fan-out.

Maps a user id to the one WebSocket channel that user currently has open.
The map lives in process memory and is owned by the event loop: register,
unregister and dispatch all run on the loop (WebSocket endpoint and
background tasks), never from the request worker threads. A multi-process
deployment would need an external presence store.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class Event(BaseModel):
    """A state-change notice. `user_id=None` addresses every connected client."""
    name: str = Field(..., description="Event name sent to the client")
    payload: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = Field(None, description="Recipient; None means broadcast")


def status_update(user_id, other_user_id, new_status: str) -> Event:
    return Event(
        name="statusUpdate",
        payload={"updatedUserId": str(other_user_id), "newStatus": new_status},
        user_id=str(user_id),
    )


class PresenceHub:
    """Tracks live channels by user and pushes events over them.

    Delivery is fire-and-forget: events for users without a channel are
    dropped, and a channel that fails to send is removed.
    """

    def __init__(self) -> None:
        self._channels: Dict[str, Any] = {}

    def register(self, user_id: str, channel) -> None:
        # Last registration wins, so a second device takes over the slot.
        previous = self._channels.get(user_id)
        if previous is not None and previous is not channel:
            logger.info("presence: user %s moved to a new channel", user_id)
        self._channels[user_id] = channel

    def unregister(self, channel) -> List[str]:
        removed = [uid for uid, ch in self._channels.items() if ch is channel]
        for uid in removed:
            del self._channels[uid]
        return removed

    def lookup(self, user_id: str):
        return self._channels.get(str(user_id))

    def online(self) -> List[str]:
        return list(self._channels)

    async def push_to(self, user_id: str, event: str, payload: dict) -> bool:
        channel = self.lookup(user_id)
        if channel is None:
            return False
        return await self._send(channel, event, payload)

    async def broadcast(self, event: str, payload: dict) -> int:
        delivered = 0
        for channel in list(self._channels.values()):
            if await self._send(channel, event, payload):
                delivered += 1
        return delivered

    async def dispatch(self, events: Iterable[Event]) -> None:
        for ev in events:
            if ev.user_id is None:
                await self.broadcast(ev.name, ev.payload)
            else:
                await self.push_to(ev.user_id, ev.name, ev.payload)

    async def _send(self, channel, event: str, payload: dict) -> bool:
        try:
            await channel.send_json(jsonable_encoder({"event": event, "data": payload}))
            return True
        except Exception as exc:
            dropped = self.unregister(channel)
            logger.warning("presence: dropped %s for %s: %s", event, dropped, exc)
            return False


hub = PresenceHub()
"""Process-wide presence directory used by the API."""
