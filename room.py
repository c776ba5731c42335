import hmac
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import WebSocket

from constants import ROOM_INACTIVITY_SECONDS
from errors import AuthorizationError, EndpointNotFoundError, SenderMismatchError
from logging_config import get_logger
from messages import parse_header, serialize

logger = get_logger(__name__)


class GameRole(str, Enum):
    PRESENTER = "presenter"
    CLIENT = "client"


def secrets_match(alleged: str, actual: str) -> bool:
    """Constant-time comparison of two secrets."""
    return hmac.compare_digest(alleged.encode("utf-8"), actual.encode("utf-8"))


@dataclass
class Endpoint:
    """One participant in a room.

    The record lives as long as the room; only the socket comes and goes.
    """
    id: str
    secret: str
    name: str
    role: GameRole = GameRole.CLIENT
    socket: Optional[WebSocket] = None

    @property
    def is_bound(self) -> bool:
        return self.socket is not None

    def bind(self, socket: WebSocket):
        self.socket = socket

    def unbind(self):
        self.socket = None

    async def send(self, frame: str) -> bool:
        if self.socket is None:
            return False
        await self.socket.send_text(frame)
        return True

    async def close(self):
        socket, self.socket = self.socket, None
        if socket is not None:
            await socket.close()


class Room:
    def __init__(self, room_id: str, game_name: str, presenter_id: str, presenter_secret: str, reporter):
        self.id = room_id
        self.game_name = game_name
        self.presenter_id = presenter_id
        self.last_message_time = time.time()
        self.idle = False
        self.endpoints: Dict[str, Endpoint] = {}
        self._reporter = reporter
        self.add_endpoint(presenter_id, presenter_secret, "presenter", GameRole.PRESENTER)

    @property
    def is_active(self) -> bool:
        return time.time() - self.last_message_time < ROOM_INACTIVITY_SECONDS

    @property
    def user_count(self) -> int:
        return sum(
            1 for endpoint in self.endpoints.values()
            if endpoint.role != GameRole.PRESENTER and endpoint.is_bound
        )

    def add_endpoint(self, endpoint_id: str, secret: str, name: str, role: GameRole = GameRole.CLIENT):
        self.endpoints[endpoint_id] = Endpoint(id=endpoint_id, secret=secret, name=name, role=role)

    def find_endpoint_by_secret(self, secret: str) -> Optional[Endpoint]:
        found = None
        for endpoint in self.endpoints.values():
            if secrets_match(secret, endpoint.secret):
                found = endpoint
        return found

    def validate_presenter(self, endpoint_id: str, secret: str) -> bool:
        endpoint = self.endpoints.get(endpoint_id)
        if endpoint is None or endpoint.role != GameRole.PRESENTER:
            return False
        return secrets_match(secret, endpoint.secret)

    def set_socket(self, endpoint_id: str, alleged_secret: str, socket: WebSocket):
        endpoint = self.endpoints.get(endpoint_id)
        if endpoint is None:
            raise EndpointNotFoundError(f"set_socket couldn't find player with id {endpoint_id} in room {self.id}")
        if not secrets_match(alleged_secret, endpoint.secret):
            raise AuthorizationError(f"set_socket got a bad secret for player with id {endpoint_id} in room {self.id}")

        if endpoint.is_bound:
            logger.info(f"Replacing socket for {endpoint_id} in room {self.id}")
        endpoint.bind(socket)

    def remove_socket(self, endpoint_id: str, socket: Optional[WebSocket] = None):
        """Detach the endpoint's socket.

        When ``socket`` is given the endpoint is only unbound if that socket is
        still the one bound to it, so a late close from a replaced connection
        leaves the new one alone.
        """
        endpoint = self.endpoints.get(endpoint_id)
        if endpoint is None or not endpoint.is_bound:
            return
        if socket is not None and endpoint.socket is not socket:
            logger.debug(f"Ignoring close of a replaced socket for {endpoint_id} in room {self.id}")
            return
        endpoint.unbind()

    async def receive_message(self, sender_id: str, frame: str):
        header = parse_header(frame)
        if header.sender_id != sender_id:
            raise SenderMismatchError(f"Sender {sender_id} included non-matching sender {header.sender_id}")
        await self._forward(header.receiver_id, frame)

    async def send_message(self, receiver_id: str, sender_id: str, message: Any, message_type: Optional[str] = None):
        frame = serialize(receiver_id, sender_id, message, message_type)
        await self._forward(receiver_id, frame)

    async def _forward(self, receiver_id: str, frame: str):
        self.last_message_time = time.time()
        self._reporter.report_sent_message(frame)

        endpoint = self.endpoints.get(receiver_id)
        if endpoint is None:
            logger.warning(f"No endpoint found for {receiver_id} in room {self.id}")
            return
        if not endpoint.is_bound:
            logger.debug(f"No socket found for {receiver_id} in room {self.id}, dropping message")
            return

        try:
            await endpoint.send(frame)
        except Exception as e:
            # the socket's own close handler cleans up dead connections
            logger.warning(f"Error sending message to {receiver_id} in room {self.id}: {e}")

    async def clear(self):
        """End the game: everyone but the presenter is disconnected and forgotten."""
        for endpoint_id in [key for key in self.endpoints if key != self.presenter_id]:
            endpoint = self.endpoints.pop(endpoint_id)
            try:
                await endpoint.close()
            except Exception as e:
                logger.debug(f"Error closing socket for {endpoint_id} in room {self.id}: {e}")
        self.idle = True
        logger.info(f"Room {self.id} cleared and marked idle")
