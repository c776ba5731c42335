import threading
from dataclasses import dataclass
from typing import Dict, Optional

from constants import MAX_PLAYER_NAME_LENGTH
from errors import AuthorizationError, UserError
from id_codes import ROOM_CODE_LENGTH, generate_personal_id, generate_personal_secret, generate_room_code
from logging_config import get_logger
from room import GameRole, Room
from telemetry import EventKind, TelemetryAggregator

logger = get_logger(__name__)


def normalize_room_code(room_id: Optional[str]) -> Optional[str]:
    return room_id.upper() if room_id else room_id


@dataclass
class ExistingRoomInfo:
    id: str
    presenter_id: str
    presenter_secret: str


@dataclass
class GameInstanceProperties:
    game_name: str
    room_id: str
    personal_id: str
    presenter_id: str
    personal_secret: str
    role: GameRole


class SessionRegistry:
    """Owns every room on this server and the telemetry they report into.

    One instance is created when the application starts. All room lifecycle
    changes go through it.
    """

    def __init__(self, telemetry: Optional[TelemetryAggregator] = None):
        self.telemetry = telemetry or TelemetryAggregator()
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        logger.info("Session registry initialized")

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def start_game(self, game_name: str, existing_room: Optional[ExistingRoomInfo] = None) -> GameInstanceProperties:
        if not game_name:
            self.telemetry.log_event(EventKind.BadRoomCreation, info="Missing game name")
            raise UserError("Game name not specified")

        if existing_room and self._reuse_room(game_name, existing_room):
            logger.info(f"Reusing room id: {existing_room.id} for {game_name}")
            room_id = existing_room.id
            presenter_id = existing_room.presenter_id
            presenter_secret = existing_room.presenter_secret
        else:
            room = self._create_room(game_name)
            logger.info(f"Created a new room id: {room.id} for {game_name}")
            room_id = room.id
            presenter_id = room.presenter_id
            presenter_secret = room.endpoints[presenter_id].secret

        return GameInstanceProperties(
            game_name=game_name,
            room_id=room_id,
            personal_id=presenter_id,
            presenter_id=presenter_id,
            personal_secret=presenter_secret,
            role=GameRole.PRESENTER,
        )

    def _reuse_room(self, game_name: str, existing_room: ExistingRoomInfo) -> bool:
        with self._lock:
            room = self._rooms.get(existing_room.id)
            if room is None or not room.validate_presenter(existing_room.presenter_id, existing_room.presenter_secret):
                logger.info(f"Existing room {existing_room.id} could not be reused, creating a new one")
                return False
            room.game_name = game_name
            room.idle = False
            return True

    def _create_room(self, game_name: str) -> Room:
        presenter_id = generate_personal_id()
        presenter_secret = generate_personal_secret()
        with self._lock:
            room_id = generate_room_code()
            while room_id in self._rooms:
                room_id = generate_room_code()
            room = Room(room_id, game_name, presenter_id, presenter_secret, self)
            self._rooms[room_id] = room
            return room

    def join_game(self, room_id: str, player_name: str) -> GameInstanceProperties:
        if not room_id or len(room_id) > ROOM_CODE_LENGTH:
            raise UserError(f"Invalid Room Code ({room_id})")
        if not player_name or len(player_name) > MAX_PLAYER_NAME_LENGTH:
            raise UserError(f"Invalid Player name: ({player_name})")

        room_id = normalize_room_code(room_id)
        logger.info(f"Join: Room: {room_id}, Name: {player_name}")

        room = self._rooms.get(room_id)
        if room is None:
            self.telemetry.log_event(EventKind.BadJoin, info="Join invalid room id")
            raise UserError(f"There is no room with code {room_id}")
        if room.idle:
            self.telemetry.log_event(EventKind.BadJoin, info="Join idle room")
            raise UserError(f"The game in room {room_id} has ended")

        personal_id = generate_personal_id()
        personal_secret = generate_personal_secret()
        room.add_endpoint(personal_id, personal_secret, player_name, GameRole.CLIENT)

        return GameInstanceProperties(
            game_name=room.game_name,
            room_id=room_id,
            personal_id=personal_id,
            presenter_id=room.presenter_id,
            personal_secret=personal_secret,
            role=GameRole.CLIENT,
        )

    async def clear_room(self, room_id: str, presenter_secret: str):
        room_id = normalize_room_code(room_id)
        room = self._rooms.get(room_id)
        if room is None:
            raise UserError(f"Could not find room with id {room_id}")

        endpoint = room.find_endpoint_by_secret(presenter_secret or "")
        if endpoint is None:
            raise AuthorizationError(f"Secret not found in room {room_id}")
        if endpoint.id != room.presenter_id:
            raise AuthorizationError("Secret does not belong to the presenter")

        await room.clear()

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def purge_inactive_rooms(self) -> int:
        logger.info("Purging rooms...")
        purged = 0
        with self._lock:
            for room in list(self._rooms.values()):
                if not room.is_active:
                    logger.info(f"Purging inactive room {room.id}")
                    del self._rooms[room.id]
                    purged += 1
        return purged

    def report_sent_message(self, frame: str):
        self.telemetry.log_event(EventKind.MessageSend, len(frame))

    def report_received_message(self, frame: str):
        self.telemetry.log_event(EventKind.MessageReceive, len(frame))

    def report_error(self, category: str):
        self.telemetry.log_event(EventKind.GeneralError, info=category)

    def report_request(self, label: str):
        self.telemetry.log_event(EventKind.GetRequest, info=label)

    def room_summary(self) -> dict:
        rooms = list(self._rooms.values())
        active_rooms = [room for room in rooms if room.is_active]
        return {
            "roomCount": len(rooms),
            "activeRooms": len(active_rooms),
            "activeUsers": sum(room.user_count for room in active_rooms),
        }

    def get_health_data(self, earliest: float, span: float, latest: Optional[float] = None) -> dict:
        health = self.telemetry.get_health_data(earliest, span, latest)
        health["rooms"] = self.room_summary()
        return health

    def sample_cpu_usage(self):
        self.telemetry.cpu_usage.sample()
