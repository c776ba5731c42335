from dataclasses import asdict

from fastapi import APIRouter, Depends, Request

from backend import ExistingRoomInfo, SessionRegistry
from errors import UserError
from logging_config import get_logger
from schemas.games import (
    GameInstanceResponse,
    JoinGameRequest,
    MessageResponse,
    StartGameRequest,
    TerminateGameRequest,
)

logger = get_logger(__name__)

games_router = APIRouter(prefix="/api", tags=["games"])


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


@games_router.post("/startgame", response_model=GameInstanceResponse)
async def start_game(body: StartGameRequest, registry: SessionRegistry = Depends(get_registry)):
    existing_room = None
    if body.existing_room:
        logger.info(f"Existing room specified: {body.existing_room.id}")
        existing_room = ExistingRoomInfo(
            id=body.existing_room.id,
            presenter_id=body.existing_room.presenter_id,
            presenter_secret=body.existing_room.presenter_secret,
        )

    properties = registry.start_game(body.game_name, existing_room)
    return GameInstanceResponse(**asdict(properties))


@games_router.post("/joingame", response_model=GameInstanceResponse)
async def join_game(body: JoinGameRequest, registry: SessionRegistry = Depends(get_registry)):
    properties = registry.join_game(body.room_id, body.player_name)
    return GameInstanceResponse(**asdict(properties))


@games_router.post("/terminategame", response_model=MessageResponse)
async def terminate_game(body: TerminateGameRequest, registry: SessionRegistry = Depends(get_registry)):
    if not body.room_id:
        raise UserError("Missing roomId for Terminate Game")
    await registry.clear_room(body.room_id, body.presenter_secret)
    logger.info(f"Room {body.room_id} terminated by presenter")
    return MessageResponse(message="OK")
