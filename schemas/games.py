from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from room import GameRole


class WireModel(BaseModel):
    # clients speak camelCase
    model_config = ConfigDict(populate_by_name=True)


class ExistingRoom(WireModel):
    id: str
    presenter_id: str = Field(alias="presenterId")
    presenter_secret: str = Field(alias="presenterSecret")


class StartGameRequest(WireModel):
    game_name: Optional[str] = Field(default=None, alias="gameName")
    existing_room: Optional[ExistingRoom] = Field(default=None, alias="existingRoom")


class JoinGameRequest(WireModel):
    room_id: Optional[str] = Field(default=None, alias="roomId")
    player_name: Optional[str] = Field(default=None, alias="playerName")


class TerminateGameRequest(WireModel):
    room_id: Optional[str] = Field(default=None, alias="roomId")
    presenter_secret: Optional[str] = Field(default=None, alias="presenterSecret")


class GameInstanceResponse(WireModel):
    game_name: str = Field(alias="gameName")
    room_id: str = Field(alias="roomId")
    personal_id: str = Field(alias="personalId")
    presenter_id: str = Field(alias="presenterId")
    personal_secret: str = Field(alias="personalSecret")
    role: GameRole


class MessageResponse(BaseModel):
    message: str


class HealthQuery(BaseModel):
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None
    span: int = 60000  # milliseconds
