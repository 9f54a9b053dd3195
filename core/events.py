from dataclasses import dataclass
from typing import Any

LOBBY_READY = "lobby_ready"
GAME_ENDED = "game_ended"


@dataclass
class BaseEvent:
    """Base class for all game-state signals handed to the core"""
    pass


@dataclass
class GameStateEvent(BaseEvent):
    """Event raised by the external poll loop when SC2 game state changes"""
    event_type: str  # LOBBY_READY or GAME_ENDED
    data: Any = None  # lobby buffer (bytes) or replay file path (str)
