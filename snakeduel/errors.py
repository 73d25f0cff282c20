"""Exception types."""


class SnakeDuelError(Exception):
    """Base class for every error raised by this package."""


class RoomError(SnakeDuelError):
    """A lobby failure the player can act on."""

    message = "Room error"

    def __init__(self, code: str = "", message: str = None):
        self.code = code
        super().__init__(message or self.message)


class RoomNotFound(RoomError):
    message = "Room not found. Check the code and try again."


class RoomFull(RoomError):
    message = "Room is full."


class InvalidCode(RoomError):
    message = "Room codes are 6 letters or digits."


class FoodPlacementExhausted(SnakeDuelError):
    """No free cell found for food within the retry bound."""


class StoreError(SnakeDuelError):
    """The record store rejected a request or the connection dropped."""
