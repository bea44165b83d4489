"""Domain errors raised by the clock room core and its HTTP/relay glue."""


class ClockRoomError(Exception):
    """Base class for clock room errors."""


class InvalidRoomConfig(ClockRoomError, ValueError):
    """Room configuration outside the supported ranges."""

    def __init__(self, field: str, value, low: int, high: int):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be between {low} and {high} (got {value!r})")


class NotOwnerError(ClockRoomError):
    """An owner-only action was attempted by a joiner session."""


class InvalidChannelToken(ClockRoomError):
    """Channel credential is missing, tampered with or expired."""
