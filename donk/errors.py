"""Exceptions raised by the tiling and compositing engine."""


class DonkError(Exception):
    """Base class for engine failures."""


class InvalidConfiguration(DonkError):
    """Raised when grid step counts are zero, negative or larger than the image."""


class SourceImageUnreadable(DonkError):
    """Raised when an instance's source image cannot be opened or decoded."""


class InvalidLocation(DonkError):
    """Raised when a tile location falls outside the instance grid."""

    def __init__(self, x: int, y: int, step_count_x: int, step_count_y: int):
        self.x = x
        self.y = y
        super().__init__(
            f"Tile ({x}, {y}) is outside the {step_count_x}x{step_count_y} grid"
        )


class InstanceNotFound(DonkError):
    """Raised when no metadata is stored for an instance id."""


class SessionNotFound(DonkError):
    """Raised when no record is stored for a session id."""


class CompositeNotReady(DonkError):
    """Raised when an instance's composite has not been built yet."""


class BackgroundNotFound(DonkError):
    """Raised when a session's background artifact is missing."""


class MalformedImagePayload(DonkError):
    """Raised when a submitted edit cannot be decoded into an image."""


class TileDecodeError(DonkError):
    """Raised when a stored tile override cannot be decoded.

    The compositor recovers from this by falling back to source pixels.
    """


class StoreIOError(DonkError):
    """Raised when the blob store fails for a reason other than a missing key."""
