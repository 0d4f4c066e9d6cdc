"""
Engine and datastore exceptions.
"""


class WorldPulseError(Exception):
    """Base exception for all worldpulse errors."""

    pass


class InvalidInputError(WorldPulseError, ValueError):
    """A caller passed something the engine cannot work with.

    Raised for programmer mistakes only (None where a list is expected),
    never for irregular data inside a batch.
    """

    def __init__(self, argument: str, detail: str = "expected a list"):
        self.argument = argument
        super().__init__(f"Invalid input for '{argument}': {detail}")


class SnapshotStoreError(WorldPulseError):
    """Snapshot could not be loaded or saved."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)
