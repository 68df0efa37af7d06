"""Error types raised by the planner, executor and engines."""


class EditError(Exception):
    """Base class for failures surfaced to the caller of an edit."""


class InvalidRequest(EditError, ValueError):
    """The segment list or transform parameters cannot be planned."""


class EngineInitFailure(EditError, RuntimeError):
    """The transcoder could not be loaded (or was never loaded)."""


class TranscodeFailure(EditError, RuntimeError):
    """A transcoder invocation failed part-way through a plan."""

    def __init__(self, engine_message: str, argv: tuple[str, ...] = ()):
        self.engine_message = engine_message
        self.argv = argv
        super().__init__(f"Transcoding failed: {engine_message}")


class EditCancelled(EditError):
    """The caller cancelled the edit between two invocations."""


class EngineError(RuntimeError):
    """Raised by an engine when a filesystem operation or command fails."""
