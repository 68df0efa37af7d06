"""Observable editor state — the flags a UI binds its spinner and progress bar to."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable


class Phase(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    WRITING_INPUT = "writing_input"
    EXECUTING = "executing"
    READING_OUTPUT = "reading_output"
    CLEANING_UP = "cleaning_up"
    FAILED = "failed"


@dataclass
class EditorState:
    """Loading/processing flags and progress for one engine.

    Listeners added with :meth:`subscribe` are called with the state after
    every change.
    """

    loading: bool = False
    processing: bool = False
    progress: int = 0
    phase: Phase = Phase.IDLE
    _listeners: list[Callable[["EditorState"], None]] = field(
        default_factory=list, repr=False, compare=False
    )

    def subscribe(self, listener: Callable[["EditorState"], None]) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def set_loading(self, loading: bool) -> None:
        self.loading = loading
        self._notify()

    def set_processing(self, processing: bool) -> None:
        self.processing = processing
        if not processing:
            self.progress = 0
        self._notify()

    def set_phase(self, phase: Phase) -> None:
        self.phase = phase
        self._notify()

    def update_progress(self, progress: int) -> None:
        self.progress = max(0, min(100, int(progress)))
        self._notify()

    def snapshot(self) -> dict:
        return {
            "loading": self.loading,
            "processing": self.processing,
            "progress": self.progress,
            "phase": self.phase.value,
        }
