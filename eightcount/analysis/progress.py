"""Progress reporting and cooperative cancellation for long scans."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# (stage_label, detail, percent_complete)
ProgressHook = Callable[[str, str, float], None]


class AnalysisError(RuntimeError):
    """Terminal failure of a whole-track analysis."""


class InsufficientAudioError(AnalysisError):
    """Input cannot be analyzed (no samples, bad sample rate, no bands)."""

    def __init__(self, reason: str):
        super().__init__(f"insufficient audio data: {reason}")
        self.reason = reason


class AnalysisCancelled(AnalysisError):
    """Raised at a checkpoint after the caller asked to abort."""


class Progress:
    """Checkpoint handle passed down the pipeline.

    ``report`` forwards to the caller's hook; ``checkpoint`` only checks for
    cancellation and is safe to call from worker threads.
    """

    def __init__(
        self,
        hook: Optional[ProgressHook] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self._hook = hook
        self._cancel_event = cancel_event
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def checkpoint(self) -> None:
        if self.cancelled:
            raise AnalysisCancelled("analysis cancelled")

    def report(self, stage: str, detail: str = "", percent: float = 0.0) -> None:
        self.checkpoint()
        if self._hook is None:
            return
        with self._lock:
            self._hook(stage, detail, percent)


NO_PROGRESS = Progress()
