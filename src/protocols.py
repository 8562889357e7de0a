"""Protocol definitions for audio classification components.

This module defines structural interfaces using Python's Protocol for duck typing.
"""

from typing import Optional, Protocol
import numpy as np
from src.types import ClassificationResult, DetectedEvent


class ScoringModel(Protocol):
    """Inference engine interface: one analysis window in, one score vector out.

    Implementations may raise or return None/empty on malformed input or
    engine failure. EnsembleClassifier treats both as a failed sub-window.
    """

    def score(self, window: np.ndarray) -> Optional[np.ndarray]:
        """Score a single window.

        Args:
            window: float32 array of WINDOW_SIZE samples

        Returns:
            float32 array of NUM_CLASSES non-negative scores
        """
        ...


class ClassificationSubscriber(Protocol):
    """Subscriber interface for pipeline output.

    Thread Safety:
        on_classification() is called from the ClassificationWorker thread,
        on_audio_level() from the thread delivering audio chunks.
    """

    def on_classification(self, result: ClassificationResult) -> None:
        """Handle the result of one completed classification cycle."""
        ...

    def on_audio_level(self, level: float) -> None:
        """Handle the 0-1 loudness estimate of one audio chunk."""
        ...


class EventSubscriber(Protocol):
    """Receives significant events from SignificanceFilter."""

    def on_event(self, event: DetectedEvent) -> None:
        ...
