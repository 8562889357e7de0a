# src/SignificanceFilter.py
import logging
import time
from typing import Any, Callable, Dict, FrozenSet, List, Optional, TYPE_CHECKING

from src.types import ClassificationResult, DetectedEvent

if TYPE_CHECKING:
    from src.protocols import EventSubscriber


DEFAULT_THRESHOLD = 0.3
DEFAULT_IGNORED_CLASSES: FrozenSet[str] = frozenset({"Silence", "Static", "White noise", "Pink noise"})


class SignificanceFilter:
    """Consumer-side policy turning classification results into detected events.

    A result is significant when its top class is not ignored and its top
    score reaches the threshold. Significant results are stamped with the
    current time and forwarded to event subscribers. Audio levels are not
    used.

    Implements the ClassificationSubscriber protocol.

    Args:
        config: Configuration dictionary (optional events section)
        subscribers: Receivers of DetectedEvents
        clock: Time source, seconds since epoch
    """

    def __init__(self,
                 config: Optional[Dict[str, Any]] = None,
                 subscribers: Optional[List["EventSubscriber"]] = None,
                 clock: Callable[[], float] = time.time):
        events_config = (config or {}).get('events', {})
        self.threshold: float = events_config.get('threshold', DEFAULT_THRESHOLD)
        self.ignored_classes: FrozenSet[str] = frozenset(
            events_config.get('ignored_classes', DEFAULT_IGNORED_CLASSES)
        )
        self.subscribers: List["EventSubscriber"] = list(subscribers or [])
        self.clock = clock

    def is_significant(self, result: ClassificationResult) -> bool:
        return result.top_class not in self.ignored_classes and result.top_score >= self.threshold

    def on_classification(self, result: ClassificationResult) -> None:
        if not self.is_significant(result):
            return

        event = DetectedEvent(
            timestamp=self.clock(),
            class_name=result.top_class,
            score=result.top_score,
            predictions=dict(result.predictions),
        )
        logging.info(f"Detected '{event.class_name}' (score={event.score:.2f})")
        for subscriber in self.subscribers:
            subscriber.on_event(event)

    def on_audio_level(self, level: float) -> None:
        pass
