"""Type definitions for the audio classification pipeline."""

from dataclasses import dataclass, field
from enum import Enum


# Number of AudioSet classes scored by the model
NUM_CLASSES = 521

# Samples per analysis window (~0.975s at 16kHz)
WINDOW_SIZE = 15600

SAMPLE_RATE = 16000


class ClassificationMode(Enum):
    """Operating mode selecting preprocessing and ensemble behaviour.

    - BALANCED: full noise gate, 3-window ensemble, EMA smoothing (alpha=0.6)
    - SENSITIVE: gentle noise gate, 2-window ensemble, faster EMA (alpha=0.75)
    - RAW: no noise gate, single window, no smoothing
    """
    BALANCED = 'BALANCED'
    SENSITIVE = 'SENSITIVE'
    RAW = 'RAW'


class PreprocessingProfile(Enum):
    """Filter chain intensity used by SignalPreprocessor.

    All profiles apply high-pass and pre-emphasis; they differ in the noise gate:
    - FULL: gate ratio 4
    - REDUCED: gate ratio 2
    - MINIMAL: no gate
    """
    FULL = 'FULL'
    REDUCED = 'REDUCED'
    MINIMAL = 'MINIMAL'

    @property
    def gate_ratio(self) -> float | None:
        """Noise gate compression ratio, None when the gate is skipped."""
        return _GATE_RATIOS[self]


_GATE_RATIOS = {
    PreprocessingProfile.FULL: 4.0,
    PreprocessingProfile.REDUCED: 2.0,
    PreprocessingProfile.MINIMAL: None,
}


@dataclass(frozen=True)
class ModeSettings:
    """Per-mode parameters read by the preprocessor and classifier every cycle.

    Attributes:
        window_offsets: Sample offsets of the ensemble sub-windows
        ema_alpha: Weight of the current cycle in temporal smoothing (1.0 disables it)
        profile: Preprocessing profile applied to each window
    """
    window_offsets: tuple[int, ...]
    ema_alpha: float
    profile: PreprocessingProfile

    @property
    def window_count(self) -> int:
        return len(self.window_offsets)

    @property
    def smoothing_enabled(self) -> bool:
        return self.ema_alpha < 1.0


@dataclass(frozen=True)
class ClassificationResult:
    """Output of one classification cycle.

    Attributes:
        top_class: Label of the highest scoring class
        top_score: Score of the highest scoring class
        predictions: Up to top_k (label, score) pairs, descending by score
        confidence_quality: 0-1 composite of entropy and top-1/top-2 margin
        ensemble_agreement: Fraction of sub-windows agreeing on the top-1 class
    """
    top_class: str
    top_score: float
    predictions: dict[str, float]
    confidence_quality: float = 1.0
    ensemble_agreement: float = 1.0


@dataclass(frozen=True)
class DetectedEvent:
    """Significant classification result stamped with wall-clock time.

    Attributes:
        timestamp: Detection time (seconds since epoch)
        class_name: Top class label
        score: Top class score
        predictions: Top-k predictions of the originating result
    """
    timestamp: float
    class_name: str
    score: float
    predictions: dict[str, float] = field(default_factory=dict)
