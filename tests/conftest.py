import pytest
import numpy as np

from src.config_loader import get_default_config
from src.types import NUM_CLASSES, WINDOW_SIZE


class StubScoringModel:
    """Deterministic scoring model for unit tests (does not load a real model).

    Scores depend only on the window contents: the top class is derived
    from the window energy, so identical windows always score identically.
    Each call is recorded in `calls`.

    Args:
        num_classes: Length of the returned score vector
        fail_on_calls: 0-based call indices that raise RuntimeError
    """

    def __init__(self, num_classes: int = NUM_CLASSES, fail_on_calls=()):
        self.num_classes = num_classes
        self.fail_on_calls = set(fail_on_calls)
        self.calls = []

    def score(self, window: np.ndarray) -> np.ndarray:
        call_index = len(self.calls)
        self.calls.append(np.array(window, copy=True))
        if call_index in self.fail_on_calls:
            raise RuntimeError("stub inference failure")

        energy = float(np.sum(np.asarray(window, dtype=np.float64) ** 2))
        top_index = int(energy * 1000) % self.num_classes
        scores = np.full(self.num_classes, 0.001, dtype=np.float32)
        scores[top_index] = 0.8
        scores[(top_index + 1) % self.num_classes] = 0.1
        return scores


class SequenceScoringModel:
    """Returns pre-built score vectors in order, ignoring the audio.

    A None entry simulates an engine returning an empty result.
    """

    def __init__(self, score_vectors):
        self.score_vectors = list(score_vectors)
        self.calls = 0

    def score(self, window: np.ndarray):
        vector = self.score_vectors[self.calls % len(self.score_vectors)]
        self.calls += 1
        return None if vector is None else np.array(vector, dtype=np.float32)


def make_scores(peaks: dict, num_classes: int = NUM_CLASSES, floor: float = 0.0) -> np.ndarray:
    """Build a score vector with the given {index: score} peaks over a constant floor."""
    scores = np.full(num_classes, floor, dtype=np.float64)
    for index, value in peaks.items():
        scores[index] = value
    return scores


@pytest.fixture
def config():
    """Provide standard test configuration matching production config structure.

    Returns:
        Dict: Configuration dictionary from config_loader defaults
    """
    return get_default_config()


@pytest.fixture
def stub_model():
    return StubScoringModel()


@pytest.fixture
def silence_window():
    """One analysis window of digital silence."""
    return np.zeros(WINDOW_SIZE, dtype=np.float32)


@pytest.fixture
def noise_window():
    """One analysis window of low-level white noise (1% amplitude, fixed seed)."""
    rng = np.random.default_rng(1234)
    return (rng.standard_normal(WINDOW_SIZE) * 0.01).astype(np.float32)


@pytest.fixture
def sine_window():
    """One analysis window of a 1 kHz sine at half scale."""
    t = np.arange(WINDOW_SIZE) / 16000
    return (0.5 * np.sin(2 * np.pi * 1000 * t)).astype(np.float32)
