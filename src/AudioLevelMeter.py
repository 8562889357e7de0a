# src/AudioLevelMeter.py
import numpy as np

# RMS treated as full scale for the 0-1 level
REFERENCE_MAX_RMS = 0.5


def calculate_audio_level(chunk: np.ndarray) -> float:
    """Compute a 0-1 loudness estimate for visualization.

    Stateless and independent of the classification cycle, so it is safe to
    call from the capture thread while a classification is running.

    Args:
        chunk: Audio samples of any length

    Returns:
        RMS / REFERENCE_MAX_RMS clamped to [0, 1]; 0.0 for an empty chunk
    """
    if len(chunk) == 0:
        return 0.0
    samples = np.asarray(chunk, dtype=np.float64)
    rms = float(np.sqrt(np.mean(samples ** 2)))
    return float(np.clip(rms / REFERENCE_MAX_RMS, 0.0, 1.0))
