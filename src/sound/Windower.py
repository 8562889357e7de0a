# src/sound/Windower.py
import logging
import numpy as np
from typing import Dict, Any, List


class Windower:
    """Creates fixed-size overlapping analysis windows from a sample stream.

    Windower appends incoming chunks of arbitrary length to a fixed-capacity
    buffer of window_size samples. Each time the buffer fills, a copy of it is
    emitted and the buffer slides forward by one stride, keeping the newest
    (window_size - stride) samples as the start of the next window.

    With overlap_divisor=4 the stride is 25% of the window, so each window
    shares 75% of its samples with the previous one and a new window is
    emitted every window_size / 4 samples.

    Partial windows are never emitted. Samples left in the buffer when the
    stream ends are dropped; there is no flush.

    Args:
        config: Configuration dictionary with audio.window_size and audio.overlap_divisor
        verbose: Enable verbose logging
    """

    def __init__(self, config: Dict[str, Any], verbose: bool = False):
        audio_config = config['audio']
        self.window_size: int = audio_config['window_size']
        overlap_divisor: int = audio_config.get('overlap_divisor', 4)

        if self.window_size <= 0:
            raise ValueError(f"window_size must be positive, got {self.window_size}")
        if overlap_divisor <= 0 or self.window_size % overlap_divisor != 0:
            raise ValueError(
                f"window_size ({self.window_size}) must be divisible by overlap_divisor ({overlap_divisor})"
            )

        self.step_size: int = self.window_size // overlap_divisor
        self.overlap_size: int = self.window_size - self.step_size
        self.verbose: bool = verbose

        self.buffer: np.ndarray = np.zeros(self.window_size, dtype=np.float32)
        self.buffer_index: int = 0
        self.windows_emitted: int = 0

    def process_chunk(self, chunk: np.ndarray) -> List[np.ndarray]:
        """Append a chunk and return every window completed by it.

        Algorithm:
        1. Copy as many samples as fit into the free part of the buffer
        2. When the buffer is full, emit a copy of it
        3. Slide: move the last overlap_size samples to the front
        4. Repeat until the chunk is consumed

        Args:
            chunk: 1-D array of audio samples (any length, including 0)

        Returns:
            List of completed windows (float32, length window_size), oldest first
        """
        samples = np.asarray(chunk, dtype=np.float32).ravel()
        windows: List[np.ndarray] = []

        position = 0
        while position < len(samples):
            free = self.window_size - self.buffer_index
            take = min(free, len(samples) - position)
            self.buffer[self.buffer_index:self.buffer_index + take] = samples[position:position + take]
            self.buffer_index += take
            position += take

            if self.buffer_index >= self.window_size:
                windows.append(self.buffer.copy())
                self.windows_emitted += 1

                self.buffer[:self.overlap_size] = self.buffer[self.step_size:]
                self.buffer_index = self.overlap_size

                if self.verbose:
                    logging.debug(f"Windower: emitted window #{self.windows_emitted}")

        return windows

    def reset(self) -> None:
        """Discard buffered samples. Call when a capture session (re)starts."""
        self.buffer = np.zeros(self.window_size, dtype=np.float32)
        self.buffer_index = 0
