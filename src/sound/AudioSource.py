# src/sound/AudioSource.py
from __future__ import annotations
import sounddevice as sd
import queue
import numpy as np
import time
import logging
from typing import Dict, Any


class AudioSource:
    """Captures audio from the microphone and emits raw chunks to a queue.

    AudioSource uses sounddevice to capture mono float32 audio at the
    configured sample rate and puts every block to chunk_queue untouched.
    Windowing, filtering and level metering happen downstream in
    ClassificationPipeline, so the callback stays short and never blocks.

    Args:
        chunk_queue: Queue to send raw audio chunks (dict with audio, timestamp, chunk_id)
        config: Configuration dictionary loaded from listener_config.json
        verbose: Enable verbose logging
    """

    def __init__(self,
                 chunk_queue: queue.Queue,
                 config: Dict[str, Any],
                 verbose: bool = False):

        self.chunk_queue: queue.Queue = chunk_queue
        self.verbose: bool = verbose

        self.sample_rate: int = config['audio']['sample_rate']
        chunk_duration = config['audio']['chunk_duration']

        self.chunk_size: int = int(self.sample_rate * chunk_duration)
        self.is_running: bool = False
        self.stream: sd.InputStream | None = None
        self.chunk_id_counter: int = 0
        self.dropped_chunks: int = 0

    def audio_callback(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        """Callback from sounddevice with a block of captured audio.

        Takes the first channel as float32 and enqueues it without blocking;
        blocks are dropped when the queue is full.

        Args:
            indata: Input audio data as numpy array (shape: [frames, channels])
            frames: Number of audio frames
            time_info: Timing information from sounddevice
            status: Status information from sounddevice
        """
        if status:
            logging.error(f"Audio error: {status}")

        chunk_data = {
            'audio': indata[:, 0].astype(np.float32),
            'timestamp': time.time(),
            'chunk_id': self.chunk_id_counter
        }
        self.chunk_id_counter += 1

        try:
            self.chunk_queue.put_nowait(chunk_data)
        except queue.Full:
            self.dropped_chunks += 1
            logging.warning(f"chunk_queue full, dropping audio chunk (total drops: {self.dropped_chunks})")

    def start(self) -> None:
        """Start capturing audio from the default input device."""
        self.is_running = True
        self.chunk_id_counter = 0
        self.stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype='float32',
            callback=self.audio_callback,
            blocksize=self.chunk_size
        )
        self.stream.start()
        if self.verbose:
            logging.info(f"AudioSource: capturing at {self.sample_rate} Hz, blocksize={self.chunk_size}")

    def stop(self) -> None:
        """Stop and close the input stream. Safe to call more than once."""
        self.is_running = False
        if self.stream:
            self.stream.stop()
            self.stream.close()
            self.stream = None
