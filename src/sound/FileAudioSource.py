# src/sound/FileAudioSource.py
from __future__ import annotations
import queue
import numpy as np
import time
import logging
import threading
from typing import Dict, Any, List


class FileAudioSource:
    """File-based audio source with the same interface as AudioSource.

    Reads a sound file and feeds it to chunk_queue in chunk_duration blocks,
    either paced like live capture or as fast as the queue accepts them.

    Processing steps:
    1. Load audio file using soundfile
    2. Take the first channel if the file is multi-channel
    3. Resample to the configured sample rate if needed
    4. Split into chunk_size blocks (the last block may be shorter)
    5. Feed blocks to the queue when started

    Args:
        chunk_queue: Queue to send audio chunks (dict with audio, timestamp, chunk_id)
        config: Configuration dictionary loaded from listener_config.json
        file_path: Path to the sound file
        realtime: Pace chunks at capture rate (True) or feed without delay (False)
        verbose: Enable verbose logging
    """

    def __init__(self,
                 chunk_queue: queue.Queue,
                 config: Dict[str, Any],
                 file_path: str,
                 realtime: bool = True,
                 verbose: bool = False):

        self.chunk_queue: queue.Queue = chunk_queue
        self.file_path: str = file_path
        self.realtime: bool = realtime
        self.verbose: bool = verbose

        self.sample_rate: int = config['audio']['sample_rate']
        self.chunk_size: int = int(self.sample_rate * config['audio']['chunk_duration'])

        self.chunks: List[np.ndarray] = self._load_audio()

        self.is_running: bool = False
        self.finished = threading.Event()
        self.thread: threading.Thread | None = None

        if self.verbose:
            logging.info(f"FileAudioSource: loaded {len(self.chunks)} chunks from {file_path}")

    def _load_audio(self) -> List[np.ndarray]:
        """Load the file as mono float32 at sample_rate and split it into chunks."""
        import soundfile as sf

        audio, sr = sf.read(self.file_path, dtype='float32')

        if audio.ndim > 1:
            audio = audio[:, 0]

        if sr != self.sample_rate:
            from scipy import signal
            num_samples = int(len(audio) * self.sample_rate / sr)
            audio = signal.resample(audio, num_samples).astype(np.float32)

        return [audio[i:i + self.chunk_size] for i in range(0, len(audio), self.chunk_size)]

    def start(self) -> None:
        """Start feeding chunks from a background thread."""
        self.is_running = True
        self.finished.clear()
        self.thread = threading.Thread(target=self._feed_chunks, daemon=True)
        self.thread.start()

    def _feed_chunks(self) -> None:
        """Feed chunks to the queue, sleeping between them in realtime mode."""
        chunk_duration = self.chunk_size / self.sample_rate
        start_time = time.time()

        for chunk_id, chunk in enumerate(self.chunks):
            if not self.is_running:
                break

            if self.realtime:
                sleep_time = start_time + chunk_id * chunk_duration - time.time()
                if sleep_time > 0:
                    time.sleep(sleep_time)

            chunk_data = {
                'audio': chunk,
                'timestamp': time.time(),
                'chunk_id': chunk_id
            }

            if self.realtime:
                try:
                    self.chunk_queue.put_nowait(chunk_data)
                except queue.Full:
                    logging.warning("chunk_queue full, dropping chunk")
            else:
                self.chunk_queue.put(chunk_data)

        self.is_running = False
        self.finished.set()

        if self.verbose:
            logging.info("FileAudioSource: finished feeding all chunks")

    def stop(self) -> None:
        """Stop feeding and wait briefly for the feeder thread to exit."""
        self.is_running = False

        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
