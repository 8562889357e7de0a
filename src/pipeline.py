import queue
import signal
import sys
import threading
import time
import logging
import numpy as np
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from src.AudioLevelMeter import calculate_audio_level
from src.ListenerState import ListenerState
from src.classification.ClassNames import ClassNameTable
from src.classification.ClassificationWorker import ClassificationWorker
from src.classification.EnsembleClassifier import EnsembleClassifier
from src.classification.ModelManager import ModelManager
from src.modes import get_mode_settings, parse_mode
from src.sound.SignalPreprocessor import SignalPreprocessor, condition_window
from src.sound.Windower import Windower
from src.types import ClassificationMode

if TYPE_CHECKING:
    from src.protocols import ClassificationSubscriber, ScoringModel


class ClassificationPipeline:
    """Real-time audio event classification: raw chunks in, stabilized results out.

    Data flow:
        AudioSource -> chunk_queue -> chunk reader thread
            -> level meter (per chunk) -> subscribers.on_audio_level
            -> Windower -> SignalPreprocessor -> DC removal + peak normalization
            -> ClassificationWorker -> EnsembleClassifier -> subscribers.on_classification

    Windowing and preprocessing run synchronously on the chunk reader thread.
    Classification runs on the worker thread, newest window wins.

    Startup failures (missing model, unloadable session) are recorded in
    initialization_error; start() then refuses to run instead of raising.

    Args:
        config: Configuration dictionary (see config_loader.get_default_config)
        models_dir: Directory holding the model and class map (default ./models)
        model: Pre-built scoring model; skips loading YAMNet from models_dir
        class_names: Label table used with an injected model
        audio_source: Pre-built audio source with start()/stop()
        input_file: Sound file to classify instead of the microphone
        realtime: Pace file input like live capture
        verbose: Enable verbose logging
    """

    def __init__(self,
                 config: Dict[str, Any],
                 models_dir: Optional[Path] = None,
                 model: Optional["ScoringModel"] = None,
                 class_names: Optional[ClassNameTable] = None,
                 audio_source: Optional[Any] = None,
                 input_file: Optional[str] = None,
                 realtime: bool = True,
                 verbose: bool = False) -> None:
        self.config: Dict[str, Any] = config
        self.verbose: bool = verbose
        self.initialization_error: Optional[str] = None
        self._is_shut_down: bool = False

        self.chunk_queue: queue.Queue = queue.Queue(maxsize=200)
        self.subscribers: List["ClassificationSubscriber"] = []

        initial_mode = parse_mode(config.get('classification', {}).get('mode', ClassificationMode.BALANCED))
        self.listener_state: ListenerState = ListenerState(config=config, mode=initial_mode)

        self.windower: Windower = Windower(config, verbose=verbose)
        self.preprocessor: SignalPreprocessor = SignalPreprocessor(config, verbose=verbose)

        if model is None:
            model, class_names = self._load_model(models_dir or Path("./models"))

        self.classifier: Optional[EnsembleClassifier] = None
        self.worker: Optional[ClassificationWorker] = None
        if model is not None:
            self.classifier = EnsembleClassifier(
                model=model,
                class_names=class_names,
                config=config,
                verbose=verbose
            )
            self.worker = ClassificationWorker(
                classifier=self.classifier,
                listener_state=self.listener_state,
                verbose=verbose
            )
        self.model: Optional["ScoringModel"] = model

        self.audio_source: Optional[Any] = audio_source
        self._input_file: Optional[str] = input_file
        self._realtime: bool = realtime

        self.is_running: bool = False
        self.thread: Optional[threading.Thread] = None

        self.listener_state.register_component_observer(self.on_state_change)

    def _load_model(self, models_dir: Path) -> Tuple[Optional["ScoringModel"], ClassNameTable]:
        """Load YAMNet and its class map, recording failures in initialization_error."""
        from src.classification.YamnetModel import YamnetModel

        model_path = ModelManager.model_path(models_dir, self.config)
        try:
            model = YamnetModel(self.config, model_path, verbose=self.verbose)
        except (FileNotFoundError, RuntimeError) as e:
            self.initialization_error = str(e)
            logging.error(f"Classifier initialization failed: {e}")
            return None, ClassNameTable()

        class_names = ClassNameTable.from_csv(ModelManager.class_map_path(models_dir, self.config))
        num_classes = self.config.get('classification', {}).get('num_classes')
        if num_classes and len(class_names) < num_classes:
            logging.warning(
                f"Class map has {len(class_names)} labels for {num_classes} classes; "
                f"placeholder labels will be used"
            )
        return model, class_names

    def _create_audio_source(self) -> Any:
        if self._input_file:
            from src.sound.FileAudioSource import FileAudioSource
            logging.info(f"Using file input: {self._input_file}")
            return FileAudioSource(
                chunk_queue=self.chunk_queue,
                config=self.config,
                file_path=self._input_file,
                realtime=self._realtime,
                verbose=self.verbose
            )

        from src.sound.AudioSource import AudioSource
        logging.info("Using microphone input")
        return AudioSource(chunk_queue=self.chunk_queue, config=self.config, verbose=self.verbose)

    def add_subscriber(self, subscriber: "ClassificationSubscriber") -> None:
        """Register a receiver of classification results and audio levels."""
        self.subscribers.append(subscriber)
        if self.worker is not None:
            self.worker.add_subscriber(subscriber)

    def set_mode(self, mode: ClassificationMode) -> None:
        """Switch classification mode without restarting or resetting state."""
        self.listener_state.set_mode(mode)

    def get_mode(self) -> ClassificationMode:
        return self.listener_state.get_mode()

    def process_chunk(self, chunk: np.ndarray) -> int:
        """Meter, window and preprocess one chunk; schedule completed windows.

        Args:
            chunk: Raw audio samples of any length

        Returns:
            Number of windows completed by this chunk
        """
        level = calculate_audio_level(chunk)
        for subscriber in list(self.subscribers):
            try:
                subscriber.on_audio_level(level)
            except Exception as e:
                logging.error(
                    f"Subscriber {subscriber.__class__.__name__} failed on_audio_level: {e}",
                    exc_info=True
                )

        windows = self.windower.process_chunk(chunk)
        for window in windows:
            mode = self.listener_state.get_mode()
            settings = get_mode_settings(mode)
            filtered = self.preprocessor.process(window, settings.profile)
            conditioned = condition_window(filtered, self.config)
            if self.worker is not None:
                self.worker.submit(conditioned, mode)

        return len(windows)

    def _read_chunks(self) -> None:
        while self.is_running:
            try:
                chunk_data: Dict[str, Any] = self.chunk_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self.process_chunk(chunk_data['audio'])
            except Exception as e:
                logging.error(f"Skipping chunk {chunk_data.get('chunk_id')}: {type(e).__name__}: {e}")
            finally:
                self.chunk_queue.task_done()

    def _drain_chunk_queue(self) -> None:
        while True:
            try:
                self.chunk_queue.get_nowait()
            except queue.Empty:
                return
            self.chunk_queue.task_done()

    def _warmup_model(self) -> None:
        """Run one dummy inference so the first real window is not slowed by lazy initialization."""
        window_size = self.config['audio']['window_size']
        start = time.perf_counter()
        try:
            self.model.score(np.zeros(window_size, dtype=np.float32))
        except Exception as e:
            logging.warning(f"Warm-up failed: {e}")
            return
        if self.verbose:
            logging.debug(f"Model warm-up took {(time.perf_counter() - start) * 1000:.1f} ms")

    def start(self) -> bool:
        """Start a capture session.

        Resets windowing and filter state (and smoothing state when
        classification.reset_smoothing_on_start is set), then starts the
        worker, the chunk reader and the audio source.

        Returns:
            True if listening, False if the classifier failed to initialize
        """
        if self.initialization_error is not None or self.worker is None:
            logging.error(f"Cannot start listening: {self.initialization_error}")
            return False

        if self.listener_state.get_state() == 'listening':
            logging.warning("Already listening")
            return True

        if self.thread is not None and self.thread.is_alive():
            self.thread.join(timeout=1.0)
            if self.thread.is_alive():
                logging.error("Cannot start listening: previous chunk reader is still running")
                return False

        if not self.worker.start():
            logging.error("Cannot start listening: previous classification is still running")
            return False

        logging.info("Starting classification pipeline...")
        self.windower.reset()
        self.preprocessor.reset()
        if self.config.get('classification', {}).get('reset_smoothing_on_start', False):
            self.classifier.reset_smoothing()
        self._drain_chunk_queue()
        self._warmup_model()

        self.is_running = True
        self.thread = threading.Thread(target=self._read_chunks, daemon=True)
        self.thread.start()

        if self.audio_source is None:
            self.audio_source = self._create_audio_source()
        self.audio_source.start()

        self.listener_state.set_state('listening')
        logging.info(f"Listening in {self.get_mode().value} mode")
        return True

    def stop(self) -> None:
        """End the capture session; the pipeline can be started again."""
        if self.listener_state.get_state() != 'listening':
            return
        self.listener_state.set_state('idle')
        logging.info("Listening stopped")

    def shutdown(self) -> None:
        """Stop all components via observer pattern. Terminal.

        Sets ListenerState to 'shutdown', which triggers all component
        observers to stop themselves.
        """
        if self._is_shut_down:
            return
        self._is_shut_down = True

        logging.info("Shutting down pipeline...")
        self.listener_state.set_state('shutdown')
        logging.info("Pipeline shut down.")

    def on_state_change(self, old_state: str, new_state: str) -> None:
        """Stop capture and chunk reading when listening ends."""
        if old_state == 'listening' and new_state in ('idle', 'shutdown'):
            if self.audio_source is not None:
                self.audio_source.stop()
            self.is_running = False
            if self.thread and self.thread is not threading.current_thread():
                self.thread.join(timeout=1.0)
            if self.worker is not None:
                self.worker.stop()

    def wait_until_drained(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued chunk is processed and no classification is running."""
        self.chunk_queue.join()
        return self.worker.wait_until_idle(timeout) if self.worker is not None else True

    def run(self) -> int:
        """Listen until Ctrl+C, or until a file source is exhausted.

        Returns:
            Process exit code
        """
        if not self.start():
            return 1

        def signal_handler(sig: int, frame: Any) -> None:
            self.shutdown()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)

        try:
            finished = getattr(self.audio_source, 'finished', None)
            while self.listener_state.get_state() == 'listening':
                if finished is not None and finished.wait(timeout=0.5):
                    self.wait_until_drained(timeout=10.0)
                    break
                if finished is None:
                    time.sleep(0.5)
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()
            self.shutdown()
        return 0
