# src/classification/ClassificationWorker.py
import queue
import threading
import logging
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from src.types import ClassificationMode, ClassificationResult

if TYPE_CHECKING:
    from src.classification.EnsembleClassifier import EnsembleClassifier
    from src.ListenerState import ListenerState
    from src.protocols import ClassificationSubscriber


@dataclass
class ClassificationJob:
    """One analysis window waiting for classification."""
    window: np.ndarray
    mode: ClassificationMode
    cancel_event: threading.Event = field(default_factory=threading.Event)


class ClassificationWorker:
    """Runs classification off the capture thread, newest window wins.

    At most one classification is in flight. Submitting a window cancels the
    running job (cooperatively, between sub-window inferences) and replaces
    any job still waiting, so inference latency never blocks capture and
    stale windows are never queued.

    Observer Pattern: Subscribes to ListenerState for shutdown events.

    Args:
        classifier: EnsembleClassifier used for every job
        listener_state: ListenerState for observer pattern (REQUIRED)
        subscribers: Receivers of completed ClassificationResults
        verbose: Enable verbose logging
    """

    def __init__(self,
                 *,
                 classifier: Optional["EnsembleClassifier"] = None,
                 listener_state: Optional["ListenerState"] = None,
                 subscribers: Optional[List["ClassificationSubscriber"]] = None,
                 verbose: bool = False) -> None:
        if classifier is None:
            raise ValueError("ClassificationWorker requires classifier")
        if listener_state is None:
            raise ValueError("ClassificationWorker requires listener_state")

        self.classifier: "EnsembleClassifier" = classifier
        self.listener_state: "ListenerState" = listener_state
        self.subscribers: List["ClassificationSubscriber"] = list(subscribers or [])
        self.verbose: bool = verbose

        self._pending: queue.Queue = queue.Queue(maxsize=1)
        self._submit_lock = threading.Lock()
        self._current_job: Optional[ClassificationJob] = None
        self._idle = threading.Event()
        self._idle.set()

        self.is_running: bool = False
        self.thread: Optional[threading.Thread] = None
        self.replaced_jobs: int = 0
        self.completed_jobs: int = 0

        self.listener_state.register_component_observer(self.on_state_change)

    def add_subscriber(self, subscriber: "ClassificationSubscriber") -> None:
        self.subscribers.append(subscriber)

    def submit(self, window: np.ndarray, mode: ClassificationMode) -> ClassificationJob:
        """Schedule a window for classification, cancelling older work.

        Args:
            window: Preprocessed analysis window
            mode: Mode in effect when the window was completed

        Returns:
            The scheduled job
        """
        job = ClassificationJob(window=window, mode=mode)
        with self._submit_lock:
            if self._current_job is not None and not self._current_job.cancel_event.is_set():
                self._current_job.cancel_event.set()
                self.replaced_jobs += 1
            try:
                self._pending.get_nowait()
            except queue.Empty:
                pass
            self._current_job = job
            self._idle.clear()
            self._pending.put_nowait(job)
        return job

    def run_job(self, job: ClassificationJob) -> Optional[ClassificationResult]:
        """Classify one job and publish the result unless it was cancelled."""
        if job.cancel_event.is_set():
            return None

        try:
            result = self.classifier.classify(job.window, job.mode, cancel_event=job.cancel_event)
        except Exception as e:
            logging.error(f"ClassificationWorker: classification failed: {type(e).__name__}: {e}")
            return None

        if result is None or job.cancel_event.is_set():
            return None

        self.completed_jobs += 1
        for subscriber in list(self.subscribers):
            try:
                subscriber.on_classification(result)
            except Exception as e:
                logging.error(
                    f"Subscriber {subscriber.__class__.__name__} failed on_classification: {e}",
                    exc_info=True
                )
        return result

    def process(self) -> None:
        """Process jobs continuously until stop() is called."""
        while self.is_running:
            try:
                job: ClassificationJob = self._pending.get(timeout=0.1)
            except queue.Empty:
                continue

            try:
                self.run_job(job)
            finally:
                with self._submit_lock:
                    if self._pending.empty():
                        self._idle.set()

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no job is pending or running.

        Returns:
            True if idle, False on timeout
        """
        return self._idle.wait(timeout)

    def start(self) -> bool:
        """Start processing jobs in a background daemon thread.

        Returns:
            True if the worker is running, False if the previous thread
            is still finishing a stalled inference
        """
        if self.is_running:
            return True
        if self.thread is not None and self.thread.is_alive():
            self.thread.join(timeout=1.0)
            if self.thread.is_alive():
                logging.error("ClassificationWorker: previous worker thread is still running")
                return False
        self.is_running = True
        self.thread = threading.Thread(target=self.process, daemon=True)
        self.thread.start()
        return True

    def stop(self) -> None:
        """Stop the worker thread and cancel outstanding work.

        This method is idempotent - safe to call multiple times.
        """
        if not self.is_running:
            return

        self.is_running = False
        with self._submit_lock:
            if self._current_job is not None:
                self._current_job.cancel_event.set()
            try:
                self._pending.get_nowait()
            except queue.Empty:
                pass
            self._idle.set()

        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)

    def on_state_change(self, old_state: str, new_state: str) -> None:
        """Stop on shutdown.

        Args:
            old_state: Previous state
            new_state: New state
        """
        if new_state == 'shutdown':
            self.stop()
