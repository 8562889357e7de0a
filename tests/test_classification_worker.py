"""
Tests for ClassificationWorker - off-thread classification, newest window wins.
"""
import threading
import pytest
import numpy as np
from unittest.mock import Mock

from src.ListenerState import ListenerState
from src.classification.ClassificationWorker import ClassificationJob, ClassificationWorker
from src.types import ClassificationMode, ClassificationResult


def result_for(window) -> ClassificationResult:
    label = f"window{int(window[0])}"
    return ClassificationResult(top_class=label, top_score=0.9, predictions={label: 0.9})


class BlockingClassifier:
    """Holds the first job until it is cancelled; later jobs return at once."""

    def __init__(self):
        self.first_started = threading.Event()
        self.calls = []

    def classify(self, window, mode, cancel_event=None):
        self.calls.append(int(window[0]))
        if len(self.calls) == 1:
            self.first_started.set()
            cancel_event.wait(timeout=5.0)
            if cancel_event.is_set():
                return None
        return result_for(window)


class StalledClassifier:
    """Ignores cancellation and blocks until released, like a hung inference."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()

    def classify(self, window, mode, cancel_event=None):
        self.started.set()
        self.release.wait(timeout=5.0)
        return None


class FailingSubscriber:
    def on_classification(self, result):
        raise RuntimeError("display failed")


def window_with_id(identifier: int) -> np.ndarray:
    return np.full(16, float(identifier), dtype=np.float32)


@pytest.fixture
def listener_state():
    return ListenerState(config={})


@pytest.fixture
def classifier():
    classifier = Mock()
    classifier.classify.side_effect = lambda window, mode, cancel_event=None: result_for(window)
    return classifier


class TestConstruction:

    def test_requires_classifier(self, listener_state):
        with pytest.raises(ValueError):
            ClassificationWorker(classifier=None, listener_state=listener_state)

    def test_requires_listener_state(self, classifier):
        with pytest.raises(ValueError):
            ClassificationWorker(classifier=classifier, listener_state=None)


class TestRunJob:

    def test_result_published_to_subscribers(self, classifier, listener_state):
        subscriber = Mock()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state,
                                      subscribers=[subscriber])
        job = ClassificationJob(window=window_with_id(3), mode=ClassificationMode.RAW)

        result = worker.run_job(job)

        assert result.top_class == "window3"
        subscriber.on_classification.assert_called_once_with(result)
        assert worker.completed_jobs == 1
        classifier.classify.assert_called_once()
        assert classifier.classify.call_args[0][1] is ClassificationMode.RAW

    def test_cancelled_job_not_published(self, classifier, listener_state):
        subscriber = Mock()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state,
                                      subscribers=[subscriber])
        job = ClassificationJob(window=window_with_id(1), mode=ClassificationMode.BALANCED)
        job.cancel_event.set()

        assert worker.run_job(job) is None
        classifier.classify.assert_not_called()
        subscriber.on_classification.assert_not_called()

    def test_none_result_not_published(self, listener_state):
        classifier = Mock()
        classifier.classify.return_value = None
        subscriber = Mock()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state,
                                      subscribers=[subscriber])

        worker.run_job(ClassificationJob(window=window_with_id(1), mode=ClassificationMode.BALANCED))

        subscriber.on_classification.assert_not_called()

    def test_classifier_exception_is_contained(self, listener_state):
        classifier = Mock()
        classifier.classify.side_effect = RuntimeError("boom")
        subscriber = Mock()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state,
                                      subscribers=[subscriber])

        result = worker.run_job(ClassificationJob(window=window_with_id(1), mode=ClassificationMode.RAW))

        assert result is None
        subscriber.on_classification.assert_not_called()

    def test_subscriber_added_later_receives_results(self, classifier, listener_state):
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state)
        subscriber = Mock()
        worker.add_subscriber(subscriber)

        worker.run_job(ClassificationJob(window=window_with_id(2), mode=ClassificationMode.RAW))

        subscriber.on_classification.assert_called_once()

    def test_failing_subscriber_does_not_block_others(self, classifier, listener_state):
        subscriber = Mock()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state,
                                      subscribers=[FailingSubscriber(), subscriber])

        result = worker.run_job(ClassificationJob(window=window_with_id(4), mode=ClassificationMode.RAW))

        assert result.top_class == "window4"
        subscriber.on_classification.assert_called_once_with(result)
        assert worker.completed_jobs == 1


class TestSubmit:

    def test_newer_submission_cancels_and_replaces_older(self, classifier, listener_state):
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state)

        first = worker.submit(window_with_id(1), ClassificationMode.BALANCED)
        second = worker.submit(window_with_id(2), ClassificationMode.BALANCED)

        assert first.cancel_event.is_set()
        assert not second.cancel_event.is_set()
        assert worker.replaced_jobs == 1
        assert worker._pending.qsize() == 1
        assert worker._pending.get_nowait() is second

    def test_threaded_processing_publishes_result(self, classifier, listener_state):
        subscriber = Mock()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state,
                                      subscribers=[subscriber])
        worker.start()
        try:
            worker.submit(window_with_id(5), ClassificationMode.SENSITIVE)
            assert worker.wait_until_idle(timeout=2.0)
        finally:
            worker.stop()

        subscriber.on_classification.assert_called_once()
        assert subscriber.on_classification.call_args[0][0].top_class == "window5"

    def test_running_job_is_cancelled_by_newer_window(self, listener_state):
        classifier = BlockingClassifier()
        subscriber = Mock()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state,
                                      subscribers=[subscriber])
        worker.start()
        try:
            worker.submit(window_with_id(1), ClassificationMode.BALANCED)
            assert classifier.first_started.wait(timeout=2.0)

            worker.submit(window_with_id(2), ClassificationMode.BALANCED)
            assert worker.wait_until_idle(timeout=2.0)
        finally:
            worker.stop()

        assert classifier.calls == [1, 2]
        subscriber.on_classification.assert_called_once()
        assert subscriber.on_classification.call_args[0][0].top_class == "window2"
        assert worker.replaced_jobs == 1

    def test_worker_keeps_running_after_subscriber_error(self, classifier, listener_state):
        subscriber = Mock()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state,
                                      subscribers=[FailingSubscriber(), subscriber])
        worker.start()
        try:
            worker.submit(window_with_id(1), ClassificationMode.RAW)
            assert worker.wait_until_idle(timeout=2.0)
            worker.submit(window_with_id(2), ClassificationMode.RAW)
            assert worker.wait_until_idle(timeout=2.0)

            assert worker.thread.is_alive()
        finally:
            worker.stop()

        labels = [call.args[0].top_class for call in subscriber.on_classification.call_args_list]
        assert labels == ["window1", "window2"]


class TestLifecycle:

    def test_idle_before_any_submission(self, classifier, listener_state):
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state)

        assert worker.wait_until_idle(timeout=0.01)

    def test_stop_is_idempotent_and_cancels_pending(self, classifier, listener_state):
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state)
        worker.is_running = True
        job = worker.submit(window_with_id(1), ClassificationMode.BALANCED)

        worker.stop()
        worker.stop()

        assert job.cancel_event.is_set()
        assert worker._pending.empty()
        assert worker.wait_until_idle(timeout=0.01)

    def test_shutdown_stops_worker(self, classifier, listener_state):
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state)
        worker.start()

        listener_state.set_state('shutdown')

        assert not worker.is_running
        worker.thread.join(timeout=1.0)
        assert not worker.thread.is_alive()

    def test_restart_refused_while_stalled_thread_is_alive(self, listener_state):
        classifier = StalledClassifier()
        worker = ClassificationWorker(classifier=classifier, listener_state=listener_state)
        worker.start()
        old_thread = worker.thread
        worker.submit(window_with_id(1), ClassificationMode.BALANCED)
        assert classifier.started.wait(timeout=2.0)

        worker.stop()
        assert old_thread.is_alive()

        assert worker.start() is False
        assert not worker.is_running
        assert worker.thread is old_thread

        classifier.release.set()
        old_thread.join(timeout=2.0)
        try:
            assert worker.start() is True
            assert worker.thread is not old_thread
        finally:
            worker.stop()
