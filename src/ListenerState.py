"""
ListenerState - Listening lifecycle and live classification mode with observer pattern.

Components register as observers and react to lifecycle transitions
(e.g. stop their threads on shutdown). The classification mode can change
at any time while listening.

State mutations are protected by threading.Lock.

State Machine:
- idle -> listening, shutdown
- listening -> idle, shutdown
- shutdown -> (terminal state)
"""
import logging
import threading
from typing import Callable, Dict, List, Set

from src.types import ClassificationMode


class ListenerState:
    """
    Manages listening state and classification mode with observer pattern.

    Attributes:
        config: Application configuration dictionary
        _state: Current state ('idle', 'listening', 'shutdown')
        _mode: Current ClassificationMode
        _lock: Thread lock for state and mode mutations
        _component_observers: Observers receiving (old_state, new_state)
    """

    _VALID_TRANSITIONS: Dict[str, Set[str]] = {
        'idle': {'listening', 'shutdown'},
        'listening': {'idle', 'shutdown'},
        'shutdown': set()
    }

    def __init__(self, config: Dict, mode: ClassificationMode = ClassificationMode.BALANCED):
        """
        Initialize ListenerState.

        Args:
            config: Application configuration dictionary
            mode: Initial classification mode
        """
        self.config = config
        self._state = 'idle'
        self._mode = mode
        self._lock = threading.Lock()
        self._component_observers: List[Callable[[str, str], None]] = []

    def get_state(self) -> str:
        with self._lock:
            return self._state

    def set_state(self, new_state: str) -> None:
        """
        Set new state and notify observers (thread-safe).

        Args:
            new_state: New state to transition to

        Raises:
            ValueError: On a transition not allowed by the state machine
        """
        with self._lock:
            old_state = self._state

            if new_state not in self._VALID_TRANSITIONS[old_state]:
                raise ValueError(
                    f"Invalid state transition: {old_state} -> {new_state}"
                )

            self._state = new_state

        # Notify observers outside the lock to avoid deadlocks
        for observer in self._component_observers:
            observer(old_state, new_state)

    def get_mode(self) -> ClassificationMode:
        with self._lock:
            return self._mode

    def set_mode(self, new_mode: ClassificationMode) -> None:
        """
        Change the classification mode in real time (no restart needed).

        Takes effect from the next analysis window. Filter and smoothing
        state are left untouched.
        """
        with self._lock:
            old_mode = self._mode
            self._mode = new_mode

        if old_mode is not new_mode:
            logging.info(f"Classification mode changed: {old_mode.value} -> {new_mode.value}")

    def register_component_observer(self, observer: Callable[[str, str], None]) -> None:
        """
        Args:
            observer: Callable that receives (old_state, new_state)
        """
        with self._lock:
            self._component_observers.append(observer)
