"""Sound subsystem - windowing, filtering and capture adapters."""
from src.sound.Windower import Windower
from src.sound.SignalPreprocessor import SignalPreprocessor, FilterState, condition_window

__all__ = ['Windower', 'SignalPreprocessor', 'FilterState', 'condition_window']
