# src/sound/SignalPreprocessor.py
"""
Tests for this module:
- tests/test_signal_preprocessor.py - filter chain, noise gate, window conditioning
"""
from __future__ import annotations
import logging
import math
import numpy as np
from dataclasses import dataclass
from typing import Dict, Any, Optional
from scipy.signal import lfilter, lfiltic

from src.types import PreprocessingProfile


DEFAULT_HIGH_PASS_CUTOFF_HZ = 80.0
DEFAULT_PRE_EMPHASIS = 0.97
DEFAULT_NOISE_FLOOR_DECAY = 0.995
DEFAULT_NOISE_FLOOR_ATTACK = 0.1
DEFAULT_INITIAL_NOISE_FLOOR = 0.01
DEFAULT_GATE_THRESHOLD_FACTOR = 2.0
DEFAULT_MAX_GAIN = 5.0
DEFAULT_MIN_PEAK_AMPLITUDE = 0.001


@dataclass
class FilterState:
    """Mutable filter state owned by one SignalPreprocessor.

    Carried across windows of one capture session and never shared between
    sessions. Reset when a session (re)starts.
    """

    # High-pass biquad history: last two inputs and outputs
    hp_x1: float = 0.0
    hp_x2: float = 0.0
    hp_y1: float = 0.0
    hp_y2: float = 0.0

    # Pre-emphasis history
    last_sample: float = 0.0

    # Adaptive noise floor
    noise_floor_rms: float = DEFAULT_INITIAL_NOISE_FLOOR
    noise_floor_initialized: bool = False


@dataclass(frozen=True)
class HighPassCoefficients:
    """Second-order Butterworth high-pass coefficients (RBJ biquad, normalized by a0).

    Feed-forward: a0, a1, a2. Feedback: b1, b2.
    """
    a0: float
    a1: float
    a2: float
    b1: float
    b2: float

    @classmethod
    def butterworth(cls, cutoff_hz: float, sample_rate: int) -> HighPassCoefficients:
        """Compute coefficients for the Butterworth response at cutoff_hz."""
        omega = 2.0 * math.pi * cutoff_hz / sample_rate
        cos_omega = math.cos(omega)
        alpha = math.sin(omega) / (2.0 * math.sqrt(2.0))

        norm = 1.0 + alpha
        return cls(
            a0=((1.0 + cos_omega) / 2.0) / norm,
            a1=-(1.0 + cos_omega) / norm,
            a2=((1.0 + cos_omega) / 2.0) / norm,
            b1=(-2.0 * cos_omega) / norm,
            b2=(1.0 - alpha) / norm,
        )

    @property
    def numerator(self) -> list[float]:
        return [self.a0, self.a1, self.a2]

    @property
    def denominator(self) -> list[float]:
        return [1.0, self.b1, self.b2]


class SignalPreprocessor:
    """Stateful filter chain applied to each analysis window.

    Pipeline (single pass over the window, gate applied to the whole window):
    1. High-pass: 2nd order Butterworth at 80 Hz removes rumble
    2. Pre-emphasis: y[n] = x[n] - 0.97 * x[n-1] boosts high frequencies
    3. Noise gate (FULL/REDUCED profiles only): soft power-law attenuation of
       windows whose RMS is below twice the adaptive noise floor

    Noise Floor Tracking:
    - First gated window seeds the floor with its RMS
    - RMS below floor: floor = floor * 0.995 + rms * 0.005
    - RMS above floor: floor = floor * 0.9 + rms * 0.1
    - Gate threshold = 2 * floor
    - Below threshold: samples *= (rms / threshold) ** (1 / ratio)

    Filter history (high-pass, pre-emphasis, noise floor) persists across
    windows and profiles. Only reset() clears it.

    Args:
        config: Configuration dictionary with audio.sample_rate and optional preprocessing section
        verbose: Enable verbose logging
    """

    def __init__(self, config: Dict[str, Any], verbose: bool = False):
        self.sample_rate: int = config['audio']['sample_rate']
        pre_config = config.get('preprocessing', {})

        self.high_pass_cutoff_hz: float = pre_config.get('high_pass_cutoff_hz', DEFAULT_HIGH_PASS_CUTOFF_HZ)
        self.pre_emphasis: float = pre_config.get('pre_emphasis', DEFAULT_PRE_EMPHASIS)
        self.noise_floor_decay: float = pre_config.get('noise_floor_decay', DEFAULT_NOISE_FLOOR_DECAY)
        self.noise_floor_attack: float = pre_config.get('noise_floor_attack', DEFAULT_NOISE_FLOOR_ATTACK)
        self.initial_noise_floor: float = pre_config.get('initial_noise_floor', DEFAULT_INITIAL_NOISE_FLOOR)
        self.gate_threshold_factor: float = pre_config.get('gate_threshold_factor', DEFAULT_GATE_THRESHOLD_FACTOR)
        self.verbose: bool = verbose

        self.coefficients: HighPassCoefficients = HighPassCoefficients.butterworth(
            self.high_pass_cutoff_hz, self.sample_rate
        )
        self.state: FilterState = FilterState(noise_floor_rms=self.initial_noise_floor)

    def process(self, window: np.ndarray, profile: PreprocessingProfile) -> np.ndarray:
        """Run the filter chain for the given profile.

        Args:
            window: Raw analysis window
            profile: Preprocessing intensity

        Returns:
            float32 array of the same length as window
        """
        samples = np.asarray(window, dtype=np.float64).ravel()
        if samples.size == 0:
            return np.zeros(0, dtype=np.float32)

        filtered = self._apply_high_pass(samples)
        emphasized = self._apply_pre_emphasis(filtered)

        gate_ratio = profile.gate_ratio
        if gate_ratio is not None:
            emphasized = self._apply_noise_gate(emphasized, gate_ratio)

        return emphasized.astype(np.float32)

    def _apply_high_pass(self, samples: np.ndarray) -> np.ndarray:
        """Biquad recurrence continuing from the stored input/output history."""
        state = self.state
        b = self.coefficients.numerator
        a = self.coefficients.denominator

        zi = lfiltic(b, a, y=[state.hp_y1, state.hp_y2], x=[state.hp_x1, state.hp_x2])
        output, _ = lfilter(b, a, samples, zi=zi)

        if samples.size >= 2:
            state.hp_x1, state.hp_x2 = float(samples[-1]), float(samples[-2])
            state.hp_y1, state.hp_y2 = float(output[-1]), float(output[-2])
        else:
            state.hp_x2, state.hp_x1 = state.hp_x1, float(samples[0])
            state.hp_y2, state.hp_y1 = state.hp_y1, float(output[0])

        return output

    def _apply_pre_emphasis(self, samples: np.ndarray) -> np.ndarray:
        previous = np.empty_like(samples)
        previous[0] = self.state.last_sample
        previous[1:] = samples[:-1]
        self.state.last_sample = float(samples[-1])
        return samples - self.pre_emphasis * previous

    def _apply_noise_gate(self, samples: np.ndarray, ratio: float) -> np.ndarray:
        """Soft noise gate with asymmetric noise floor tracking.

        Args:
            samples: Filtered window
            ratio: Compression ratio, attenuation = (rms / threshold) ** (1 / ratio)

        Returns:
            Attenuated copy below the gate threshold, unchanged samples above it
        """
        state = self.state
        current_rms = float(np.sqrt(np.mean(samples ** 2)))

        if not state.noise_floor_initialized:
            state.noise_floor_rms = current_rms
            state.noise_floor_initialized = True
        elif current_rms < state.noise_floor_rms:
            state.noise_floor_rms = (state.noise_floor_rms * self.noise_floor_decay
                                     + current_rms * (1.0 - self.noise_floor_decay))
        else:
            state.noise_floor_rms = (state.noise_floor_rms * (1.0 - self.noise_floor_attack)
                                     + current_rms * self.noise_floor_attack)

        gate_threshold = state.noise_floor_rms * self.gate_threshold_factor

        if current_rms < gate_threshold:
            attenuation = (current_rms / gate_threshold) ** (1.0 / ratio)
            if self.verbose:
                logging.debug(
                    f"SignalPreprocessor: gate rms={current_rms:.5f} "
                    f"threshold={gate_threshold:.5f} attenuation={attenuation:.3f}"
                )
            return samples * attenuation

        return samples.copy()

    def noise_floor_db(self) -> float:
        """Current noise floor estimate in dBFS, -100 when the floor is zero."""
        if self.state.noise_floor_rms > 0:
            return 20.0 * math.log10(self.state.noise_floor_rms)
        return -100.0

    def reset(self) -> None:
        """Reset filter history. Call when a capture session (re)starts."""
        self.state = FilterState(noise_floor_rms=self.initial_noise_floor)


# ========================================================================
# Mode-independent window conditioning
# ========================================================================

def remove_dc_offset(window: np.ndarray) -> np.ndarray:
    """Subtract the window mean."""
    samples = np.asarray(window, dtype=np.float32)
    if samples.size == 0:
        return samples.copy()
    return samples - np.float32(np.mean(samples))


def peak_normalize(window: np.ndarray,
                   max_gain: float = DEFAULT_MAX_GAIN,
                   min_peak: float = DEFAULT_MIN_PEAK_AMPLITUDE) -> np.ndarray:
    """Scale the window so its peak reaches 1.0, with gain capped at max_gain.

    Windows whose peak is at or below min_peak are left at unity gain so
    near-silence is not amplified.
    """
    samples = np.asarray(window, dtype=np.float32)
    max_abs = float(np.max(np.abs(samples))) if samples.size else 0.0
    gain = min(1.0 / max_abs, max_gain) if max_abs > min_peak else 1.0
    return samples * np.float32(gain)


def condition_window(window: np.ndarray, config: Optional[Dict[str, Any]] = None) -> np.ndarray:
    """DC removal followed by peak normalization, applied for every mode."""
    pre_config = (config or {}).get('preprocessing', {})
    return peak_normalize(
        remove_dc_offset(window),
        max_gain=pre_config.get('max_gain', DEFAULT_MAX_GAIN),
        min_peak=pre_config.get('min_peak_amplitude', DEFAULT_MIN_PEAK_AMPLITUDE),
    )
