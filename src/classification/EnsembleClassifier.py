# src/classification/EnsembleClassifier.py
"""
Tests for this module:
- tests/test_ensemble_math.py - fusion, agreement, confidence quality, result assembly
- tests/test_ensemble_classifier.py - classification cycle, smoothing, failures, cancellation
"""
from __future__ import annotations
import logging
import math
import threading
from collections import Counter
from typing import Dict, Any, List, Optional, Sequence, TYPE_CHECKING

import numpy as np

from src.modes import get_mode_settings
from src.types import ClassificationMode, ClassificationResult, NUM_CLASSES, WINDOW_SIZE
from src.classification.ClassNames import ClassNameTable

if TYPE_CHECKING:
    from src.protocols import ScoringModel


# Probabilities at or below this are ignored in the entropy sum
ENTROPY_EPSILON = 1e-4
# Guards against division by zero for all-zero score vectors
MIN_SCORE_TOTAL = 0.001

ENTROPY_WEIGHT = 0.4
MARGIN_WEIGHT = 0.6


def extract_window(audio: np.ndarray, offset: int, size: int) -> np.ndarray:
    """Copy size samples starting at offset, zero-padding past the end of audio."""
    window = np.zeros(size, dtype=np.float32)
    if offset < len(audio):
        available = audio[offset:offset + size]
        window[:len(available)] = available
    return window


def fuse_ensemble_scores(ensemble_scores: Sequence[np.ndarray]) -> np.ndarray:
    """Confidence-weighted average of sub-window score vectors.

    Each sub-window is weighted by its own maximum score; weights are
    normalized to sum to 1. A single vector is returned unchanged.
    """
    if len(ensemble_scores) == 1:
        return ensemble_scores[0]

    stacked = np.stack(ensemble_scores)
    weights = stacked.max(axis=1)
    total_weight = max(float(weights.sum()), MIN_SCORE_TOTAL)
    return (weights / total_weight) @ stacked


def calculate_ensemble_agreement(ensemble_scores: Sequence[np.ndarray]) -> float:
    """Fraction of sub-windows whose top-1 class is the most common top-1 class."""
    if len(ensemble_scores) <= 1:
        return 1.0

    top_classes = [int(np.argmax(scores)) for scores in ensemble_scores]
    _, agreement_count = Counter(top_classes).most_common(1)[0]
    return agreement_count / len(ensemble_scores)


def calculate_confidence_quality(scores: np.ndarray, num_classes: Optional[int] = None) -> float:
    """Combine distribution entropy and top-1/top-2 margin into a 0-1 quality score.

    Algorithm:
    1. Normalize scores to sum to 1
    2. Shannon entropy (natural log) over probabilities > 1e-4,
       divided by ln(num_classes)
    3. entropy_score = 1 - normalized entropy, clamped to [0, 1]
    4. margin_score = p(top1) - p(top2), clamped to [0, 1]
    5. quality = 0.4 * entropy_score + 0.6 * margin_score, clamped to [0, 1]

    Args:
        scores: Non-negative score vector
        num_classes: Class count defining the maximum entropy (defaults to len(scores))

    Returns:
        Confidence quality in [0, 1]
    """
    scores = np.asarray(scores, dtype=np.float64)
    if scores.size == 0:
        return 0.0
    if num_classes is None:
        num_classes = scores.size

    probs = scores / max(float(scores.sum()), MIN_SCORE_TOTAL)

    significant = probs[probs > ENTROPY_EPSILON]
    entropy = float(-np.sum(significant * np.log(significant)))
    max_entropy = math.log(num_classes) if num_classes > 1 else 0.0
    normalized_entropy = entropy / max_entropy if max_entropy > 0 else 0.0

    ranked = np.sort(probs)[::-1]
    margin = float(ranked[0] - ranked[1]) if ranked.size >= 2 else float(ranked[0])

    entropy_score = 1.0 - min(max(normalized_entropy, 0.0), 1.0)
    margin_score = min(max(margin, 0.0), 1.0)

    quality = ENTROPY_WEIGHT * entropy_score + MARGIN_WEIGHT * margin_score
    return min(max(quality, 0.0), 1.0)


def build_result(scores: np.ndarray,
                 confidence_quality: float,
                 ensemble_agreement: float,
                 class_names: ClassNameTable,
                 top_k: int = 5) -> ClassificationResult:
    """Assemble a ClassificationResult from the final score vector.

    Top class is the first index holding the maximum score. Predictions are
    the top_k classes by descending score, ties kept in class index order.
    """
    top_index = int(np.argmax(scores))
    ranked = np.argsort(-scores, kind='stable')[:top_k]

    predictions: Dict[str, float] = {}
    for index in ranked:
        predictions[class_names.prediction_label(int(index))] = float(scores[index])

    return ClassificationResult(
        top_class=class_names.label(top_index),
        top_score=float(scores[top_index]),
        predictions=predictions,
        confidence_quality=float(confidence_quality),
        ensemble_agreement=float(ensemble_agreement),
    )


class EnsembleClassifier:
    """Multi-window ensemble classification with temporal smoothing.

    Each cycle runs the scoring model on time-shifted sub-windows of one
    analysis window, fuses the score vectors by confidence, smooths the result
    against previous cycles with an exponential moving average and scores the
    reliability of the final distribution.

    Cycle:
    1. Score each sub-window at the mode's offsets (zero-padded); failures are skipped
    2. Fuse (confidence-weighted) when more than one sub-window succeeded
    3. Agreement: fraction of sub-windows voting for the most common top-1 class
    4. EMA: smoothed = alpha * fused + (1 - alpha) * previous (skipped for alpha = 1)
    5. Confidence quality from entropy and margin of the smoothed vector
    6. Top class and top-k predictions

    Thread Safety:
        The whole cycle runs under an instance lock, so concurrent classify()
        calls are serialized and never observe partially updated EMA state.
        A set cancel_event is honoured between sub-window inferences and
        before the EMA update, never in the middle of it.

    Args:
        model: Scoring model with score(window) -> scores
        class_names: Label table (placeholders used when None or short)
        config: Configuration dictionary
        verbose: Enable verbose logging
    """

    def __init__(self,
                 *,
                 model: Optional["ScoringModel"] = None,
                 class_names: Optional[ClassNameTable] = None,
                 config: Optional[Dict[str, Any]] = None,
                 verbose: bool = False) -> None:
        if model is None:
            raise ValueError("EnsembleClassifier requires model")
        config = config or {}
        classification_config = config.get('classification', {})

        self.model: "ScoringModel" = model
        self.class_names: ClassNameTable = class_names if class_names is not None else ClassNameTable()
        self.window_size: int = config.get('audio', {}).get('window_size', WINDOW_SIZE)
        self.num_classes: int = classification_config.get('num_classes', NUM_CLASSES)
        self.top_k: int = classification_config.get('top_k', 5)
        self.verbose: bool = verbose

        self._lock = threading.Lock()
        self._ema_scores: Optional[np.ndarray] = None
        self.failed_inferences: int = 0

    def classify(self,
                 audio: np.ndarray,
                 mode: ClassificationMode = ClassificationMode.BALANCED,
                 cancel_event: Optional[threading.Event] = None) -> Optional[ClassificationResult]:
        """Run one classification cycle.

        Args:
            audio: Preprocessed analysis window
            mode: Classification mode selecting offsets and smoothing
            cancel_event: Optional cancellation token

        Returns:
            ClassificationResult, or None if every sub-window failed or the
            cycle was cancelled before the smoothing step
        """
        settings = get_mode_settings(mode)

        with self._lock:
            ensemble_scores: List[np.ndarray] = []
            for offset in settings.window_offsets:
                if self._is_cancelled(cancel_event):
                    return None
                sub_window = extract_window(audio, offset, self.window_size)
                scores = self._run_single_inference(sub_window, offset)
                if scores is not None:
                    ensemble_scores.append(scores)

            if not ensemble_scores:
                logging.warning(f"EnsembleClassifier: all {settings.window_count} sub-window inferences failed")
                return None

            if self._is_cancelled(cancel_event):
                return None

            fused = fuse_ensemble_scores(ensemble_scores)
            if settings.smoothing_enabled:
                smoothed = self._apply_ema(fused, settings.ema_alpha)
            else:
                smoothed = fused

            agreement = calculate_ensemble_agreement(ensemble_scores)
            quality = calculate_confidence_quality(smoothed, self.num_classes)
            result = build_result(smoothed, quality, agreement, self.class_names, self.top_k)

        if self.verbose:
            logging.debug(
                f"EnsembleClassifier: mode={mode.value} windows={len(ensemble_scores)} "
                f"top='{result.top_class}' score={result.top_score:.3f} "
                f"quality={result.confidence_quality:.3f} agreement={result.ensemble_agreement:.2f}"
            )
        return result

    def _is_cancelled(self, cancel_event: Optional[threading.Event]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            if self.verbose:
                logging.debug("EnsembleClassifier: cycle cancelled")
            return True
        return False

    def _run_single_inference(self, sub_window: np.ndarray, offset: int) -> Optional[np.ndarray]:
        """Score one sub-window, returning None on any failure or malformed output."""
        try:
            raw_scores = self.model.score(sub_window)
        except Exception as e:
            self.failed_inferences += 1
            logging.warning(f"EnsembleClassifier: inference failed at offset {offset}: {e}")
            return None

        if raw_scores is None:
            self.failed_inferences += 1
            logging.warning(f"EnsembleClassifier: empty inference result at offset {offset}")
            return None

        scores = np.asarray(raw_scores, dtype=np.float64).ravel()
        if scores.size != self.num_classes or not np.all(np.isfinite(scores)):
            self.failed_inferences += 1
            logging.warning(
                f"EnsembleClassifier: malformed scores at offset {offset} "
                f"(size={scores.size}, expected {self.num_classes})"
            )
            return None

        return np.clip(scores, 0.0, None)

    def _apply_ema(self, current: np.ndarray, alpha: float) -> np.ndarray:
        """Blend with the previous smoothed vector; the first call seeds the state.

        Args:
            current: Fused scores of this cycle
            alpha: Weight of the current cycle (1.0 = no smoothing, 0 = max smoothing)
        """
        previous = self._ema_scores
        if previous is None:
            self._ema_scores = current.copy()
            return current

        smoothed = alpha * current + (1.0 - alpha) * previous
        self._ema_scores = smoothed
        return smoothed

    def reset_smoothing(self) -> None:
        """Forget the EMA state so the next smoothed cycle passes through unchanged."""
        with self._lock:
            self._ema_scores = None

    @property
    def has_smoothing_state(self) -> bool:
        return self._ema_scores is not None
