# src/classification/YamnetModel.py
import logging
import onnxruntime
import numpy as np
from typing import Dict, Any, List, Optional
from pathlib import Path


class YamnetModel:
    """YAMNet audio event scorer using an ONNX export loaded with ONNX Runtime.

    Takes one 15600-sample waveform window and returns one score per
    AudioSet class. Exports that emit per-frame scores ([frames, classes])
    are reduced to a single vector by averaging over frames.

    Args:
        config: Configuration dictionary (model.providers is optional)
        model_path: Path to the YAMNet ONNX model file
        verbose: Enable detailed logging for debugging (default: False)
    """

    def __init__(self, config: Dict[str, Any], model_path: Path, verbose: bool = False):
        self.model_path = Path(model_path)
        self.verbose = verbose
        self.preferred_providers: List[str] = config.get('model', {}).get(
            'providers', ['CPUExecutionProvider']
        )

        self.session: Optional[onnxruntime.InferenceSession] = None
        self.input_name: str = ''
        self.output_name: str = ''
        self.batched_input: bool = False
        self._load_model()

    def _select_providers(self) -> List[str]:
        """Keep preferred providers that this onnxruntime build offers, CPU as fallback."""
        available = onnxruntime.get_available_providers()
        providers = [p for p in self.preferred_providers if p in available]
        if 'CPUExecutionProvider' not in providers:
            providers.append('CPUExecutionProvider')
        return providers

    def _load_model(self) -> None:
        """Load the ONNX model and cache input/output tensor names.

        Raises:
            FileNotFoundError: If the model file does not exist
            RuntimeError: If ONNX Runtime cannot create a session
        """
        if not self.model_path.exists():
            raise FileNotFoundError(
                f"YAMNet model not found at {self.model_path}. "
                f"Run 'python download_model.py' to download it."
            )

        try:
            sess_options = onnxruntime.SessionOptions()
            sess_options.graph_optimization_level = onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL

            self.session = onnxruntime.InferenceSession(
                str(self.model_path),
                sess_options=sess_options,
                providers=self._select_providers()
            )
        except Exception as e:
            raise RuntimeError(f"Failed to load YAMNet ONNX model: {e}") from e

        model_input = self.session.get_inputs()[0]
        self.input_name = model_input.name
        self.batched_input = len(model_input.shape) > 1
        self.output_name = self.session.get_outputs()[0].name

        logging.info(
            f"YAMNet loaded: input={self.input_name}{model_input.shape}, "
            f"output={self.output_name}, providers={self.session.get_providers()}"
        )

    def score(self, window: np.ndarray) -> np.ndarray:
        """Score a single waveform window.

        Args:
            window: float32 audio samples at 16kHz

        Returns:
            float32 array of class scores
        """
        audio_input = np.asarray(window, dtype=np.float32)
        if self.batched_input:
            audio_input = audio_input.reshape(1, -1)

        outputs = self.session.run([self.output_name], {self.input_name: audio_input})
        scores = np.asarray(outputs[0], dtype=np.float32)

        if scores.ndim == 2:
            scores = scores[0] if scores.shape[0] == 1 else scores.mean(axis=0)

        if self.verbose:
            logging.debug(f"YamnetModel: top index={int(np.argmax(scores))} max={float(scores.max()):.3f}")

        return scores
