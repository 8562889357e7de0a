"""
ModelManager handles model download and validation for the classification pipeline.
"""
import logging
import shutil
import urllib.request
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from huggingface_hub import hf_hub_download


MODEL_DIR = Path("./models")
CLASS_MAP_URL = (
    "https://raw.githubusercontent.com/tensorflow/models/master/"
    "research/audioset/yamnet/yamnet_class_map.csv"
)
DEFAULT_MODEL_FILE = "yamnet/yamnet.onnx"
DEFAULT_CLASS_MAP_FILE = "yamnet/yamnet_class_map.csv"


class ModelManager:
    """
    Manages the YAMNet model and its class map on disk.

    File locations are relative to the models directory and come from the
    'model' config section (model_file, class_map_file). The ONNX model is
    downloaded from the Hugging Face repo named by model.repo_id/model.filename;
    the class map comes from the public AudioSet CSV.
    """

    @staticmethod
    def model_path(model_dir: Path, config: Dict[str, Any]) -> Path:
        return model_dir / config.get('model', {}).get('model_file', DEFAULT_MODEL_FILE)

    @staticmethod
    def class_map_path(model_dir: Path, config: Dict[str, Any]) -> Path:
        return model_dir / config.get('model', {}).get('class_map_file', DEFAULT_CLASS_MAP_FILE)

    @staticmethod
    def get_missing_models(config: Dict[str, Any], model_dir: Optional[Path] = None) -> List[str]:
        """
        Returns list of missing model file names.

        Args:
            config: Configuration dictionary
            model_dir: Directory containing models (defaults to ./models)

        Returns:
            List of missing names: ['yamnet', 'class_map'] or []
        """
        if model_dir is None:
            model_dir = MODEL_DIR

        return [name for name in ('yamnet', 'class_map')
                if not ModelManager.validate_model(name, config, model_dir)]

    @staticmethod
    def validate_model(model_name: str, config: Dict[str, Any], model_dir: Optional[Path] = None) -> bool:
        """
        Validates that a model file exists and is not empty.

        Args:
            model_name: 'yamnet' or 'class_map'
            config: Configuration dictionary
            model_dir: Directory containing models (defaults to ./models)

        Returns:
            True if the file exists and is non-empty, False otherwise
        """
        if model_dir is None:
            model_dir = MODEL_DIR

        if model_name == 'yamnet':
            path = ModelManager.model_path(model_dir, config)
        elif model_name == 'class_map':
            path = ModelManager.class_map_path(model_dir, config)
        else:
            return False

        return path.exists() and path.stat().st_size > 0

    @staticmethod
    def download_models(config: Dict[str, Any],
                        model_dir: Optional[Path] = None,
                        progress_callback: Optional[Callable[[str, float, str], None]] = None) -> bool:
        """
        Downloads missing model files with optional progress tracking.

        Args:
            config: Configuration dictionary
            model_dir: Directory to download models to (defaults to ./models)
            progress_callback: Callback function with signature:
                def callback(model_name: str, progress: float, status: str):
                    # progress: 0.0 to 1.0
                    # status: 'downloading' | 'complete' | 'error'

        Returns:
            True if all downloads succeeded, False otherwise
        """
        if model_dir is None:
            model_dir = MODEL_DIR

        model_name = 'unknown'
        try:
            for model_name in ModelManager.get_missing_models(config, model_dir):
                if progress_callback:
                    progress_callback(model_name, 0.0, 'downloading')

                if model_name == 'yamnet':
                    ModelManager._download_yamnet(config, model_dir)
                elif model_name == 'class_map':
                    ModelManager._download_class_map(config, model_dir)

                if progress_callback:
                    progress_callback(model_name, 1.0, 'complete')

            return True

        except Exception as e:
            logging.error(f"Model download error: {type(e).__name__}: {e}")

            if progress_callback:
                progress_callback(model_name, 0.0, 'error')

            ModelManager._cleanup_partial_files(model_dir)
            return False

    @staticmethod
    def _download_yamnet(config: Dict[str, Any], model_dir: Path) -> None:
        """
        Downloads the YAMNet ONNX export from Hugging Face and copies it to model_file.

        Raises:
            ValueError: If model.repo_id or model.filename is not configured
        """
        model_config = config.get('model', {})
        repo_id = model_config.get('repo_id')
        filename = model_config.get('filename')
        if not repo_id or not filename:
            raise ValueError("model.repo_id and model.filename must be set to download the YAMNet model")

        target_path = ModelManager.model_path(model_dir, config)
        target_path.parent.mkdir(parents=True, exist_ok=True)

        downloaded_path = hf_hub_download(
            repo_id=repo_id,
            filename=filename,
            local_dir=str(target_path.parent)
        )
        if Path(downloaded_path) != target_path:
            shutil.copy2(downloaded_path, target_path)

    @staticmethod
    def _download_class_map(config: Dict[str, Any], model_dir: Path) -> None:
        target_path = ModelManager.class_map_path(model_dir, config)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        urllib.request.urlretrieve(CLASS_MAP_URL, str(target_path))

    @staticmethod
    def _cleanup_partial_files(model_dir: Path) -> None:
        """
        Removes partial download files after errors.

        Args:
            model_dir: Root models directory
        """
        if not model_dir.exists():
            return
        for partial_file in model_dir.rglob("*.incomplete"):
            try:
                partial_file.unlink()
            except OSError as e:
                logging.warning(f"Could not remove partial download {partial_file}: {e}")
