# download_model.py
"""Download the YAMNet model and class map to the models/ directory.

The ONNX export is fetched from the Hugging Face repo configured under
model.repo_id / model.filename in config/listener_config.json.
"""
import sys
from pathlib import Path

from src.classification.ModelManager import ModelManager
from src.config_loader import load_config


def print_progress(model_name: str, progress: float, status: str) -> None:
    print(f"  {model_name}: {status} ({progress:.0%})")


if __name__ == "__main__":
    config = load_config(Path("./config/listener_config.json"))
    models_dir = Path("./models")

    missing = ModelManager.get_missing_models(config, models_dir)
    if not missing:
        print(f"All model files present in {models_dir}")
        sys.exit(0)

    print(f"Downloading: {', '.join(missing)}")
    sys.exit(0 if ModelManager.download_models(config, models_dir, print_progress) else 1)
