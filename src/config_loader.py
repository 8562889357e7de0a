"""Configuration loader for the audio classification pipeline."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from src.modes import parse_mode


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "sample_rate": 16000,
            "chunk_duration": 0.1,
            "window_size": 15600,
            "overlap_divisor": 4
        },
        "preprocessing": {
            "high_pass_cutoff_hz": 80.0,
            "pre_emphasis": 0.97,
            "noise_floor_decay": 0.995,
            "noise_floor_attack": 0.1,
            "initial_noise_floor": 0.01,
            "gate_threshold_factor": 2.0,
            "max_gain": 5.0,
            "min_peak_amplitude": 0.001
        },
        "classification": {
            "mode": "BALANCED",
            "num_classes": 521,
            "top_k": 5,
            "reset_smoothing_on_start": False
        },
        "model": {
            "model_file": "yamnet/yamnet.onnx",
            "class_map_file": "yamnet/yamnet_class_map.csv",
            "repo_id": None,
            "filename": None,
            "providers": ["CPUExecutionProvider"]
        },
        "events": {
            "threshold": 0.3,
            "ignored_classes": ["Silence", "Static", "White noise", "Pink noise"]
        }
    }


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate configuration structure and values."""
    for key in get_default_config():
        if key not in config:
            return False, f"Missing required config section: {key}"

    audio = config["audio"]
    sample_rate = audio.get("sample_rate")
    if not isinstance(sample_rate, int) or sample_rate <= 0:
        return False, "audio.sample_rate must be a positive integer"
    if audio.get("chunk_duration", 0) <= 0:
        return False, "audio.chunk_duration must be positive"

    window_size = audio.get("window_size")
    divisor = audio.get("overlap_divisor")
    if not isinstance(window_size, int) or window_size <= 0:
        return False, "audio.window_size must be a positive integer"
    if not isinstance(divisor, int) or divisor <= 0 or window_size % divisor != 0:
        return False, "audio.window_size must be divisible by audio.overlap_divisor"

    pre = config["preprocessing"]
    if not 0 < pre.get("high_pass_cutoff_hz", 0) < sample_rate / 2:
        return False, "preprocessing.high_pass_cutoff_hz must be between 0 and the Nyquist frequency"
    for key in ("noise_floor_decay", "noise_floor_attack"):
        if not 0 <= pre.get(key, -1) <= 1:
            return False, f"preprocessing.{key} must be between 0 and 1"
    if pre.get("max_gain", 0) <= 0:
        return False, "preprocessing.max_gain must be positive"

    classification = config["classification"]
    try:
        parse_mode(classification.get("mode", ""))
    except ValueError as e:
        return False, f"classification.mode: {e}"
    if classification.get("num_classes", 0) <= 0:
        return False, "classification.num_classes must be positive"
    if classification.get("top_k", 0) <= 0:
        return False, "classification.top_k must be positive"

    if not 0 <= config["events"].get("threshold", -1) <= 1:
        return False, "events.threshold must be between 0 and 1"

    return True, None


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from JSON file, merging with defaults.

    Args:
        config_path: Path to listener_config.json

    Returns:
        Merged configuration dictionary.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the file is not valid JSON or the config is invalid.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with config_path.open('r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file {config_path}: {e}") from e

    merged = _deep_merge(get_default_config(), config)

    is_valid, error_msg = validate_config(merged)
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_msg}")

    logging.info(f"Loaded configuration from {config_path}")
    return merged


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
