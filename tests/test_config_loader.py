"""
Tests for configuration loading, merging and validation.
"""
import json
import pytest
from pathlib import Path

from src.config_loader import get_default_config, load_config, validate_config


SHIPPED_CONFIG = Path(__file__).parent.parent / "config" / "listener_config.json"


def write_config(tmp_path, data) -> Path:
    path = tmp_path / "listener_config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestValidateConfig:

    def test_defaults_are_valid(self):
        assert validate_config(get_default_config()) == (True, None)

    def test_missing_section(self):
        config = get_default_config()
        del config['events']

        is_valid, message = validate_config(config)

        assert not is_valid
        assert "events" in message

    @pytest.mark.parametrize("section,key,value", [
        ("audio", "sample_rate", 0),
        ("audio", "window_size", 15601),
        ("audio", "chunk_duration", 0),
        ("preprocessing", "high_pass_cutoff_hz", 9000.0),
        ("preprocessing", "noise_floor_decay", 1.5),
        ("classification", "mode", "TURBO"),
        ("classification", "top_k", 0),
        ("events", "threshold", 1.5),
    ])
    def test_invalid_values(self, section, key, value):
        config = get_default_config()
        config[section][key] = value

        is_valid, message = validate_config(config)

        assert not is_valid
        assert message


class TestLoadConfig:

    def test_shipped_config_loads(self):
        config = load_config(SHIPPED_CONFIG)

        assert config['audio']['window_size'] == 15600
        assert config['classification']['mode'] == 'BALANCED'

    def test_partial_file_is_merged_with_defaults(self, tmp_path):
        path = write_config(tmp_path, {"classification": {"mode": "raw"}, "events": {"threshold": 0.5}})

        config = load_config(path)

        assert config['classification']['mode'] == 'raw'
        assert config['classification']['num_classes'] == 521
        assert config['events']['threshold'] == 0.5
        assert config['events']['ignored_classes'] == ["Silence", "Static", "White noise", "Pink noise"]
        assert config['audio']['sample_rate'] == 16000

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.json")

    def test_invalid_json_raises_value_error(self, tmp_path):
        path = tmp_path / "listener_config.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid JSON"):
            load_config(path)

    def test_invalid_values_raise_value_error(self, tmp_path):
        path = write_config(tmp_path, {"audio": {"overlap_divisor": 7}})

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(path)

    def test_defaults_are_fresh_copies(self):
        first = get_default_config()
        first['audio']['sample_rate'] = 8000

        assert get_default_config()['audio']['sample_rate'] == 16000
