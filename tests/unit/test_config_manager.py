"""
Tests for ConfigManager.
"""

from pathlib import Path

import pytest
import yaml

from meetscribe.utils import ConfigManager


class TestConfigManager:
    """Tests for ConfigManager functionality."""

    def test_yaml_safe_load_used(self):
        """Verify yaml.safe_load is used (not yaml.load)."""
        utils_path = Path(__file__).parent.parent.parent / "src" / "meetscribe" / "utils.py"
        content = utils_path.read_text()

        assert "yaml.safe_load" in content
        assert "yaml.load(" not in content or "Loader=" in content

    def test_config_validation_type_checking(self):
        """Config validation should check types."""
        manager = ConfigManager()

        assert manager._validate_config_value("test", {"type": "str", "value": ""}, "test.path")
        assert manager._validate_config_value(42, {"type": "int", "value": 0}, "test.path")
        assert manager._validate_config_value(True, {"type": "bool", "value": False}, "test.path")
        assert manager._validate_config_value(5, {"type": "float", "value": 1.0}, "test.path")
        assert manager._validate_config_value(["a"], {"type": "list", "value": None}, "test.path")

        # None should be allowed (optional values)
        assert manager._validate_config_value(None, {"type": "str", "value": ""}, "test.path")

        assert not manager._validate_config_value("10", {"type": "float", "value": 1.0}, "test.path")
        assert not manager._validate_config_value(True, {"type": "int", "value": 0}, "test.path")

    def test_config_validation_options_checking(self):
        """Config validation should check allowed options."""
        manager = ConfigManager()

        schema_item = {
            "type": "str",
            "value": "assemblyai",
            "options": ["assemblyai", "openai"]
        }

        assert manager._validate_config_value("assemblyai", schema_item, "backend")
        assert manager._validate_config_value("openai", schema_item, "backend")
        assert not manager._validate_config_value("invalid", schema_item, "backend")


class TestConfigManagerSingleton:
    """Tests for ConfigManager singleton behavior."""

    def test_defaults_from_schema(self, fresh_config, temp_dir):
        fresh_config.initialize(config_path=temp_dir / "missing.yaml")

        assert fresh_config.get_config_value('transcription', 'backend') == "assemblyai"
        assert fresh_config.get_config_value('transcription', 'poll_interval') == 5.0
        assert fresh_config.get_config_value('transcription', 'timeout') == 300.0
        assert fresh_config.get_config_value('transcription', 'max_attempts') == 3
        assert fresh_config.get_config_value('batching', 'window_seconds') == 10.0

    def test_user_config_merged_over_defaults(self, fresh_config, temp_dir):
        config_path = temp_dir / "config.yaml"
        config_path.write_text(yaml.safe_dump({
            "transcription": {"backend": "openai", "timeout": 60},
            "batching": {"window_seconds": "fast"},
        }))

        fresh_config.initialize(config_path=config_path)

        assert fresh_config.get_config_value('transcription', 'backend') == "openai"
        assert fresh_config.get_config_value('transcription', 'timeout') == 60
        # Untouched keys keep their defaults
        assert fresh_config.get_config_value('transcription', 'poll_interval') == 5.0
        # Invalid values fall back to the default
        assert fresh_config.get_config_value('batching', 'window_seconds') == 10.0

    def test_invalid_option_falls_back(self, fresh_config, temp_dir):
        config_path = temp_dir / "config.yaml"
        config_path.write_text("transcription:\n  backend: nonexistent\n")

        fresh_config.initialize(config_path=config_path)

        assert fresh_config.get_config_value('transcription', 'backend') == "assemblyai"

    def test_malformed_yaml_uses_defaults(self, fresh_config, temp_dir):
        config_path = temp_dir / "config.yaml"
        config_path.write_text("transcription: [unclosed\n")

        fresh_config.initialize(config_path=config_path)

        assert fresh_config.get_config_value('transcription', 'backend') == "assemblyai"

    def test_initialize_twice_raises(self, fresh_config, temp_dir):
        fresh_config.initialize(config_path=temp_dir / "missing.yaml")
        with pytest.raises(RuntimeError):
            fresh_config.initialize()

    def test_get_config_value_nested_keys(self, fresh_config):
        manager = ConfigManager()
        manager.config = {"level1": {"level2": {"value": "test"}}}
        ConfigManager._instance = manager

        assert ConfigManager.get_config_value("level1", "level2", "value") == "test"
        assert ConfigManager.get_config_value("level1", "nonexistent") is None
        assert ConfigManager.get_config_section("level1", "level2") == {"value": "test"}
        assert ConfigManager.get_config_section("missing") == {}

    def test_set_config_value_creates_nested(self, fresh_config):
        manager = ConfigManager()
        manager.config = {}
        ConfigManager._instance = manager

        ConfigManager.set_config_value("new_value", "level1", "level2", "key")
        assert manager.config["level1"]["level2"]["key"] == "new_value"

    def test_save_and_reload(self, fresh_config, temp_dir):
        config_path = temp_dir / "config.yaml"
        fresh_config.initialize(config_path=config_path)

        fresh_config.set_config_value(2.5, 'transcription', 'poll_interval')
        fresh_config.save_config()
        fresh_config.set_config_value(9.0, 'transcription', 'poll_interval')
        fresh_config.reload_config()

        assert fresh_config.get_config_value('transcription', 'poll_interval') == 2.5
        assert not config_path.with_suffix('.tmp').exists()


class TestConfigSchema:
    """Tests for config schema compliance."""

    def test_schema_is_valid_yaml(self, schema_path):
        with open(schema_path) as f:
            schema = yaml.safe_load(f)

        assert isinstance(schema, dict)

    def test_schema_has_required_sections(self, schema_path):
        with open(schema_path) as f:
            schema = yaml.safe_load(f)

        for section in ["audio", "capture", "batching", "transcription", "output", "misc"]:
            assert section in schema, f"Missing required section: {section}"

    def test_every_leaf_has_type_and_value(self, schema_path):
        with open(schema_path) as f:
            schema = yaml.safe_load(f)

        for section, settings in schema.items():
            for key, item in settings.items():
                assert "type" in item, f"{section}.{key} has no type"
                assert "value" in item, f"{section}.{key} has no value"
