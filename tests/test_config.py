"""Tests for configuration loading and validation.

Tests cover:
- YAML loading from various sources
- Platform-specific default paths (platformdirs)
- Path expansion (~ to home directory)
- Config precedence (explicit > local > system > defaults)
- Correction/extraction/fetch/migration defaults and partial overrides
- Missing config and malformed YAML handling
"""

from pathlib import Path

import pytest
import yaml

from geotag.config import (
    DEFAULT_SETTINGS,
    get_default_config_path,
    get_default_paths,
    get_path,
    get_setting,
    load_config,
)


class TestDefaultPaths:
    """Test platform-specific default path generation."""

    def test_get_default_paths_structure(self):
        """Default paths should include all required keys."""
        defaults = get_default_paths()

        assert list(defaults) == ["database"]

    def test_default_paths_are_path_objects(self):
        """All default paths should be Path objects."""
        defaults = get_default_paths()

        for key, value in defaults.items():
            assert isinstance(value, Path), f"{key} should be a Path object"

    def test_default_database_name(self):
        assert get_default_paths()["database"].name == "markers.db"

    def test_default_config_path_exists(self):
        """Default config path should return valid Path object."""
        config_path = get_default_config_path()

        assert isinstance(config_path, Path)
        assert config_path.name == "config.yaml"


class TestConfigLoading:
    """Test configuration loading from various sources."""

    def test_load_config_with_defaults(self, temp_dir, monkeypatch):
        """Loading config without file should use built-in defaults."""
        monkeypatch.chdir(temp_dir)
        monkeypatch.setattr(
            "geotag.config.get_default_config_path", lambda: temp_dir / "missing.yaml"
        )

        config = load_config()

        assert "paths" in config
        assert "correction" in config
        assert "extraction" in config
        assert "fetch" in config
        assert isinstance(config["paths"]["database"], Path)

    def test_load_config_from_yaml(self, temp_dir, monkeypatch):
        """Local config.yaml should override defaults."""
        monkeypatch.chdir(temp_dir)

        test_config = {
            "paths": {
                "database": "~/test/custom_markers.db",
            },
            "correction": {
                "precision_threshold": 5,
                "apply_threshold": 0.6,
            },
        }

        config_file = temp_dir / "config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(test_config, f)

        config = load_config()

        assert config["paths"]["database"] == Path.home() / "test/custom_markers.db"
        assert config["correction"]["precision_threshold"] == 5
        assert config["correction"]["apply_threshold"] == 0.6

    def test_load_explicit_config_path(self, temp_dir):
        """Loading with explicit path should use that config."""
        custom_config = temp_dir / "custom.yaml"

        with open(custom_config, "w") as f:
            yaml.dump({"paths": {"database": "/explicit/path/markers.db"}}, f)

        config = load_config(str(custom_config))

        assert config["paths"]["database"] == Path("/explicit/path/markers.db")

    def test_explicit_path_wins_over_local(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        with open(temp_dir / "config.yaml", "w") as f:
            yaml.dump({"fetch": {"timeout": 1.0}}, f)
        explicit = temp_dir / "explicit.yaml"
        with open(explicit, "w") as f:
            yaml.dump({"fetch": {"timeout": 2.0}}, f)

        assert load_config(str(explicit))["fetch"]["timeout"] == 2.0

    def test_load_config_nonexistent_explicit_path(self, temp_dir):
        """Loading non-existent explicit path should raise FileNotFoundError."""
        nonexistent = temp_dir / "does_not_exist.yaml"

        with pytest.raises(FileNotFoundError):
            load_config(str(nonexistent))

    def test_tilde_expansion(self, temp_dir, monkeypatch):
        """Paths with ~ should expand to home directory."""
        monkeypatch.chdir(temp_dir)

        with open(temp_dir / "config.yaml", "w") as f:
            yaml.dump({"paths": {"database": "~/geo/markers.db"}}, f)

        config = load_config()

        assert config["paths"]["database"] == Path.home() / "geo/markers.db"
        assert "~" not in str(config["paths"]["database"])

    def test_malformed_yaml(self, temp_dir, monkeypatch):
        """Malformed YAML should raise YAMLError."""
        monkeypatch.chdir(temp_dir)

        with open(temp_dir / "config.yaml", "w") as f:
            f.write("invalid: yaml: syntax:\n  - broken")

        with pytest.raises(yaml.YAMLError):
            load_config()

    def test_empty_file_uses_defaults(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        (temp_dir / "config.yaml").write_text("")

        config = load_config()

        assert config["correction"] == DEFAULT_SETTINGS["correction"]

    def test_partial_config_merges_with_defaults(self, temp_dir, monkeypatch):
        """Partial config should merge with defaults."""
        monkeypatch.chdir(temp_dir)

        with open(temp_dir / "config.yaml", "w") as f:
            yaml.dump(
                {
                    "paths": {"database": "/custom/markers.db"},
                    "correction": {"target_precision": 9},
                },
                f,
            )

        config = load_config()

        assert config["paths"]["database"] == Path("/custom/markers.db")
        assert config["correction"]["target_precision"] == 9
        assert config["correction"]["precision_threshold"] == 6
        assert config["correction"]["max_corrections"] == 10
        assert config["extraction"]["min_exif_bytes"] == 1024


class TestGetPath:
    """Test path extraction helper function."""

    def test_get_path_existing_key(self, mock_config):
        """Getting existing path key should return Path object."""
        db_path = get_path(mock_config, "database")

        assert isinstance(db_path, Path)
        assert db_path == mock_config["paths"]["database"]

    def test_get_path_nonexistent_key(self, mock_config):
        """Getting non-existent key should raise KeyError."""
        with pytest.raises(KeyError) as exc_info:
            get_path(mock_config, "nonexistent_path")

        assert "nonexistent_path" in str(exc_info.value)
        assert "Available path keys" in str(exc_info.value)


class TestGetSetting:
    def test_existing_setting(self, mock_config):
        assert get_setting(mock_config, "correction", "target_precision") == 8
        assert get_setting(mock_config, "fetch", "timeout") == 5.0

    def test_missing_setting(self, mock_config):
        with pytest.raises(KeyError) as exc_info:
            get_setting(mock_config, "correction", "nope")

        assert "correction.nope" in str(exc_info.value)

    def test_missing_section(self, mock_config):
        with pytest.raises(KeyError):
            get_setting(mock_config, "unknown", "key")


class TestConfigDefaults:
    """Test default values for the correction pipeline."""

    def test_correction_defaults(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        monkeypatch.setattr(
            "geotag.config.get_default_config_path", lambda: temp_dir / "missing.yaml"
        )
        config = load_config()

        assert config["correction"]["precision_threshold"] == 6
        assert config["correction"]["target_precision"] == 8
        assert config["correction"]["max_corrections"] == 10
        assert config["correction"]["apply_threshold"] == 0.5
        assert config["correction"]["high_confidence_threshold"] == 0.7

    def test_extraction_and_fetch_defaults(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        monkeypatch.setattr(
            "geotag.config.get_default_config_path", lambda: temp_dir / "missing.yaml"
        )
        config = load_config()

        assert config["extraction"]["min_exif_bytes"] == 1024
        assert config["fetch"]["timeout"] == 30.0
        assert config["migration"]["max_upgrades"] == 15

    def test_defaults_not_mutated_by_load(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        with open(temp_dir / "config.yaml", "w") as f:
            yaml.dump({"fetch": {"timeout": 3.0}}, f)

        load_config()

        assert DEFAULT_SETTINGS["fetch"]["timeout"] == 30.0
