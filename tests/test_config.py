"""Tests for configuration loading."""

import pytest

from depreport.config import (
    CONFIG_FILE_NAME,
    KEYS,
    ReportConfig,
    find_config_file,
    load_config,
    read_config_file,
)
from depreport.errors import ConfigError


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run without real config files or PDR_* variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in KEYS:
        monkeypatch.delenv("PDR_" + key.upper().replace("-", "_"), raising=False)
    return tmp_path


def write_config(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults(self):
        """Test the defaults when nothing is configured."""
        config = load_config({})

        assert config == ReportConfig()
        assert config.format == "csv"
        assert config.depth == 0
        assert config.out_file == ""
        assert config.config_file is None

    def test_config_file_in_cwd(self, isolated):
        """Test that ./py-dep-report.yml is picked up."""
        path = write_config(isolated / CONFIG_FILE_NAME, "format: yaml\ndepth: 3\nresolve-test: true\n")

        config = load_config({})

        assert config.format == "yaml"
        assert config.depth == 3
        assert config.resolve_test is True
        assert config.config_file == str(path)

    def test_config_file_in_home(self, isolated):
        """Test that ~/.config/py-dep-report.yml is used when cwd has none."""
        write_config(isolated / "home" / ".config" / CONFIG_FILE_NAME, "log-format: json\n")

        assert load_config({}).log_format == "json"

    def test_explicit_config_file_must_exist(self, isolated):
        """Test that a missing --config file is an error."""
        with pytest.raises(ConfigError, match="not found"):
            load_config({}, config_file=str(isolated / "missing.yml"))

    def test_precedence(self, isolated, monkeypatch):
        """Test that CLI beats environment, which beats the config file."""
        path = write_config(isolated / "custom.yml", "format: yaml\ndepth: 3\nout-file: file.txt\n")
        monkeypatch.setenv("PDR_FORMAT", "json")
        monkeypatch.setenv("PDR_DEPTH", "2")

        config = load_config({"format": "cyclonedx", "depth": None}, config_file=str(path))

        assert config.format == "cyclonedx"
        assert config.depth == 2
        assert config.out_file == "file.txt"

    def test_null_values_in_config_file_are_unset(self, isolated):
        """Test that keys left empty in the config file fall back to the defaults."""
        write_config(isolated / CONFIG_FILE_NAME, "out-file:\nformat:\ndepth:\nlog-format: json\n")

        config = load_config({})

        assert config.out_file == ""
        assert config.format == "csv"
        assert config.depth == 0
        assert config.log_format == "json"

    def test_empty_environment_value_is_unset(self, isolated, monkeypatch):
        """Test that an empty PDR_* variable does not hide the config file value."""
        write_config(isolated / CONFIG_FILE_NAME, "out-file: report.csv\n")
        monkeypatch.setenv("PDR_OUT_FILE", "")

        assert load_config({}).out_file == "report.csv"

    def test_packages_from_config(self, isolated):
        """Test that packages can come from the config file when none are given."""
        write_config(isolated / CONFIG_FILE_NAME, "packages:\n  - one\n  - two\n")

        assert load_config({"packages": []}).packages == ["one", "two"]
        assert load_config({"packages": ["three"]}).packages == ["three"]

    def test_packages_from_environment(self, monkeypatch):
        """Test that PDR_PACKAGES is split on commas and whitespace."""
        monkeypatch.setenv("PDR_PACKAGES", "one, two three")

        assert load_config({}).packages == ["one", "two", "three"]

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("off", False), ("no", False)])
    def test_boolean_from_environment(self, monkeypatch, value, expected):
        monkeypatch.setenv("PDR_RESOLVE_INTERNAL", value)

        assert load_config({}).resolve_internal is expected

    def test_choices_normalised(self):
        """Test that format names are matched case-insensitively."""
        config = load_config({"format": " JSON ", "license-source": "Deps.Dev"})

        assert config.format == "json"
        assert config.license_source == "deps.dev"

    @pytest.mark.parametrize("cli", [
        {"format": "xml"},
        {"log-format": "logfmt"},
        {"depth": -1},
        {"license-source": "github"},
    ])
    def test_invalid_values(self, cli):
        """Test that invalid settings raise ConfigError."""
        with pytest.raises(ConfigError):
            load_config(cli)

    @pytest.mark.parametrize("name,value", [("PDR_DEPTH", "deep"), ("PDR_VERBOSE", "maybe")])
    def test_invalid_env_values(self, monkeypatch, name, value):
        """Test that malformed environment values raise ConfigError."""
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigError):
            load_config({})

    def test_invalid_format_message(self):
        """Test that the error names the bad value and the valid ones."""
        with pytest.raises(ConfigError, match=r"invalid format specified \[xml\]"):
            load_config({"format": "xml"})

    def test_config_file_must_be_mapping(self, isolated):
        """Test that a config file holding a list is rejected."""
        write_config(isolated / CONFIG_FILE_NAME, "- csv\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config({})

    def test_invalid_yaml(self, isolated):
        """Test that unparsable YAML is a configuration error."""
        write_config(isolated / CONFIG_FILE_NAME, "format: [csv\n")

        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config({})

    def test_unknown_keys_ignored(self, isolated, caplog):
        """Test that unknown config keys are warned about and ignored."""
        write_config(isolated / CONFIG_FILE_NAME, "colour: blue\nformat: json\n")

        assert load_config({}).format == "json"
        assert "colour" in caplog.text


class TestConfigFile:
    """Tests for finding and reading config files."""

    def test_read_maps_keys_to_attributes(self, isolated):
        path = write_config(isolated / "c.yml", "log-format: json\nout-file: out.csv\nverbose:\n")

        assert read_config_file(path) == {"log_format": "json", "out_file": "out.csv"}

    def test_cwd_file_preferred(self, isolated):
        """Test that ./py-dep-report.yml wins over the one in ~/.config."""
        write_config(isolated / "home" / ".config" / CONFIG_FILE_NAME, "format: json\n")
        local = write_config(isolated / CONFIG_FILE_NAME, "format: yaml\n")

        assert find_config_file() == local

    def test_no_config_file(self):
        assert find_config_file() is None
