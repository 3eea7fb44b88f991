"""Configuration loading: defaults, YAML config file, environment and CLI flags."""

import logging
from pathlib import Path
from typing import Annotated, Any, ClassVar, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    SettingsError,
)

from .errors import ConfigError
from .formatters import FORMATTERS
from .log import LOG_FORMATS

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "py-dep-report.yml"
ENV_PREFIX = "PDR_"
LICENSE_SOURCES = ("metadata", "deps.dev")

# config key -> ReportConfig attribute
KEYS = {
    "packages": "packages",
    "verbose": "verbose",
    "format": "format",
    "log-format": "log_format",
    "out-file": "out_file",
    "depth": "depth",
    "resolve-internal": "resolve_internal",
    "resolve-test": "resolve_test",
    "license-source": "license_source",
}


def default_config_paths() -> List[Path]:
    """Candidate config files, in search order."""
    return [Path.cwd() / CONFIG_FILE_NAME, Path.home() / ".config" / CONFIG_FILE_NAME]


def find_config_file(config_file: Optional[str] = None) -> Optional[Path]:
    """The explicit config file (which must exist) or the first default one found."""
    if config_file:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigError(f"config file not found: {config_file}")
        return path

    for path in default_config_paths():
        if path.is_file():
            return path
    return None


def read_config_file(path: Path) -> Dict[str, Any]:
    """
    Read a YAML config file.

    Returns:
        ReportConfig attribute -> value for every known key that has a value;
        keys left empty (null) count as unset
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"could not read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping, got {type(data).__name__}")

    values = {}
    for key, value in data.items():
        if key not in KEYS:
            logger.warning(f"Ignoring unknown config key '{key}' in {path}")
        elif value is not None:
            values[KEYS[key]] = value
    return values


class ConfigFileSettingsSource(PydanticBaseSettingsSource):
    """Settings read from a py-dep-report.yml file."""

    def __init__(self, settings_cls, path: Optional[str] = None):
        super().__init__(settings_cls)
        self.path = path
        self.values = read_config_file(Path(path)) if path else {}

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self.values.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return dict(self.values)


def _choice(key: str, value: str, choices) -> str:
    text = value.strip().lower()
    if text not in choices:
        raise ValueError(f"invalid {key} specified [{value}] valid values are [{', '.join(choices)}]")
    return text


class ReportConfig(BaseSettings):
    """
    Effective settings for one run.

    Fields are read from init arguments (command-line flags), then ``PDR_*``
    environment variables, then the config file named by ``config_file``.
    """

    packages: Annotated[List[str], NoDecode] = Field(default_factory=list)
    verbose: bool = False
    format: str = "csv"  # csv, json, yaml, cyclonedx
    log_format: str = "text"  # text, json
    out_file: str = ""  # empty = stdout
    depth: int = 0  # 0 = no limit
    resolve_internal: bool = False
    resolve_test: bool = False
    license_source: str = "metadata"  # metadata, deps.dev
    config_file: Optional[str] = None  # config file actually used, if any

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        env_ignore_empty=True,
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        config_file = init_settings.init_kwargs.get("config_file")
        return init_settings, env_settings, ConfigFileSettingsSource(settings_cls, config_file)

    @field_validator("packages", mode="before")
    @classmethod
    def split_packages(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part for part in value.replace(",", " ").split() if part]
        return value

    @field_validator("format")
    @classmethod
    def validate_format(cls, value: str) -> str:
        return _choice("format", value, tuple(FORMATTERS))

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        return _choice("log-format", value, LOG_FORMATS)

    @field_validator("license_source")
    @classmethod
    def validate_license_source(cls, value: str) -> str:
        return _choice("license-source", value, LICENSE_SOURCES)

    @field_validator("depth")
    @classmethod
    def validate_depth(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"depth must be 0 (no limit) or positive, got {value}")
        return value

    @field_validator("out_file")
    @classmethod
    def strip_out_file(cls, value: str) -> str:
        return value.strip()


def _format_validation_error(exc: ValidationError) -> str:
    """Turn the first pydantic error into a one-line message."""
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    field_name = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", str(exc))
    return f"{field_name}: {message}" if field_name else message


def load_config(cli: Mapping[str, Any], config_file: Optional[str] = None) -> ReportConfig:
    """
    Merge settings from all sources.

    Precedence, highest first: CLI values that are not None, PDR_*
    environment variables, the config file, defaults.

    Args:
        cli: Config keys (as in KEYS) to values given on the command line
        config_file: Explicit config file; must exist if given

    Raises:
        ConfigError: On unreadable files or invalid values
    """
    path = find_config_file(config_file)

    values: Dict[str, Any] = {
        KEYS[key]: value for key, value in cli.items() if value is not None and value != []
    }
    if path is not None:
        values["config_file"] = str(path)

    try:
        return ReportConfig(**values)
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e)) from e
    except SettingsError as e:
        raise ConfigError(str(e)) from e
