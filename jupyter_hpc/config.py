import os
import re
from importlib import resources
from pathlib import Path
from typing import Annotated
from urllib.parse import urlparse

import yaml
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, field_validator

from jupyter_hpc.exceptions import ConfigError

CONFIG_ENV_VAR = "JUPYTER_HPC_CONFIG"
DEFAULT_SETTINGS = "default_settings.yaml"
DEFAULT_ACCESS_URL = "https://{cluster}-proxy.hpc.example.edu/{token}/?token={secret}"


def validate_http_url(v: str) -> str:
    """Accept plain http(s) URLs without query or fragment, stored without trailing slash"""
    parsed = urlparse(v)

    if parsed.query or parsed.fragment:
        raise ValueError("URL cannot contain query parameters or fragments")

    if parsed.scheme not in ("http", "https"):
        raise ValueError("URL must use HTTP or HTTPS protocol")

    if not parsed.netloc:
        raise ValueError("URL must contain a valid domain")

    return v.rstrip("/")


StrictHttpUrl = Annotated[str, AfterValidator(validate_http_url)]


class BaseConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ClusterConfig(BaseConfig):
    name: str = Field(min_length=1, description="Cluster name, used in the access URL")
    hostname_pattern: str = Field(description="Regex matched against the login node hostname")
    token_url: StrictHttpUrl = Field(description="Reverse-proxy endpoint handing out access tokens")
    access_url: str = Field(
        DEFAULT_ACCESS_URL,
        description="Template for the session URL with {cluster}, {token} and {secret} placeholders",
    )

    @field_validator("hostname_pattern")
    @classmethod
    def validate_pattern(cls, v):
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid hostname pattern: {e}") from e
        return v

    @field_validator("access_url")
    @classmethod
    def validate_access_url(cls, v):
        for placeholder in ("{token}", "{secret}"):
            if placeholder not in v:
                raise ValueError(f"access_url must contain {placeholder}")
        try:
            v.format(cluster="", token="", secret="")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid access_url template: {e!r}") from e
        return v


class Config(BaseConfig):
    clusters: list[ClusterConfig] = Field(min_length=1)
    debug_partition: str = Field("debug", description="Partition with a capped runtime")
    debug_max_minutes: Annotated[int, Field(gt=0, description="Maximum runtime on the debug partition")] = 30
    default_runtime_minutes: Annotated[int, Field(gt=0, description="Runtime used when -t is not given")] = 60
    session_dir: Path = Field(
        default_factory=lambda: Path.home() / ".jupyter_hpc", description="Directory for transient notebook configs"
    )
    cleanup_interval_sec: Annotated[int, Field(gt=0, description="Job status polling interval in seconds")] = 60
    conn_timeout_sec: Annotated[int, Field(gt=0, description="Connection timeout in seconds")] = 30
    validate_https_certs: bool = Field(True, description="Whether to validate HTTPS certificates")

    @field_validator("clusters", mode="before")
    @classmethod
    def ensure_list(cls, v):
        if isinstance(v, dict):
            return [v]
        return v

    @field_validator("session_dir", mode="before")
    @classmethod
    def expand_session_dir(cls, v):
        return Path(os.path.expanduser(str(v)))


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file"""
    try:
        with open(config_path) as f:
            config_dict = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Unable to read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    try:
        return Config(**config_dict)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e


def default_config_path() -> Path:
    """Path of the settings file shipped with the package"""
    return Path(str(resources.files("jupyter_hpc") / DEFAULT_SETTINGS))


def resolve_config_path(config_path: str | None = None) -> Path:
    """Explicit path first, then $JUPYTER_HPC_CONFIG, then the bundled defaults"""
    if config_path:
        return Path(config_path)
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return default_config_path()


def resolve_config(config_path: str | None = None) -> Config:
    return load_config(str(resolve_config_path(config_path)))
