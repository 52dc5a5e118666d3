"""
Runner configuration — one immutable value built at entry.

Sources, lowest to highest precedence:

1. Field defaults.
2. An optional YAML file (keys are action input names, e.g. ``ec2-image-id``).
3. The environment: GitHub Actions ``INPUT_<NAME>`` variables plus
   ``GITHUB_REPOSITORY``, ``GITHUB_SERVER_URL``, ``GITHUB_API_URL`` and
   ``AWS_REGION`` / ``AWS_DEFAULT_REGION``.
4. Explicit overrides (CLI options).

The resulting RunnerConfig is frozen and passed explicitly into every
component's constructor.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError
from .models import BootVariant, ExecutionMode, Tag, build_tag_set

logger = logging.getLogger(__name__)

# Field name -> action input name.
INPUT_NAMES: Dict[str, str] = {
    "mode": "mode",
    "github_token": "github-token",
    "runner_group": "github-runner-group",
    "ec2_region": "ec2-region",
    "ec2_image_id": "ec2-image-id",
    "ec2_instance_type": "ec2-instance-type",
    "subnet_id": "subnet-id",
    "security_group_id": "security-group-id",
    "iam_role_name": "iam-role-name",
    "runner_home_dir": "runner-home-dir",
    "pre_runner_script": "pre-runner-script",
    "reuse": "reuse",
    "auto_termination": "auto-termination",
    "termination_delay": "termination-delay",
    "extra_tags": "aws-resource-tags",
    "ec2_instance_id": "ec2-instance-id",
}

_FIELD_BY_INPUT = {v: k for k, v in INPUT_NAMES.items()}

# Plain environment variables (not action inputs) -> field name.
_ENV_FALLBACKS: Tuple[Tuple[str, str], ...] = (
    ("GITHUB_REPOSITORY", "github_repository"),
    ("GITHUB_SERVER_URL", "github_server_url"),
    ("GITHUB_API_URL", "github_api_url"),
    ("AWS_DEFAULT_REGION", "ec2_region"),
    ("AWS_REGION", "ec2_region"),
)

_START_REQUIRED = (
    "github_token",
    "github_repository",
    "runner_group",
    "ec2_image_id",
    "ec2_instance_type",
    "subnet_id",
    "security_group_id",
)
_STOP_REQUIRED = ("github_token", "github_repository", "runner_group", "ec2_instance_id")


class RunnerConfig(BaseModel):
    """Everything one start or stop invocation needs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: ExecutionMode = ExecutionMode.START

    # GitHub
    github_token: Optional[str] = Field(default=None, repr=False)
    github_repository: Optional[str] = Field(
        default=None, description="owner/repo the runner registers against",
    )
    github_server_url: str = "https://github.com"
    github_api_url: str = "https://api.github.com"
    runner_group: Optional[str] = None

    # EC2
    ec2_region: str = "us-east-1"
    ec2_image_id: Optional[str] = None
    ec2_instance_type: Optional[str] = None
    subnet_id: Optional[str] = None
    security_group_id: Optional[str] = None
    iam_role_name: Optional[str] = None
    extra_tags: Tuple[Tag, ...] = ()
    ec2_instance_id: Optional[str] = None

    # Boot script
    runner_home_dir: Optional[str] = None
    pre_runner_script: str = ""

    # Lifecycle
    reuse: bool = False
    auto_termination: bool = False
    termination_delay: int = Field(
        default=5, ge=1, description="Idle minutes before the alarm terminates",
    )
    instance_wait_interval: float = Field(default=5.0, gt=0)
    instance_wait_attempts: int = Field(default=40, ge=1)
    registration_timeout: float = Field(default=300.0, gt=0)
    registration_interval: float = Field(default=10.0, gt=0)
    registration_quiet_period: float = Field(default=30.0, ge=0)

    @field_validator("extra_tags", mode="before")
    @classmethod
    def parse_tags(cls, value: Any) -> Any:
        """Accept a JSON string as found in action inputs."""
        if isinstance(value, str):
            if not value.strip():
                return ()
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"tags must be a JSON list: {exc}") from exc
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            raise ValueError("tags must be a list of {Key, Value} objects")
        return tuple(value)

    @field_validator("github_repository")
    @classmethod
    def check_repository(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value.count("/") != 1:
            raise ValueError(f"expected owner/repo, got {value!r}")
        return value

    @model_validator(mode="after")
    def check_mode_inputs(self) -> "RunnerConfig":
        required = _START_REQUIRED if self.mode == ExecutionMode.START else _STOP_REQUIRED
        missing = [INPUT_NAMES.get(f, f) for f in required if not getattr(self, f)]
        if missing:
            raise ValueError(
                f"missing required inputs for mode {self.mode.value}: {', '.join(missing)}"
            )
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return (self.github_repository or "/").split("/", 1)[0]

    @property
    def repo(self) -> str:
        return (self.github_repository or "/").split("/", 1)[1]

    @property
    def github_url(self) -> str:
        """URL the runner's config.sh registers against."""
        return f"{self.github_server_url.rstrip('/')}/{self.github_repository}"

    @property
    def boot_variant(self) -> BootVariant:
        return BootVariant.PREBAKED if self.runner_home_dir else BootVariant.FRESH_INSTALL

    @property
    def tag_set(self) -> Tuple[Tag, ...]:
        return build_tag_set(self.runner_group or "", self.extra_tags)


def _normalize_keys(data: Mapping[str, Any], source: str) -> Dict[str, Any]:
    """Map input names (``ec2-image-id``) and field names onto fields."""
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        field = _FIELD_BY_INPUT.get(key, key.replace("-", "_"))
        if field not in RunnerConfig.model_fields:
            raise ConfigError(f"Unknown setting {key!r} in {source}")
        normalized[field] = value
    return normalized


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Load a YAML config file.

    Args:
        path: File to read.

    Returns:
        Settings keyed by field name.

    Raises:
        ConfigError: If the file is unreadable or not a mapping.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return _normalize_keys(data, str(path))


def _read_environment(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Collect settings from the process environment.

    Empty values are skipped; GitHub Actions sets every declared input,
    leaving unset ones as empty strings.
    """
    settings: Dict[str, Any] = {}
    for env_name, field in _ENV_FALLBACKS:
        value = environ.get(env_name, "")
        if value:
            settings[field] = value
    for field, input_name in INPUT_NAMES.items():
        value = environ.get(f"INPUT_{input_name.upper()}", "")
        if value:
            settings[field] = value
    return settings


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    config_file: Optional[Path] = None,
    **overrides: Any,
) -> RunnerConfig:
    """Build the RunnerConfig for this invocation.

    Args:
        environ: Environment to read; defaults to ``os.environ``.
        config_file: Optional YAML file with defaults.
        **overrides: Field values that take precedence over everything.

    Returns:
        Validated, frozen RunnerConfig.

    Raises:
        ConfigError: If any value is missing or invalid.
    """
    settings: Dict[str, Any] = {}
    if config_file is not None:
        settings.update(_read_config_file(config_file))
    settings.update(_read_environment(os.environ if environ is None else environ))
    settings.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = RunnerConfig(**settings)
    except ValidationError as exc:
        raise ConfigError(_describe_validation_error(exc)) from exc

    logger.debug(
        "Loaded config: mode=%s group=%s region=%s reuse=%s auto_termination=%s",
        config.mode.value, config.runner_group, config.ec2_region,
        config.reuse, config.auto_termination,
    )
    return config


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{INPUT_NAMES.get(loc, loc)}: {msg}" if loc else msg)
    return "Invalid configuration: " + "; ".join(parts)
