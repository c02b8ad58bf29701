"""
HOSHIYOMI Configuration System

Configuration for the Moon API service, the calc command and the
computation core, using pydantic for validation and YAML for config files.

Configuration loading priority:
1. Environment variables (HOSHIYOMI_*)
2. Config file specified via --config CLI argument
3. ./hoshiyomi.yaml (current directory)
4. ~/.hoshiyomi/config.yaml (user home)
5. Built-in defaults

Usage:
    from hoshiyomi.config import load_config

    config = load_config()
    print(config.server.port)
    engine = MoonEngine(config.engine.to_parameters(), config.engine.synodic_period_days)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hoshiyomi.constants import (
    CALC_DEFAULT_TIME_OF_DAY,
    CALC_DEFAULT_UTC_OFFSET,
    CONFIG_FILENAME,
    ENV_PREFIX,
    REQUEST_TIMEOUT_SEC,
    SERVER_DEFAULT_HOST,
    SERVER_DEFAULT_PORT,
)
from hoshiyomi.exceptions import ConfigurationError, InvalidInputError
from services.ephemeris import constants as ephemeris_constants
from services.ephemeris.engine import parse_time_of_day, parse_utc_offset
from services.ephemeris.riseset import RiseSetParameters

__all__ = [
    "HoshiyomiConfig",
    "ServerConfig",
    "EngineConfig",
    "CalcConfig",
    "load_config",
    "get_config_paths",
]


# =============================================================================
# Configuration Sections
# =============================================================================


class ServerConfig(BaseModel):
    """Moon API network service."""

    host: str = Field(
        default=SERVER_DEFAULT_HOST,
        description="Listen address (:: listens on all IPv6 and IPv4 interfaces)",
    )
    port: int = Field(
        default=SERVER_DEFAULT_PORT,
        ge=1,
        le=65535,
        description="Listen port",
    )
    request_timeout_sec: float = Field(
        default=REQUEST_TIMEOUT_SEC,
        gt=0.0,
        le=300.0,
        description="Upper bound on the computation time of one request",
    )


class EngineConfig(BaseModel):
    """Rise/set solver and phase calculator constants.

    Defaults reproduce services/ephemeris/constants.py.
    """

    threshold_altitude_deg: float = Field(
        default=ephemeris_constants.RISE_SET_THRESHOLD_DEG,
        ge=-5.0,
        le=5.0,
        description="Topocentric altitude of the Moon's centre at rise/set",
    )
    sample_interval_minutes: float = Field(
        default=ephemeris_constants.SAMPLE_INTERVAL_MINUTES,
        gt=0.0,
        le=180.0,
        description="Spacing of the altitude samples across the day",
    )
    refinement_tolerance_sec: float = Field(
        default=ephemeris_constants.REFINEMENT_TOLERANCE_SEC,
        gt=0.0,
        le=60.0,
        description="Bracket width at which bisection stops",
    )
    max_refinement_iterations: int = Field(
        default=ephemeris_constants.MAX_REFINEMENT_ITERATIONS,
        ge=1,
        le=200,
    )
    ambiguity_margin_deg: float = Field(
        default=ephemeris_constants.AMBIGUITY_MARGIN_DEG,
        ge=0.0,
        le=10.0,
        description="Split intervals whose ends lie this close to the threshold",
    )
    max_subdivision_depth: int = Field(
        default=ephemeris_constants.MAX_SUBDIVISION_DEPTH,
        ge=0,
        le=10,
    )
    synodic_period_days: float = Field(
        default=ephemeris_constants.SYNODIC_PERIOD_DAYS,
        gt=29.0,
        lt=30.0,
        description="Mean synodic month used to convert elongation to age",
    )
    utc_day_offset: str = Field(
        default="+09:00",
        description="Zone whose midnight opens the day named by a UTC timestamp",
    )

    @field_validator("utc_day_offset", mode="before")
    @classmethod
    def coerce_offset_to_string(cls, v):
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator("utc_day_offset")
    @classmethod
    def validate_utc_day_offset(cls, v: str) -> str:
        try:
            parse_utc_offset(v)
        except InvalidInputError as e:
            raise ValueError(str(e)) from e
        return v

    def to_parameters(self) -> RiseSetParameters:
        """Build the solver parameters from this section."""
        return RiseSetParameters(
            threshold_altitude_deg=self.threshold_altitude_deg,
            sample_interval_minutes=self.sample_interval_minutes,
            refinement_tolerance_sec=self.refinement_tolerance_sec,
            max_refinement_iterations=self.max_refinement_iterations,
            ambiguity_margin_deg=self.ambiguity_margin_deg,
            max_subdivision_depth=self.max_subdivision_depth,
            utc_day_offset=parse_utc_offset(self.utc_day_offset),
        )


class CalcConfig(BaseModel):
    """Defaults of the one-shot calc command."""

    utc_offset: str = Field(
        default=CALC_DEFAULT_UTC_OFFSET,
        description="UTC offset of the date given on the command line",
    )
    time_of_day: str = Field(
        default=CALC_DEFAULT_TIME_OF_DAY,
        description="Wall-clock time at which the moon age is evaluated",
    )

    @field_validator("utc_offset", "time_of_day", mode="before")
    @classmethod
    def coerce_to_string(cls, v):
        """Environment overrides may arrive as numbers."""
        return str(v) if isinstance(v, (int, float)) else v

    @field_validator("utc_offset")
    @classmethod
    def validate_utc_offset(cls, v: str) -> str:
        try:
            parse_utc_offset(v)
        except InvalidInputError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("time_of_day")
    @classmethod
    def validate_time_of_day(cls, v: str) -> str:
        try:
            parse_time_of_day(v)
        except InvalidInputError as e:
            raise ValueError(str(e)) from e
        return v


class HoshiyomiConfig(BaseModel):
    """Top-level configuration aggregating all sections."""

    model_config = ConfigDict(extra="ignore")

    server: ServerConfig = Field(default_factory=ServerConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    calc: CalcConfig = Field(default_factory=CalcConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Global logging level",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Rotating log file path (console only when unset)",
    )
    log_json: bool = Field(
        default=False,
        description="Emit log records as JSON lines",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v


# =============================================================================
# Configuration Loading
# =============================================================================

# Keys that live at the top level rather than inside a section
_TOP_LEVEL_KEYS = ("log_level", "log_file", "log_json")


def get_config_paths() -> list[Path]:
    """Get list of config file paths to search.

    Returns paths in priority order (first found wins).
    """
    paths = []

    # Current directory
    paths.append(Path(".") / CONFIG_FILENAME)
    paths.append(Path(".") / CONFIG_FILENAME.replace(".yaml", ".yml"))

    # User home directory
    home = Path.home()
    paths.append(home / ".hoshiyomi" / "config.yaml")
    paths.append(home / ".hoshiyomi" / "config.yml")

    # System config (Linux)
    paths.append(Path("/etc/hoshiyomi/config.yaml"))

    return paths


def _coerce_env_value(value: str):
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.isdigit():
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def _apply_env_overrides(config_dict: dict, environ: Optional[dict] = None) -> dict:
    """Apply environment variable overrides.

    Environment variables are in format: HOSHIYOMI_SECTION_KEY
    Example: HOSHIYOMI_SERVER_PORT=6000, HOSHIYOMI_LOG_LEVEL=DEBUG
    """
    environ = os.environ if environ is None else environ

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        name = key[len(ENV_PREFIX):].lower()
        if name in _TOP_LEVEL_KEYS:
            config_dict[name] = value if name == "log_file" else _coerce_env_value(value)
            continue

        # HOSHIYOMI_ENGINE_SAMPLE_INTERVAL_MINUTES -> engine.sample_interval_minutes
        parts = name.split("_")
        if len(parts) < 2:
            continue

        section = parts[0]
        setting = "_".join(parts[1:])

        if not isinstance(config_dict.get(section), dict):
            config_dict[section] = {}

        # Offsets and times ("0900", "+09:00") are text and keep their leading zeros
        text_setting = section == "calc" or setting == "utc_day_offset"
        config_dict[section][setting] = value if text_setting else _coerce_env_value(value)

    return config_dict


def load_config(config_path: Optional[str | Path] = None) -> HoshiyomiConfig:
    """Load configuration from file with validation.

    Args:
        config_path: Explicit config file path, or None for auto-discovery

    Returns:
        Validated HoshiyomiConfig object

    Raises:
        ConfigurationError: If config file is invalid or cannot be loaded
    """
    config_dict: dict = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        config_files = [path]
    else:
        config_files = get_config_paths()

    # Load first found config file
    for path in config_files:
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    config_dict = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
            except OSError as e:
                raise ConfigurationError(f"Cannot read {path}: {e}") from e
            if not isinstance(config_dict, dict):
                raise ConfigurationError(f"Config file {path} must contain a mapping")
            break

    config_dict = _apply_env_overrides(config_dict)

    try:
        return HoshiyomiConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e
