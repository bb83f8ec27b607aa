"""Configuration loader for the graphstage layout engine."""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from typing_extensions import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

CONFIG_PATH_ENV_VAR = "GRAPHSTAGE_CONFIG_PATH"
ENV_FILE_ENV_VAR = "GRAPHSTAGE_ENV_FILE"

# Scalar overrides applied on top of config.yaml before validation.
ENVIRONMENT_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "GRAPHSTAGE_MAX_TICKS": ("simulation", "max_ticks"),
    "GRAPHSTAGE_REPULSION_STRENGTH": ("simulation", "repulsion_strength"),
    "GRAPHSTAGE_LINK_DISTANCE": ("simulation", "link_distance"),
    "GRAPHSTAGE_VIEWPORT_PADDING": ("viewport", "padding"),
    "GRAPHSTAGE_MAX_SCALE": ("viewport", "max_scale"),
    "GRAPHSTAGE_WHEEL_SENSITIVITY": ("interaction", "wheel_sensitivity"),
}

NODE_CATEGORIES = ("Language", "Framework", "Library", "Tool", "Database", "Core")


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


def _validate_category_keys(values: Dict[str, Any], field_name: str) -> None:
    unknown = sorted(set(values) - set(NODE_CATEGORIES))
    if unknown:
        msg = f"{field_name} contains unknown node categories: {', '.join(unknown)}"
        raise ValueError(msg)


class SimulationConfig(_FrozenModel):
    """Force simulation parameters."""

    link_distance: float = Field(100.0, gt=0)
    link_stiffness: float = Field(0.1, gt=0.0, le=1.0)
    repulsion_strength: float = Field(30000.0, ge=0.0)
    min_distance: float = Field(1.0, gt=0.0)
    centering_strength: float = Field(0.02, ge=0.0, le=1.0)
    collision_radius: float = Field(30.0, ge=0.0)
    collision_strength: float = Field(0.7, ge=0.0, le=1.0)
    alpha: float = Field(1.0, gt=0.0, le=1.0)
    alpha_min: float = Field(0.001, gt=0.0, lt=1.0)
    alpha_decay: float = Field(0.0228, gt=0.0, lt=1.0)
    alpha_target: float = Field(0.0, ge=0.0, le=1.0)
    cooling_threshold: float = Field(0.1, gt=0.0, le=1.0)
    reheat_alpha: float = Field(0.3, gt=0.0, le=1.0)
    max_velocity: float = Field(50.0, gt=0.0)
    bounds_margin: float = Field(20.0, ge=0.0)
    max_ticks: int = Field(1000, ge=1)
    max_time_scale: float = Field(3.0, gt=0.0)
    default_radius: float = Field(12.0, gt=0.0)
    category_radii: Dict[str, float] = Field(
        default_factory=lambda: {"Core": 20.0, "Framework": 20.0}
    )

    @field_validator("category_radii")
    @classmethod
    def _validate_radii(cls, values: Dict[str, float]) -> Dict[str, float]:
        """Ensure radii are keyed by known categories and strictly positive."""

        _validate_category_keys(values, "simulation.category_radii")
        for category, radius in values.items():
            if radius <= 0:
                msg = f"simulation.category_radii[{category}] must be positive"
                raise ValueError(msg)
        return values

    @model_validator(mode="after")
    def _validate_alpha_schedule(self) -> "SimulationConfig":
        if self.cooling_threshold <= self.alpha_min:
            msg = "simulation.cooling_threshold must exceed simulation.alpha_min"
            raise ValueError(msg)
        if self.alpha_target >= self.alpha_min:
            LOGGER.warning(
                "simulation.alpha_target=%s keeps alpha above alpha_min; the tick budget bounds each run",
                self.alpha_target,
            )
        return self

    def radius_for(self, category: str) -> float:
        """Return the drawn radius for a node category."""

        return self.category_radii.get(category, self.default_radius)


class InteractionConfig(_FrozenModel):
    """Pointer, drag and wheel handling settings."""

    wheel_sensitivity: float = Field(0.002, gt=0.0)
    drag_alpha_target: float = Field(0.3, ge=0.0, le=1.0)
    hit_slop: float = Field(4.0, ge=0.0)


class ViewportConfig(_FrozenModel):
    """Viewport fitting and zoom bounds."""

    padding: float = Field(20.0, ge=0.0)
    min_scale: float = Field(0.1, gt=0.0)
    max_scale: float = Field(8.0, gt=0.0)
    fit_scale_cap: float = Field(1.0, gt=0.0)

    @model_validator(mode="after")
    def _validate_scale_extent(self) -> "ViewportConfig":
        if self.min_scale >= self.max_scale:
            msg = "viewport.min_scale must be lower than viewport.max_scale"
            raise ValueError(msg)
        if not self.min_scale <= self.fit_scale_cap <= self.max_scale:
            msg = "viewport.fit_scale_cap must lie within [min_scale, max_scale]"
            raise ValueError(msg)
        return self


class RenderConfig(_FrozenModel):
    """Styling used when mapping layout state to draw calls."""

    category_colors: Dict[str, str] = Field(
        default_factory=lambda: {
            "Language": "#3b82f6",
            "Framework": "#8b5cf6",
            "Core": "#ec4899",
            "Database": "#10b981",
        }
    )
    default_color: str = Field("#64748b", min_length=1)
    stroke_color: str = Field("#ffffff", min_length=1)
    edge_color: str = Field("#94a3b8", min_length=1)
    edge_opacity: float = Field(0.6, ge=0.0, le=1.0)
    edge_width: float = Field(1.5, gt=0.0)
    label_font_size: float = Field(10.0, gt=0.0)
    show_labels: bool = True
    background: str = Field("#f8fafc", min_length=1)
    placeholder_text: str = Field("Dependency graph unavailable", min_length=1)
    surface: Literal["svg"] = Field("svg")

    @field_validator("category_colors")
    @classmethod
    def _validate_colors(cls, values: Dict[str, str]) -> Dict[str, str]:
        """Ensure colours are keyed by known categories."""

        _validate_category_keys(values, "render.category_colors")
        return values

    def color_for(self, category: str) -> str:
        """Return the fill colour for a node category."""

        return self.category_colors.get(category, self.default_color)


class AppConfig(_FrozenModel):
    """Top-level configuration composed from config.yaml."""

    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    interaction: InteractionConfig = Field(default_factory=InteractionConfig)
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        override = os.getenv(CONFIG_PATH_ENV_VAR)
        if override:
            return Path(override).expanduser()
        return REPO_ROOT / "config.yaml"


def _env_file_path() -> Optional[Path]:
    """Return the ``.env`` file to consult, honouring ``GRAPHSTAGE_ENV_FILE``."""

    override = os.getenv(ENV_FILE_ENV_VAR)
    candidate = Path(override).expanduser() if override else DEFAULT_ENV_FILE
    if candidate.is_file():
        return candidate
    if override:
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
    return None


def _parse_env_value(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] in {'"', "'"} and value[-1] == value[0]:
        return value[1:-1]
    # unquoted values may carry a trailing comment
    return value.split("#", 1)[0].rstrip()


def _read_env_overrides(path: Path) -> Dict[str, str]:
    """Collect override values from a ``.env`` file.

    Only keys listed in :data:`ENVIRONMENT_OVERRIDES` are read; the process
    environment is not modified.
    """

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)
        return {}
    values: Dict[str, str] = {}
    for line in lines:
        key, separator, raw_value = line.strip().removeprefix("export ").partition("=")
        key = key.strip()
        if separator and key in ENVIRONMENT_OVERRIDES:
            values[key] = _parse_env_value(raw_value)
    return values


def _apply_environment_overrides(raw_content: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment-based overrides into the raw configuration mapping.

    Process environment variables take precedence over the ``.env`` file;
    blank values are treated as unset.

    Args:
        raw_content: Parsed YAML configuration prior to Pydantic validation.

    Returns:
        Dict[str, Any]: Configuration mapping with environment overrides applied.
    """

    env_file = _env_file_path()
    file_values = _read_env_overrides(env_file) if env_file is not None else {}

    for env_var, (section, key) in ENVIRONMENT_OVERRIDES.items():
        value = (os.getenv(env_var) or "").strip() or file_values.get(env_var, "").strip()
        if not value:
            continue
        section_content = raw_content.setdefault(section, {})
        if not isinstance(section_content, dict):
            LOGGER.warning("Ignoring %s; configuration section %s is not a mapping", env_var, section)
            continue
        section_content[key] = value
        LOGGER.info("Configuration %s.%s overridden from %s", section, key, env_var)
    return raw_content


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML content from disk.

    Args:
        path: Location of the YAML file.

    Returns:
        Dict[str, Any]: Parsed YAML content.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        LOGGER.error("Configuration file missing at %s", path)
        raise ConfigError("Configuration file not found") from exc
    except yaml.YAMLError as exc:
        LOGGER.error("Invalid YAML syntax in %s", path)
        raise ConfigError("Invalid YAML syntax") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        LOGGER.error("Configuration root must be a mapping: %s", path)
        raise ConfigError("Configuration root must be a mapping")
    return data


@lru_cache(maxsize=1)
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from YAML.

    Args:
        path: Optional override path to the YAML file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated.
    """
    config_path = path or AppConfig.default_path()
    raw_content = _read_yaml(config_path)
    raw_content = _apply_environment_overrides(raw_content)
    try:
        return AppConfig(**raw_content)
    except ValidationError as exc:
        LOGGER.error("Invalid configuration values: %s", exc)
        raise ConfigError("Configuration validation failed") from exc
