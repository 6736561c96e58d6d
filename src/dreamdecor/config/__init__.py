"""Engine configuration.

Defaults ship as ``default_settings.yaml`` inside this package; an optional
user YAML file is deep-merged on top of them.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from dreamdecor.errors import CatalogError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressionConfig:
    """Goal difficulty/reward curve.

    multiplier(phase) = max(minimum, phase // divisor)
    """

    divisor: int = 2
    minimum: int = 1
    count_reward: int = 250
    style_reward: int = 350
    style_step: int = 80
    count_goal_weight: int = 1
    style_goal_weight: int = 2

    def __post_init__(self) -> None:
        if self.divisor < 1:
            raise CatalogError("progression.divisor must be >= 1")
        if self.count_goal_weight < 0 or self.style_goal_weight < 0:
            raise CatalogError("progression goal weights cannot be negative")
        if self.count_goal_weight + self.style_goal_weight == 0:
            raise CatalogError("at least one goal kind must have a positive weight")

    def multiplier(self, phase: int) -> int:
        return max(self.minimum, phase // self.divisor)


@dataclass(frozen=True)
class RemoteGeneratorConfig:
    enabled: bool = False
    endpoint: str = ""
    api_key: str = ""
    timeout: float = 15.0
    max_retries: int = 3
    backoff: float = 1.0


@dataclass(frozen=True)
class EngineConfig:
    grid_size: int = 15
    initial_budget: int = 1000
    tick_interval: float = 1.0
    autosave_interval: float = 5.0
    goal_delay: float = 1.0
    news_probability: float = 0.05
    news_capacity: int = 11
    progression: ProgressionConfig = field(default_factory=ProgressionConfig)
    remote: RemoteGeneratorConfig = field(default_factory=RemoteGeneratorConfig)

    def __post_init__(self) -> None:
        if self.grid_size < 1:
            raise CatalogError("grid_size must be a positive integer")
        if self.initial_budget < 0:
            raise CatalogError("initial_budget cannot be negative")
        if self.tick_interval <= 0 or self.autosave_interval <= 0:
            raise CatalogError("tick_interval and autosave_interval must be positive")
        if not 0.0 <= self.news_probability <= 1.0:
            raise CatalogError("news_probability must be within [0, 1]")
        if self.news_capacity < 1:
            raise CatalogError("news_capacity must be >= 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        data = dict(data)
        try:
            progression = ProgressionConfig(**(data.pop("progression", None) or {}))
            remote = RemoteGeneratorConfig(**(data.pop("remote", None) or {}))
            return cls(progression=progression, remote=remote, **data)
        except TypeError as exc:
            raise CatalogError(f"Invalid settings: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def _deep_merge(base: dict, overlay: dict) -> dict:
    merged = dict(base)
    for k, v in (overlay or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            merged[k] = _deep_merge(base[k], v)
        else:
            merged[k] = v
    return merged


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(user_path: Optional[Path] = None) -> EngineConfig:
    """Load settings from built-in defaults and optional user override file.

    If user_path is provided and exists, overlay values onto defaults.
    """
    try:
        with resources.files("dreamdecor.config").joinpath("default_settings.yaml").open("r", encoding="utf-8") as f:
            default_data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Default settings not found; falling back to dataclass defaults.")
        default_data = EngineConfig().to_dict()

    user_data: dict = {}
    if user_path is not None:
        user_path = Path(user_path)
        if user_path.exists():
            user_data = _load_yaml(user_path)
            logger.info("Loaded user settings from %s", user_path)
        else:
            logger.warning("User settings file not found: %s", user_path)

    config = EngineConfig.from_dict(_deep_merge(default_data, user_data))
    logger.debug("Settings merged: %s", config)
    return config


__all__ = [
    "EngineConfig",
    "ProgressionConfig",
    "RemoteGeneratorConfig",
    "load_config",
]
