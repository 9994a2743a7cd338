"""Pipeline configuration: dataclass defaults, optionally overlaid from YAML."""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigError
from .fields import IMAGE_BASE_URL
from .merge import MergePolicy
from .normalize import DEFAULT_CURRENCY
from .scoring import MatchThresholds, ScoreWeights

DEFAULT_SEARCH_DIRS = (".", "data", "public", "inventory", "server", "server/public")
DEFAULT_BASENAMES = (
    "inventory.csv",
    "inventory.tsv",
    "full_card_inventory.tsv",
    "full_card_inventory.csv",
    "full_card_inventory.txt",
    "bulk_inventory.csv",
    "bulk_inventory.tsv",
)


def default_input_candidates() -> List[str]:
    """Ordered list of places a raw inventory export is looked for."""
    return [str(Path(d) / name) for d in DEFAULT_SEARCH_DIRS for name in DEFAULT_BASENAMES]


@dataclass
class PipelineConfig:
    """Configuration for a normalize / merge / dedupe / append run."""
    thresholds: MatchThresholds = field(default_factory=MatchThresholds)
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    policy: MergePolicy = field(default_factory=MergePolicy)
    image_base_url: str = IMAGE_BASE_URL
    default_currency: str = DEFAULT_CURRENCY
    sample_limit: int = 10
    unused_sample_limit: int = 25
    input_candidates: List[str] = field(default_factory=default_input_candidates)


_SECTIONS = {
    "thresholds": MatchThresholds,
    "weights": ScoreWeights,
    "policy": MergePolicy,
}


def _overlay(current: Any, values: Dict[str, Any], section: str) -> Any:
    if not isinstance(values, dict):
        raise ConfigError(f"Config section '{section}' must be a mapping")
    known = {f.name for f in fields(current)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown key(s) in '{section}': {', '.join(unknown)}")
    if section == "policy" and values.get("fill_fields") is not None:
        values = {**values, "fill_fields": frozenset(values["fill_fields"])}
    try:
        return replace(current, **values)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in '{section}': {e}") from e


def config_from_dict(data: Optional[Dict[str, Any]], base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """Overlay a plain mapping (as read from YAML) on ``base`` or the defaults."""
    config = base or PipelineConfig()
    if not data:
        return config
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")

    unknown = sorted(set(data) - {f.name for f in fields(PipelineConfig)})
    if unknown:
        raise ConfigError(f"Unknown config key(s): {', '.join(unknown)}")

    changes: Dict[str, Any] = {}
    for name, value in data.items():
        if name in _SECTIONS:
            changes[name] = _overlay(getattr(config, name), value, name)
        elif name == "input_candidates":
            if not isinstance(value, list):
                raise ConfigError("input_candidates must be a list of paths")
            changes[name] = [str(v) for v in value]
        else:
            changes[name] = value
    return replace(config, **changes)


def load_config(path: Optional[Union[str, Path]] = None) -> PipelineConfig:
    """Load configuration from a YAML file; no path means defaults.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        return PipelineConfig()
    config_path = Path(path)
    try:
        with open(config_path, encoding="utf-8", mode="rt") as config_file:
            data = yaml.safe_load(config_file)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    return config_from_dict(data)
