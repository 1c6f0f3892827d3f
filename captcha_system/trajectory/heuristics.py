"""Tuning knobs for the trajectory heuristics.

The thresholds have no principled derivation; they were tuned by hand, so
they live here as named fields instead of inside the analysis code.
"""

import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

import yaml


@dataclass(frozen=True)
class HeuristicConfig:
    # Preconditions
    min_points: int = 10

    # Shape: average turning angle between consecutive moves (degrees)
    min_avg_curvature: float = 0.0
    max_avg_curvature: float = 45.0
    # Shape: average vertical jitter (px)
    min_avg_y_change: float = 0.1
    max_avg_y_change: float = 5.0

    # Velocity profile
    min_avg_velocity_change: float = 0.05
    acceleration_ratio: float = 1.1
    deceleration_ratio: float = 0.9

    # Rounded-coordinate repetition
    min_repetition_rate: float = 0.0
    max_repetition_rate: float = 0.1

    # Scoring
    flag_penalty: float = 0.5
    trajectory_weight: float = 0.3
    velocity_weight: float = 0.5
    repetition_weight: float = 0.2
    pass_threshold: float = 0.5

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "HeuristicConfig":
        """Build a config from a mapping, falling back to defaults for missing keys.

        Raises:
            ValueError: If the mapping contains unknown keys.
        """
        if not values:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown heuristic settings: {', '.join(unknown)}")

        defaults = cls()
        kwargs = {}
        for key, value in values.items():
            # Keep the field's numeric kind (int stays int)
            kwargs[key] = type(getattr(defaults, key))(value)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_HEURISTICS = HeuristicConfig()


def load_heuristics(path: Optional[str]) -> HeuristicConfig:
    """Load heuristic overrides from a YAML file.

    The file holds a flat mapping of field names to values, optionally nested
    under a top-level ``heuristics`` key. A missing or empty path returns the
    defaults.
    """
    if not path or not os.path.exists(path):
        return DEFAULT_HEURISTICS

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Heuristics file {path} must contain a mapping")
    if "heuristics" in data:
        data = data["heuristics"] or {}
    return HeuristicConfig.from_mapping(data)
