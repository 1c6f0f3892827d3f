from typing import Any, Sequence

import numpy as np

# ------------------------------------------------------------------
# Sample conversion
# ------------------------------------------------------------------
def sample_to_tuple(point: Any):
    """Accepts a dict, a model with x/y/timestamp attributes, or an (x, y, t) sequence."""
    if isinstance(point, dict):
        return point["x"], point["y"], point["timestamp"]
    if hasattr(point, "timestamp"):
        return point.x, point.y, point.timestamp
    return point[0], point[1], point[2]


def to_array(samples: Sequence[Any]) -> np.ndarray:
    """
    Converts a trajectory into an Nx3 float array [x, y, timestamp].
    Raises KeyError/ValueError/TypeError on malformed samples.
    """
    if len(samples) == 0:
        return np.empty((0, 3), dtype=np.float64)
    return np.array([sample_to_tuple(p) for p in samples], dtype=np.float64)


# ------------------------------------------------------------------
# Geometry
# ------------------------------------------------------------------
def turning_angles(pos: np.ndarray) -> np.ndarray:
    """
    Angle in degrees (0-180) between consecutive movement vectors at every
    interior point. A zero-length move leaves the angle undefined (NaN).
    """
    moves = np.diff(pos, axis=0)
    v1, v2 = moves[:-1], moves[1:]

    dot = np.sum(v1 * v2, axis=1)
    mag = np.linalg.norm(v1, axis=1) * np.linalg.norm(v2, axis=1)

    with np.errstate(divide="ignore", invalid="ignore"):
        cos = dot / mag
    # Clip against float overshoot before arccos; NaN passes through
    return np.degrees(np.arccos(np.clip(cos, -1.0, 1.0)))


def step_distances(pos: np.ndarray) -> np.ndarray:
    return np.sqrt(np.sum(np.diff(pos, axis=0) ** 2, axis=1))


def round_half_up(values: np.ndarray) -> np.ndarray:
    # np.round rounds half to even; pointer coordinates round .5 upwards
    return np.floor(values + 0.5)


def mean_or_nan(values: np.ndarray) -> float:
    """Mean of the values, or NaN for an empty array (NaN never trips a threshold)."""
    if len(values) == 0:
        return float("nan")
    return float(np.mean(values))
