"""Heuristic human-vs-bot classification of slide CAPTCHA drag trajectories.

A trajectory is an ordered list of ``(x, y, timestamp)`` samples recorded
while the user drags the slider. Three independent sub-scores are computed:

- trajectory shape: average turning angle and vertical jitter. Scripts tend
  to drag along a perfectly straight horizontal line.
- velocity profile: humans speed up and slow down; scripts often move at a
  constant or too regular speed.
- coordinate repetition: too many identical rounded coordinates point to
  low-resolution synthetic or replayed input.

Each sub-score starts at 1.0 and is multiplied by ``flag_penalty`` for every
heuristic that flags an anomaly. The weighted sum must be strictly greater
than ``pass_threshold`` for the trajectory to be accepted.

All functions here are pure and stateless.
"""

from typing import Any, Optional, Sequence

import numpy as np

from captcha_system.logging_utils import get_trace_logger
from captcha_system.schemas import (SubScore, VerificationDetails,
                                    VerificationError, VerificationOutcome,
                                    VerificationResult)
from captcha_system.trajectory.heuristics import (DEFAULT_HEURISTICS,
                                                  HeuristicConfig)
from captcha_system.trajectory.utils import (mean_or_nan, round_half_up,
                                             step_distances, to_array,
                                             turning_angles)

NORMAL = "normal"

REASON_INSUFFICIENT_POINTS = "insufficient trajectory points"
REASON_BAD_TIMESTAMPS = "abnormal trajectory timestamps"
REASON_PASSED = "verification passed"
REASON_LOW_SCORE = "insufficient total score"
REASON_IDENTICAL_TIMESTAMPS = "all points share identical timestamps, cannot analyze velocity"
REASON_NO_ACCEL_DECEL = "missing clear acceleration or deceleration phase"


def _join(reasons: list) -> str:
    return ", ".join(reasons) if reasons else NORMAL


def analyze_trajectory(samples: Sequence[Any], config: HeuristicConfig = DEFAULT_HEURISTICS) -> SubScore:
    """Score the shape of the drag: average curvature and vertical jitter.

    Args:
        samples: Trajectory samples (at least 3 for the curvature term).
        config: Heuristic thresholds.

    Returns:
        SubScore of 1.0, 0.5 or 0.25 with the flagged reasons.
    """
    arr = to_array(samples)
    pos = arr[:, :2]
    score = 1.0
    reasons = []

    # Undefined angles (zero-length moves) make the average NaN, which
    # never trips either bound.
    avg_curvature = mean_or_nan(turning_angles(pos))
    # The lower bound is unreachable for angles in [0, 180]; kept as tunable
    if avg_curvature < config.min_avg_curvature or avg_curvature > config.max_avg_curvature:
        score *= config.flag_penalty
        reasons.append(f"abnormal trajectory curvature: {avg_curvature:.2f} degrees")

    # First sample contributes a zero change, so the mean runs over all n samples
    y_changes = np.abs(np.diff(pos[:, 1], prepend=pos[:1, 1]))
    avg_y_change = mean_or_nan(y_changes)
    if avg_y_change < config.min_avg_y_change or avg_y_change > config.max_avg_y_change:
        score *= config.flag_penalty
        reasons.append(f"abnormal y-axis change: {avg_y_change:.2f} px")

    return SubScore(score=score, reason=_join(reasons))


def analyze_velocity(samples: Sequence[Any], duration: Optional[float] = None,
                     config: HeuristicConfig = DEFAULT_HEURISTICS) -> SubScore:
    """Score the velocity profile of the drag.

    ``duration`` is the client-reported drag time in ms. It is accepted for
    the request contract but the profile is derived from the sample
    timestamps alone.
    """
    arr = to_array(samples)
    pos, t = arr[:, :2], arr[:, 2]

    # An empty trail counts as all-identical too
    if len(t) == 0 or np.all(t == t[0]):
        return SubScore(score=0.0, reason=REASON_IDENTICAL_TIMESTAMPS)

    score = 1.0
    reasons = []

    # Pairs with zero or negative time delta are skipped
    dt = np.diff(t)
    forward = dt > 0
    velocities = step_distances(pos)[forward] / dt[forward]

    avg_velocity_change = mean_or_nan(np.abs(np.diff(velocities)))
    if avg_velocity_change < config.min_avg_velocity_change:
        score *= config.flag_penalty
        reasons.append(f"velocity change rate too low: {avg_velocity_change:.2f}")

    has_acceleration = bool(np.any(velocities[1:] > velocities[:-1] * config.acceleration_ratio))
    has_deceleration = bool(np.any(velocities[1:] < velocities[:-1] * config.deceleration_ratio))
    if not (has_acceleration and has_deceleration):
        score *= config.flag_penalty
        reasons.append(REASON_NO_ACCEL_DECEL)

    return SubScore(score=score, reason=_join(reasons))


def analyze_repetition(samples: Sequence[Any], config: HeuristicConfig = DEFAULT_HEURISTICS) -> SubScore:
    """Score the share of samples whose rounded coordinates repeat."""
    arr = to_array(samples)
    keys = {(int(x), int(y)) for x, y in round_half_up(arr[:, :2])}
    # Undefined (NaN, never flags) for an empty trail
    repetition_rate = 1 - (len(keys) / len(arr)) if len(arr) else float("nan")

    score = 1.0
    reasons = []
    # The lower bound is unreachable (rate is never negative); kept as tunable
    if repetition_rate < config.min_repetition_rate or repetition_rate > config.max_repetition_rate:
        score *= config.flag_penalty
        reasons.append(f"abnormal coordinate repetition rate: {repetition_rate * 100:.2f}%")

    return SubScore(score=score, reason=_join(reasons))


def has_increasing_timestamps(samples: Sequence[Any]) -> bool:
    """True if some sample counts as a valid timestamp step.

    The first sample always counts as valid and the others must be strictly
    later than their predecessor, so any non-empty trail passes. This is
    intentionally loose: it does not require monotonic timestamps.
    """
    t = to_array(samples)[:, 2]
    if len(t) == 0:
        return False
    valid = np.concatenate(([True], t[1:] > t[:-1]))
    return bool(np.any(valid))


def verify(trajectory: Optional[Sequence[Any]], duration: Optional[float] = None,
           config: HeuristicConfig = DEFAULT_HEURISTICS,
           trace_id: Optional[str] = None) -> VerificationResult:
    """Verify a slide CAPTCHA drag trajectory.

    Args:
        trajectory: Ordered samples with x, y and timestamp (ms).
        duration: Client-reported drag duration in ms.
        config: Heuristic thresholds and weights.
        trace_id: Correlation id for log messages (usually the captcha id).

    Returns:
        VerificationResult. Short or degenerate trajectories produce a
        negative result rather than an exception.
    """
    tlog = get_trace_logger(trace_id, __name__)

    if trajectory is None or len(trajectory) < config.min_points:
        tlog.info("Rejected: %d trajectory points (min %d)",
                  0 if trajectory is None else len(trajectory), config.min_points)
        return VerificationResult(is_valid=False, reason=REASON_INSUFFICIENT_POINTS)

    if not has_increasing_timestamps(trajectory):
        tlog.info("Rejected: no valid timestamp step")
        return VerificationResult(is_valid=False, reason=REASON_BAD_TIMESTAMPS)

    trajectory_result = analyze_trajectory(trajectory, config)
    velocity_result = analyze_velocity(trajectory, duration, config)
    repetition_result = analyze_repetition(trajectory, config)
    tlog.debug("Sub-scores: trajectory=%.2f (%s) velocity=%.2f (%s) repetition=%.2f (%s)",
               trajectory_result.score, trajectory_result.reason,
               velocity_result.score, velocity_result.reason,
               repetition_result.score, repetition_result.reason)

    total_score = (trajectory_result.score * config.trajectory_weight
                   + velocity_result.score * config.velocity_weight
                   + repetition_result.score * config.repetition_weight)
    is_valid = total_score > config.pass_threshold

    tlog.info("Result: %s total_score=%.4f points=%d",
              "VERIFIED" if is_valid else "REJECTED", total_score, len(trajectory))
    return VerificationResult(
        is_valid=is_valid,
        reason=REASON_PASSED if is_valid else REASON_LOW_SCORE,
        details=VerificationDetails(
            trajectory=trajectory_result,
            velocity=velocity_result,
            repetition=repetition_result,
            total_score=total_score,
        ),
    )


def evaluate(trajectory: Optional[Sequence[Any]], duration: Optional[float] = None,
             config: HeuristicConfig = DEFAULT_HEURISTICS,
             trace_id: Optional[str] = None) -> VerificationOutcome:
    """Boundary wrapper around :func:`verify`.

    Arithmetic and type failures on malformed samples are reported as an
    ``internal_error`` instead of being raised, so callers can tell them
    apart from a negative verification.
    """
    tlog = get_trace_logger(trace_id, __name__)
    try:
        # Short trails are rejected by verify whatever their values are
        if (trajectory is not None and len(trajectory) >= config.min_points
                and not np.all(np.isfinite(to_array(trajectory)))):
            tlog.error("Trajectory contains non-finite values")
            return VerificationOutcome(error=VerificationError(message="non-finite sample values"))
        result = verify(trajectory, duration, config, trace_id=trace_id)
    except (ArithmeticError, TypeError, ValueError, KeyError, IndexError) as e:
        tlog.exception("Trajectory verification error")
        return VerificationOutcome(error=VerificationError(message=f"{type(e).__name__}: {e}"))

    return VerificationOutcome(result=result)
