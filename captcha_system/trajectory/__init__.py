from captcha_system.trajectory.heuristics import (DEFAULT_HEURISTICS,
                                                  HeuristicConfig,
                                                  load_heuristics)
from captcha_system.trajectory.verifier import (analyze_repetition,
                                                analyze_trajectory,
                                                analyze_velocity, evaluate,
                                                verify)

__all__ = [
    "DEFAULT_HEURISTICS",
    "HeuristicConfig",
    "load_heuristics",
    "analyze_repetition",
    "analyze_trajectory",
    "analyze_velocity",
    "evaluate",
    "verify",
]
