from .steps import (
    LegInfo,
    ManeuvreContext,
    ManeuvreInfo,
    ManeuvreDetails,
    TrajectoryStep,
    maneuvre_details,
    total_delta_v,
)
from .evaluator import Evaluation, InfeasibleLeg, TrajectoryEvaluator, agent_dimension
from .optimizer import GenerationResult, SearchResult, TrajectoryOptimizer

__all__ = [
    "LegInfo",
    "ManeuvreContext",
    "ManeuvreInfo",
    "ManeuvreDetails",
    "TrajectoryStep",
    "maneuvre_details",
    "total_delta_v",
    "Evaluation",
    "InfeasibleLeg",
    "TrajectoryEvaluator",
    "agent_dimension",
    "GenerationResult",
    "SearchResult",
    "TrajectoryOptimizer",
]
