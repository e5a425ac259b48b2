# Configure JAX to use double precision (64-bit floats) throughout the package
import jax
jax.config.update("jax_enable_x64", True)

from .orbital_elements import OrbitalElements
from .cartesian_state import CartesianState

from .constants import (
    # Constants
    G,
    HOUR,
    DAY,
    YEAR,
    MU_KERBOL,
    MIN_PERIAPSIS_RADII,
    MAX_ALTITUDE_SOI_FRACTION,
)

from .astrodynamics import (
    # Functions
    solve_kepler,
    elements_to_cartesian,
    state_to_elements,
    propagate_kepler,
    flyby_periapsis,
    max_bending_angle,
)

from .lambert import (
    # Lambert solver
    LambertSolution,
    lambert,
    solve_lambert,
)

from .bodies import (
    # Body catalog
    Body,
    BodyCatalog,
    load_bodies_data,
    kerbol_system,
)

from .results import Ok, Cancelled, Failed, Outcome

from .config import (
    # Configuration
    SequenceParameters,
    FlybySequenceSettings,
    TrajectorySearchSettings,
    WorkerSettings,
    DefaultInputs,
    PlannerConfig,
    TrajectorySearchInput,
    load_config,
)

from .sequences import FlybySequence, FlybySequenceGenerator
from .trajectory import (
    TrajectoryStep,
    ManeuvreInfo,
    TrajectoryEvaluator,
    TrajectoryOptimizer,
    SearchResult,
    GenerationResult,
    InfeasibleLeg,
    maneuvre_details,
)
from .workers import ComputeWorker, SequenceGenerationTask, TrajectorySearchTask
from .planner import InputValidationError, Planner, SequencePlanner, TrajectoryPlanner

__all__ = [
    # Constants
    "G",
    "HOUR",
    "DAY",
    "YEAR",
    "MU_KERBOL",
    "MIN_PERIAPSIS_RADII",
    "MAX_ALTITUDE_SOI_FRACTION",

    # Named tuples
    "OrbitalElements",
    "CartesianState",

    # Functions
    "solve_kepler",
    "elements_to_cartesian",
    "state_to_elements",
    "propagate_kepler",
    "flyby_periapsis",
    "max_bending_angle",

    # Lambert solver
    "LambertSolution",
    "lambert",
    "solve_lambert",

    # Bodies
    "Body",
    "BodyCatalog",
    "load_bodies_data",
    "kerbol_system",

    # Outcomes
    "Ok",
    "Cancelled",
    "Failed",
    "Outcome",

    # Configuration
    "SequenceParameters",
    "FlybySequenceSettings",
    "TrajectorySearchSettings",
    "WorkerSettings",
    "DefaultInputs",
    "PlannerConfig",
    "TrajectorySearchInput",
    "load_config",

    # Search
    "FlybySequence",
    "FlybySequenceGenerator",
    "TrajectoryStep",
    "ManeuvreInfo",
    "TrajectoryEvaluator",
    "TrajectoryOptimizer",
    "SearchResult",
    "GenerationResult",
    "InfeasibleLeg",
    "maneuvre_details",

    # Workers and planners
    "ComputeWorker",
    "SequenceGenerationTask",
    "TrajectorySearchTask",
    "InputValidationError",
    "Planner",
    "SequencePlanner",
    "TrajectoryPlanner",
]
