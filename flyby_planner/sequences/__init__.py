from .sequence import FlybySequence, is_back_leg
from .screening import ConicScreen, ScreenStatus, StatusBeam, StatusBudget
from .generator import FlybySequenceGenerator, GeneratorStats

__all__ = [
    "FlybySequence",
    "is_back_leg",
    "ConicScreen",
    "ScreenStatus",
    "StatusBeam",
    "StatusBudget",
    "FlybySequenceGenerator",
    "GeneratorStats",
]
