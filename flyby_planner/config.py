"""
Configuration and validated inputs for sequence generation and trajectory search.

Field names are snake_case in Python; configuration files use the camelCase
option names (``maxSwingBys``, ``depDVScaleMin``, ...), both are accepted.
"""
import json
import math
from pathlib import Path
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from flyby_planner.constants import DAY, MIN_PERIAPSIS_RADII


class _Settings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid")


class SequenceParameters(_Settings):
    """
    Limits of the flyby sequence search tree.

    Attributes
    ----------
    departure_id : int
        Origin body
    destination_id : int
        Destination body
    max_swing_bys : int
        Maximum number of intermediate bodies
    max_resonant : int
        Maximum number of consecutive repeats at one body
    max_back_legs : int
        Maximum number of legs moving against the origin to destination trend
    max_back_spacing : int
        Maximum number of legs between two consecutive back legs
    """
    departure_id: int = Field(..., ge=0, description="Origin body id")
    destination_id: int = Field(..., ge=0, description="Destination body id")
    max_swing_bys: int = Field(default=2, ge=0, description="Maximum number of swing-bys")
    max_resonant: int = Field(default=1, ge=0, description="Maximum consecutive repeats at one body")
    max_back_legs: int = Field(default=1, ge=0, description="Maximum number of back legs")
    max_back_spacing: int = Field(default=1, ge=0, description="Maximum legs between back legs")

    @model_validator(mode="after")
    def _distinct_endpoints(self):
        if self.departure_id == self.destination_id:
            raise ValueError("Same origin and destination bodies.")
        return self


class FlybySequenceSettings(_Settings):
    """Sampling and caps of the sequence generator."""
    radius_samples: int = Field(default=4, ge=1, description="Radii sampled per orbit crossing")
    init_vel_max_scale: float = Field(default=1.0, gt=0.0, description="Largest departure excess, in local orbital speeds")
    init_vel_samples: int = Field(default=6, ge=1, description="Departure excess speeds sampled")
    max_propositions: int = Field(default=50_000, ge=1, description="Cap on bodies tried during enumeration")
    max_eval_statuses: int = Field(default=1_000_000, ge=1, description="Cap on screening statuses evaluated")
    max_eval_sequences: int = Field(default=100, ge=1, description="Cap on sequences returned")
    split_limit: int = Field(default=50, ge=1, description="Candidates screened between progress reports")
    min_periapsis_radii: float = Field(default=MIN_PERIAPSIS_RADII, ge=1.0, description="Minimum flyby periapsis (body radii)")
    resonant_counts_toward_spacing: bool = Field(
        default=True, description="Whether resonant legs count toward the spacing between back legs"
    )


class TrajectorySearchSettings(_Settings):
    """Differential evolution parameters and agent bounds."""
    crossover_proba: float = Field(default=0.9, ge=0.0, le=1.0, description="Crossover probability")
    diff_weight: float = Field(default=0.8, gt=0.0, le=2.0, description="Differential weight")
    pop_size_dim_scale: float = Field(default=10.0, gt=0.0, description="Population size per dimension")
    max_generations: int = Field(default=200, ge=1, description="Generations per run")
    dep_dv_scale_min: float = Field(default=1.0, gt=0.0, alias="depDVScaleMin",
                                    description="Smallest departure burn, in escape burns")
    dep_dv_scale_max: float = Field(default=3.0, gt=0.0, alias="depDVScaleMax",
                                    description="Largest departure burn, in escape burns")
    dsm_offset_min: float = Field(default=0.01, gt=0.0, lt=1.0, description="Earliest DSM, as a fraction of the leg")
    dsm_offset_max: float = Field(default=0.99, gt=0.0, lt=1.0, description="Latest DSM, as a fraction of the leg")
    min_leg_duration: float = Field(default=DAY, gt=0.0, description="Shortest leg (s)")
    max_leg_duration_scale: float = Field(default=4.0, gt=0.0,
                                          description="Longest leg, in Hohmann half periods")
    min_periapsis_radii: float = Field(default=MIN_PERIAPSIS_RADII, ge=1.0, description="Minimum flyby periapsis (body radii)")
    snapshot_best: bool = Field(default=False, description="Attach the decoded best trajectory to progress reports")

    @model_validator(mode="after")
    def _ordered_ranges(self):
        if self.dep_dv_scale_min > self.dep_dv_scale_max:
            raise ValueError("depDVScaleMin must not exceed depDVScaleMax")
        if self.dsm_offset_min > self.dsm_offset_max:
            raise ValueError("dsmOffsetMin must not exceed dsmOffsetMax")
        return self


class WorkerSettings(_Settings):
    progress_step: float = Field(default=0.0, ge=0.0, lt=1.0,
                                 description="Minimum progress increase between progress messages")


class DefaultInputs(_Settings):
    origin: str = Field(default="Kerbin", description="Default origin body name")
    destination: str = Field(default="Jool", description="Default destination body name")
    altitude: float = Field(default=100_000.0, ge=0.0, description="Default parking orbit altitude (m)")


class PlannerConfig(_Settings):
    flyby_sequence: FlybySequenceSettings = Field(default_factory=FlybySequenceSettings)
    trajectory_search: TrajectorySearchSettings = Field(default_factory=TrajectorySearchSettings)
    workers: WorkerSettings = Field(default_factory=WorkerSettings)
    defaults: DefaultInputs = Field(default_factory=DefaultInputs)


class TrajectorySearchInput(_Settings):
    """One trajectory search request: a fixed sequence and a departure window."""
    sequence: Tuple[int, ...] = Field(..., min_length=2, description="Body ids from origin to destination")
    start_date: float = Field(..., description="Departure window start (s)")
    end_date: float = Field(..., description="Departure window end (s)")
    altitude: float = Field(..., ge=0.0, description="Parking orbit altitude (m)")
    seed: Optional[int] = Field(default=None, description="Random seed")

    @field_validator("start_date", "end_date")
    @classmethod
    def _finite_date(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("dates must be finite")
        return value

    @model_validator(mode="after")
    def _ordered_window(self):
        if self.end_date <= self.start_date:
            raise ValueError("Departure date range end must be greater than the start date.")
        return self


def load_config(path: Union[str, Path]) -> PlannerConfig:
    """Read a JSON configuration file; missing sections take their defaults."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return PlannerConfig.model_validate(data)
