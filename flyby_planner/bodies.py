import csv
import math
from pathlib import Path
from typing import Iterable, Iterator, Optional

import jax.numpy as jnp
import numpy as np
import pydantic
from pydantic import ConfigDict, Field

from flyby_planner.astrodynamics import elements_to_cartesian, elements_to_cartesian_vec, orbital_period
from flyby_planner.cartesian_state import CartesianState
from flyby_planner.constants import G
from flyby_planner.orbital_elements import OrbitalElements


class Body(pydantic.BaseModel):
    """
    A celestial body of the planetary system.

    Attributes:
        id: Unique identifier for the body (0 is the root star)
        name: Name of the body (e.g., "Kerbin", "Duna")
        mu: Gravitational parameter GM (m^3/s^2)
        radius: Physical radius of the body (m)
        soi: Sphere-of-influence radius (m), infinite for the root star
        attractor_id: Id of the body this one orbits, None for the root star
        elements: Orbital elements about the attractor, None for the root star
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)  # Allow OrbitalElements (NamedTuple)

    id: int = Field(..., ge=0, description="Body identifier")
    name: str = Field(..., description="Display name")
    mu: float = Field(..., gt=0.0, description="Gravitational parameter (m^3/s^2)")
    radius: float = Field(..., gt=0.0, description="Body radius (m)")
    soi: float = Field(..., gt=0.0, description="Sphere-of-influence radius (m)")
    attractor_id: Optional[int] = Field(default=None, description="Id of the orbited body")
    elements: Optional[OrbitalElements] = Field(default=None, description="Orbit about the attractor")

    @pydantic.model_validator(mode="after")
    def _check_orbit(self):
        if (self.attractor_id is None) != (self.elements is None):
            raise ValueError(f"Body '{self.name}' needs both an attractor and orbital elements, or neither")
        if self.elements is not None and not 0.0 <= self.elements.e < 1.0:
            raise ValueError(f"Body '{self.name}' must be on a closed orbit (e={self.elements.e})")
        return self

    @property
    def mass(self) -> float:
        return self.mu / G

    def is_root(self) -> bool:
        return self.attractor_id is None

    def __str__(self) -> str:
        return f"{self.name} (ID: {self.id})"


class BodyCatalog:
    """
    Read-only accessor over a set of bodies.

    State queries are pure functions of (body id, epoch). Positions are
    relative to the body's attractor in the y-up frame.
    """

    def __init__(self, bodies: Iterable[Body]):
        self._bodies: dict[int, Body] = {}
        for body in bodies:
            if body.id in self._bodies:
                raise ValueError(f"Duplicate body id {body.id}")
            self._bodies[body.id] = body
        for body in self._bodies.values():
            if body.attractor_id is not None and body.attractor_id not in self._bodies:
                raise ValueError(f"Body '{body.name}' orbits unknown body {body.attractor_id}")

    def __contains__(self, body_id: int) -> bool:
        return body_id in self._bodies

    def __iter__(self) -> Iterator[Body]:
        return iter(self._bodies.values())

    def __len__(self) -> int:
        return len(self._bodies)

    def body(self, body_id: int) -> Body:
        try:
            return self._bodies[body_id]
        except KeyError:
            raise KeyError(f"No body with id {body_id}") from None

    def by_name(self, name: str) -> Body:
        wanted = name.strip().lower()
        for body in self._bodies.values():
            if body.name.lower() == wanted:
                return body
        raise KeyError(f"No body named '{name}'")

    def attractor_of(self, body_id: int) -> int:
        body = self.body(body_id)
        if body.attractor_id is None:
            raise ValueError(f"{body} is the root body and has no attractor")
        return body.attractor_id

    def gravitational_parameter(self, body_id: int) -> float:
        return self.body(body_id).mu

    def sphere_of_influence(self, body_id: int) -> float:
        return self.body(body_id).soi

    def orbiters(self, attractor_id: int) -> list[Body]:
        """Bodies orbiting ``attractor_id``, ordered by id."""
        return sorted((b for b in self._bodies.values() if b.attractor_id == attractor_id), key=lambda b: b.id)

    def period(self, body_id: int) -> float:
        """Orbital period (s) of a body about its attractor."""
        body = self.body(body_id)
        return orbital_period(body.elements.a, self.gravitational_parameter(self.attractor_of(body_id)))

    def state_at(self, body_id: int, epoch: float) -> CartesianState:
        """
        Position and velocity of a body relative to its attractor.

        Args:
            body_id: Body identifier
            epoch: Time past t=0 (s)

        Returns:
            CartesianState with numpy arrays in m and m/s
        """
        body = self.body(body_id)
        if body.elements is None:
            return CartesianState(r=np.zeros(3), v=np.zeros(3))
        mu = self.gravitational_parameter(body.attractor_id)
        state = elements_to_cartesian(body.elements, float(epoch), mu)
        return CartesianState(r=np.asarray(state.r, dtype=float), v=np.asarray(state.v, dtype=float))

    def states_at(self, body_id: int, epochs) -> CartesianState:
        """Vectorised ``state_at``; returns arrays of shape (n, 3)."""
        body = self.body(body_id)
        epochs = jnp.asarray(epochs, dtype=float)
        if body.elements is None:
            zeros = np.zeros((epochs.shape[0], 3))
            return CartesianState(r=zeros, v=zeros.copy())
        mu = self.gravitational_parameter(body.attractor_id)
        states = elements_to_cartesian_vec(body.elements, epochs, mu)
        return CartesianState(r=np.asarray(states.r), v=np.asarray(states.v))


def load_bodies_data(path: Optional[Path] = None) -> BodyCatalog:
    """
    Load a planetary system from CSV.

    Args:
        path: CSV file; defaults to the bundled Kerbol system

    Returns:
        BodyCatalog with every row of the file
    """
    # Hardcode data directory to be in the same directory as this file
    if path is None:
        path = Path(__file__).parent / 'data' / 'kerbol_system.csv'

    bodies = []
    with open(path, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            attractor = row['Attractor ID'].strip()
            elements = None
            if attractor:
                elements = OrbitalElements(
                    a=float(row['Semi-Major Axis (m)']),
                    e=float(row['Eccentricity ()']),
                    i=math.radians(float(row['Inclination (deg)'])),
                    Omega=math.radians(float(row['Longitude of the Ascending Node (deg)'])),
                    omega=math.radians(float(row['Argument of Periapsis (deg)'])),
                    M0=float(row['Mean Anomaly at t=0 (rad)']),
                )
            bodies.append(Body(
                id=int(row['#Body ID']),
                name=row['Name'].strip(),
                attractor_id=int(attractor) if attractor else None,
                mu=float(row['GM (m3/s2)']),
                radius=float(row['Radius (m)']),
                soi=float(row['SOI (m)']),
                elements=elements,
            ))
    return BodyCatalog(bodies)


kerbol_system = load_bodies_data()
