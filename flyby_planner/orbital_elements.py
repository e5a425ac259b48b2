"""
Orbital elements representation for celestial bodies and trajectory arcs.
"""
from typing import NamedTuple


class OrbitalElements(NamedTuple):
    """
    Keplerian orbital elements about an attractor.

    Angles are in radians and refer to the conventional z-up reference frame;
    the y-up simulation frame is obtained in ``astrodynamics``.

    Attributes:
        a: Semi-major axis (m), negative for hyperbolic orbits
        e: Eccentricity (dimensionless)
        i: Inclination relative to the reference plane (radians)
        Omega: Longitude of the ascending node (radians)
        omega: Argument of periapsis (radians)
        M0: Mean anomaly at epoch t=0 (radians)
    """
    a: float  # semi-major axis (m)
    e: float  # eccentricity
    i: float  # inclination (rad)
    Omega: float  # longitude of ascending node (rad)
    omega: float  # argument of periapsis (rad)
    M0: float  # mean anomaly at epoch (rad)

    @property
    def semi_latus_rectum(self) -> float:
        return self.a * (1.0 - self.e ** 2)

    @property
    def periapsis(self) -> float:
        return self.a * (1.0 - self.e)

    @property
    def apoapsis(self) -> float:
        """Apoapsis radius (m); infinite for open orbits."""
        if self.e >= 1.0:
            return float("inf")
        return self.a * (1.0 + self.e)
