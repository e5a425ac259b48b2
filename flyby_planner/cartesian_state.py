"""
Position/velocity state in Cartesian coordinates.
"""
from typing import NamedTuple

import numpy as np


class CartesianState(NamedTuple):
    """
    Attractor-centred Cartesian state of a body or spacecraft.

    The frame is y-up: the reference plane normal is +y, so prograde orbits
    have angular momentum along +y.

    Attributes:
        r: Position vector [x, y, z] in m
        v: Velocity vector [vx, vy, vz] in m/s
    """
    r: np.ndarray  # position [x, y, z] (m)
    v: np.ndarray  # velocity [vx, vy, vz] (m/s)
