"""
Lambert solver for two-point boundary value problems in orbital mechanics.

Solves Lambert's problem: given two position vectors and a transfer time,
find the initial and final velocity vectors for a conic trajectory.

Uses Izzo's algorithm (2015), restricted to zero-revolution prograde
transfers. Prograde means the transfer angular momentum has a positive
y component (the y-up frame used throughout the package); when r1 x r2
points below the reference plane the long way round is taken instead.

References:
    Izzo, D. (2015). Revisiting Lambert's problem. Celestial Mechanics and
    Dynamical Astronomy, 121(1), 1-15.
"""
import math
from typing import NamedTuple

import numpy as np
from scipy.special import hyp2f1

# Regime switches on |x - 1| for the time-of-flight function
BATTIN_THRESHOLD = 0.01
LAGRANGE_THRESHOLD = 0.2

TOLERANCE = 1e-15
MAX_ITERATIONS = 15

# Relative residual on the non-dimensional time of flight accepted as converged
RESIDUAL_TOLERANCE = 1e-9


class LambertSolution(NamedTuple):
    """
    Result of a Lambert solve.

    Attributes:
        v1: Departure velocity (m/s)
        v2: Arrival velocity (m/s)
        x: Final value of the Izzo root variable
        iterations: Householder iterations performed
        converged: True when x is finite and reproduces the requested time of flight
    """
    v1: np.ndarray
    v2: np.ndarray
    x: float
    iterations: int
    converged: bool


def _clip_unit(value: float) -> float:
    return min(1.0, max(-1.0, value))


def tof_lagrange(x: float, lam: float) -> float:
    """Lagrange's closed-form non-dimensional time of flight."""
    a = 1.0 / (1.0 - x * x)
    if a > 0.0:
        alfa = 2.0 * math.acos(_clip_unit(x))
        beta = 2.0 * math.asin(math.sqrt(min(1.0, lam * lam / a)))
        if lam < 0.0:
            beta = -beta
        return a * math.sqrt(a) * ((alfa - math.sin(alfa)) - (beta - math.sin(beta))) / 2.0
    alfa = 2.0 * math.acosh(x)
    beta = 2.0 * math.asinh(math.sqrt(-lam * lam / a))
    if lam < 0.0:
        beta = -beta
    return -a * math.sqrt(-a) * ((beta - math.sinh(beta)) - (alfa - math.sinh(alfa))) / 2.0


def tof_battin(x: float, lam: float) -> float:
    """Battin's series form, accurate close to the parabolic case x = 1."""
    E = x * x - 1.0
    z = math.sqrt(1.0 + lam * lam * E)
    eta = z - lam * x
    s1 = 0.5 * (1.0 - lam - x * eta)
    q = 4.0 / 3.0 * hyp2f1(3.0, 1.0, 2.5, s1)
    return (eta ** 3 * q + 4.0 * lam * eta) / 2.0


def tof_lancaster(x: float, lam: float) -> float:
    """Lancaster's form, used far from the parabolic case."""
    E = x * x - 1.0
    z = math.sqrt(1.0 + lam * lam * E)
    y = math.sqrt(abs(E))
    g = x * z - lam * E
    if E < 0.0:
        d = math.acos(_clip_unit(g))
    else:
        f = y * (z - lam * x)
        if f + g <= 0.0:
            return math.nan
        d = math.log(f + g)
    return (x - lam * z - d / y) / E


def x2tof(x: float, lam: float) -> float:
    """Non-dimensional time of flight for root variable ``x``."""
    dist = abs(x - 1.0)
    if BATTIN_THRESHOLD < dist < LAGRANGE_THRESHOLD:
        return tof_lagrange(x, lam)
    if dist < BATTIN_THRESHOLD:
        return tof_battin(x, lam)
    return tof_lancaster(x, lam)


def _tof_derivatives(x: float, tof: float, lam: float) -> tuple[float, float, float]:
    l2 = lam * lam
    l3 = l2 * lam
    umx2 = 1.0 - x * x
    if umx2 == 0.0:
        umx2 = 1e-15
    y = math.sqrt(1.0 - l2 * umx2)
    y2 = y * y
    y3 = y2 * y
    d1 = 1.0 / umx2 * (3.0 * tof * x - 2.0 + 2.0 * l3 * x / y)
    d2 = 1.0 / umx2 * (3.0 * tof + 5.0 * x * d1 + 2.0 * (1.0 - l2) * l3 / y3)
    d3 = 1.0 / umx2 * (7.0 * x * d2 + 8.0 * d1 - 6.0 * (1.0 - l2) * l2 * l3 * x / y3 / y2)
    return d1, d2, d3


def _householder(T: float, x0: float, lam: float, eps: float, max_iter: int) -> tuple[float, int]:
    """Third-order Householder iteration on x; stops at ``eps`` or ``max_iter``."""
    iterations = 0
    err = 1.0
    while err > eps and iterations < max_iter:
        tof = x2tof(x0, lam)
        d1, d2, d3 = _tof_derivatives(x0, tof, lam)
        delta = tof - T
        d1_sq = d1 * d1
        denom = d1 * (d1_sq - delta * d2) + d3 * delta * delta / 6.0
        if denom == 0.0 or not math.isfinite(denom):
            break
        x_new = x0 - delta * (d1_sq - delta * d2 / 2.0) / denom
        err = abs(x0 - x_new)
        x0 = x_new
        iterations += 1
    return x0, iterations


def _initial_guess(T: float, lam: float) -> float:
    l2 = lam * lam
    l3 = l2 * lam
    T0 = math.acos(lam) + lam * math.sqrt(1.0 - l2)
    T1 = 2.0 / 3.0 * (1.0 - l3)
    if T >= T0:
        return -(T - T0) / (T - T0 + 4.0)
    if T <= T1:
        return T1 * (T1 - T) / (2.0 / 5.0 * (1.0 - l2 * l3) * T) + 1.0
    return (T / T0) ** (math.log(2.0) / math.log(T1 / T0)) - 1.0


def lambert(r1, r2, tof: float, mu: float,
            eps: float = TOLERANCE, max_iter: int = MAX_ITERATIONS) -> LambertSolution:
    """
    Solve the zero-revolution Lambert problem.

    Args:
        r1: Initial position vector (m)
        r2: Final position vector (m)
        tof: Time of flight (s), strictly positive
        mu: Gravitational parameter (m^3/s^2)
        eps: Householder step tolerance on x
        max_iter: Householder iteration cap

    Returns:
        LambertSolution. Non-convergence is reported through ``converged``,
        never raised.

    Raises:
        ValueError: if ``tof`` is not positive or the positions coincide.
    """
    if not tof > 0.0:
        raise ValueError(f"Time of flight must be positive, got {tof}")
    r1 = np.asarray(r1, dtype=float)
    r2 = np.asarray(r2, dtype=float)

    c = float(np.linalg.norm(r2 - r1))
    r1_mag = float(np.linalg.norm(r1))
    r2_mag = float(np.linalg.norm(r2))
    if c == 0.0 or r1_mag == 0.0 or r2_mag == 0.0:
        raise ValueError("Lambert problem needs two distinct, non-zero positions")
    s = 0.5 * (r1_mag + r2_mag + c)

    ir1 = r1 / r1_mag
    ir2 = r2 / r2_mag
    ih = np.cross(ir1, ir2)
    ih_norm = np.linalg.norm(ih)
    # collinear positions: the transfer plane defaults to the reference plane
    ih = ih / ih_norm if ih_norm > 1e-14 else np.array([0.0, 1.0, 0.0])

    lambda2 = 1.0 - c / s
    lam = math.sqrt(max(0.0, lambda2))
    if ih[1] < 0.0:
        lam = -lam
        it1 = np.cross(ir1, ih)
        it2 = np.cross(ir2, ih)
    else:
        it1 = np.cross(ih, ir1)
        it2 = np.cross(ih, ir2)
    it1 /= np.linalg.norm(it1)
    it2 /= np.linalg.norm(it2)

    T = math.sqrt(2.0 * mu / s ** 3) * tof

    x0 = _initial_guess(T, lam)
    x, iterations = _householder(T, x0, lam, eps, max_iter)

    gamma = math.sqrt(mu * s / 2.0)
    rho = (r1_mag - r2_mag) / c
    sigma = math.sqrt(max(0.0, 1.0 - rho * rho))
    y = math.sqrt(max(0.0, 1.0 - lambda2 + lambda2 * x * x))
    vr1 = gamma * ((lam * y - x) - rho * (lam * y + x)) / r1_mag
    vr2 = -gamma * ((lam * y - x) + rho * (lam * y + x)) / r2_mag
    vt = gamma * sigma * (y + lam * x)
    v1 = vr1 * ir1 + (vt / r1_mag) * it1
    v2 = vr2 * ir2 + (vt / r2_mag) * it2

    converged = math.isfinite(x) and abs(x2tof(x, lam) - T) <= RESIDUAL_TOLERANCE * max(T, 1.0)
    return LambertSolution(v1=v1, v2=v2, x=x, iterations=iterations, converged=bool(converged))


def solve_lambert(r1, r2, tof: float, mu: float) -> tuple[np.ndarray, np.ndarray]:
    """Departure and arrival velocities (m/s) of the zero-revolution transfer from r1 to r2."""
    solution = lambert(r1, r2, tof, mu)
    return solution.v1, solution.v2
