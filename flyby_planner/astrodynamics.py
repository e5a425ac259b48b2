import math

import jax
import jax.numpy as jnp
from jax import jit
import numpy as np

from .orbital_elements import OrbitalElements
from .cartesian_state import CartesianState


TWO_PI = 2.0 * math.pi


def solve_kepler(M: float, e: float, max_iter: int = 50) -> float:
    """
    Solve Kepler's equation M = E - e*sin(E) for eccentric anomaly E
    using Newton-Raphson iteration with jax.lax.scan for AD compatibility.
    """
    E = jax.lax.cond(e < 0.8, lambda: M, lambda: jnp.pi * jnp.ones_like(M))

    def body_fn(E, _):
        f = E - e * jnp.sin(E) - M
        fp = 1.0 - e * jnp.cos(E)
        E_new = E - f / fp
        return E_new, E_new

    E_final, _ = jax.lax.scan(body_fn, E, None, length=max_iter)
    return E_final


@jit
def elements_to_cartesian(elements: OrbitalElements, t: float, mu: float) -> CartesianState:
    """
    Convert elliptic orbital elements to a y-up Cartesian state at time t.

    Args:
        elements: Orbital elements of the orbit (z-up convention)
        t: Time since epoch (s)
        mu: Gravitational parameter of the attractor (m^3/s^2)

    Returns:
        CartesianState with JAX arrays in m and m/s, expressed in the y-up frame
    """
    a, e, i, Omega, omega, M0 = elements.a, elements.e, elements.i, elements.Omega, elements.omega, elements.M0

    n = jnp.sqrt(mu / a**3)
    M = M0 + n * t
    E = solve_kepler(M, e)

    theta = 2.0 * jnp.arctan2(
        jnp.sqrt(1.0 + e) * jnp.sin(E / 2.0),
        jnp.sqrt(1.0 - e) * jnp.cos(E / 2.0)
    )
    r_mag = a * (1.0 - e**2) / (1.0 + e * jnp.cos(theta))
    v_mag = jnp.sqrt(2.0 * mu / r_mag - mu / a)

    # Flight path angle
    gamma = jnp.arctan2(e * jnp.sin(theta), 1.0 + e * jnp.cos(theta))

    cos_u = jnp.cos(theta + omega)
    sin_u = jnp.sin(theta + omega)
    cos_Omega = jnp.cos(Omega)
    sin_Omega = jnp.sin(Omega)
    cos_i = jnp.cos(i)
    sin_i = jnp.sin(i)

    x = r_mag * (cos_u * cos_Omega - sin_u * cos_i * sin_Omega)
    y = r_mag * (cos_u * sin_Omega + sin_u * cos_i * cos_Omega)
    z = r_mag * sin_u * sin_i

    cos_ug = jnp.cos(theta + omega - gamma)
    sin_ug = jnp.sin(theta + omega - gamma)

    vx = v_mag * (-sin_ug * cos_Omega - cos_ug * cos_i * sin_Omega)
    vy = v_mag * (-sin_ug * sin_Omega + cos_ug * cos_i * cos_Omega)
    vz = v_mag * cos_ug * sin_i

    # z-up (x, y, z) -> y-up (x, z, -y)
    return CartesianState(r=jnp.array([x, z, -y]), v=jnp.array([vx, vz, -vy]))


# Batch of epochs for one orbit
elements_to_cartesian_vec = jax.vmap(elements_to_cartesian, in_axes=(None, 0, None))


def to_reference_frame(vec) -> np.ndarray:
    """Map a y-up vector to the z-up frame the orbital elements use."""
    x, y, z = vec
    return np.array([x, -z, y], dtype=float)


def unit_vector(vec: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    norm = np.linalg.norm(vec)
    if norm < eps:
        return np.zeros(3)
    return vec / norm


def _angle_between(a: np.ndarray, b: np.ndarray) -> float:
    cos_angle = np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b))
    return math.acos(min(1.0, max(-1.0, float(cos_angle))))


def orbital_period(a: float, mu: float) -> float:
    return TWO_PI * math.sqrt(a ** 3 / mu)


def state_to_elements(r, v, mu: float, epoch: float = 0.0) -> tuple[OrbitalElements, float]:
    """
    Convert a y-up Cartesian state to orbital elements.

    Args:
        r: Position vector (m)
        v: Velocity vector (m/s)
        mu: Gravitational parameter of the attractor (m^3/s^2)
        epoch: Time of the state. For closed orbits M0 is shifted back to t=0
            so that ``elements_to_cartesian(elements, epoch, mu)`` reproduces
            the state; for open orbits M0 is the mean anomaly at the state.

    Returns:
        (elements, true_anomaly) with the true anomaly in [0, 2*pi)
    """
    r = to_reference_frame(r)
    v = to_reference_frame(v)
    r_mag = np.linalg.norm(r)
    v2 = float(np.dot(v, v))
    rv = float(np.dot(r, v))

    h = np.cross(r, v)
    h_mag = np.linalg.norm(h)
    node = np.array([-h[1], h[0], 0.0])
    n_mag = np.linalg.norm(node)
    e_vec = ((v2 - mu / r_mag) * r - rv * v) / mu
    e = float(np.linalg.norm(e_vec))

    energy = 0.5 * v2 - mu / r_mag
    a = -mu / (2.0 * energy) if energy != 0.0 else math.inf
    i = math.acos(min(1.0, max(-1.0, h[2] / h_mag)))

    eps = 1e-11
    equatorial = n_mag <= eps * h_mag
    Omega = 0.0 if equatorial else math.atan2(node[1], node[0]) % TWO_PI

    if e > eps:
        if not equatorial:
            omega = _angle_between(node, e_vec)
            if e_vec[2] < 0.0:
                omega = TWO_PI - omega
        else:
            omega = math.atan2(e_vec[1], e_vec[0])
            if h[2] < 0.0:
                omega = -omega
            omega %= TWO_PI
        nu = _angle_between(e_vec, r)
        if rv < 0.0:
            nu = TWO_PI - nu
    else:
        # circular: angles measured from the node (or the x axis)
        omega = 0.0
        if not equatorial:
            nu = _angle_between(node, r)
            if r[2] < 0.0:
                nu = TWO_PI - nu
        else:
            nu = math.atan2(r[1], r[0])
            if h[2] < 0.0:
                nu = -nu
            nu %= TWO_PI

    if e < 1.0:
        E = 2.0 * math.atan2(math.sqrt(1.0 - e) * math.sin(nu / 2.0), math.sqrt(1.0 + e) * math.cos(nu / 2.0))
        M = E - e * math.sin(E)
        M0 = (M - math.sqrt(mu / a ** 3) * epoch) % TWO_PI
    elif e > 1.0:
        H = 2.0 * math.atanh(math.sqrt((e - 1.0) / (e + 1.0)) * math.tan(nu / 2.0))
        M0 = e * math.sinh(H) - H
    else:
        D = math.tan(nu / 2.0)
        M0 = D + D ** 3 / 3.0

    return OrbitalElements(a=float(a), e=e, i=i, Omega=Omega, omega=omega, M0=M0), float(nu)


# ----------------------------------------------------------------------------
# Universal-variable propagation
# ----------------------------------------------------------------------------

def stumpff_c(z: float) -> float:
    """
    C(z) = (1 - cos(sqrt(z))) / z for z > 0
    C(z) = (cosh(sqrt(-z)) - 1) / (-z) for z < 0
    Series expansion near zero.
    """
    if z > 1e-6:
        return (1.0 - math.cos(math.sqrt(z))) / z
    if z < -1e-6:
        sz = math.sqrt(-z)
        if sz > 700.0:
            return math.inf
        return (math.cosh(sz) - 1.0) / (-z)
    return 0.5 - z / 24.0 + z ** 2 / 720.0 - z ** 3 / 40320.0


def stumpff_s(z: float) -> float:
    """
    S(z) = (sqrt(z) - sin(sqrt(z))) / sqrt(z)^3 for z > 0
    S(z) = (sinh(sqrt(-z)) - sqrt(-z)) / sqrt(-z)^3 for z < 0
    Series expansion near zero.
    """
    if z > 1e-6:
        sz = math.sqrt(z)
        return (sz - math.sin(sz)) / sz ** 3
    if z < -1e-6:
        sz = math.sqrt(-z)
        if sz > 700.0:
            return math.inf
        return (math.sinh(sz) - sz) / sz ** 3
    return 1.0 / 6.0 - z / 120.0 + z ** 2 / 5040.0 - z ** 3 / 362880.0


def _initial_universal_anomaly(r0_mag: float, rv0: float, alpha: float, dt: float, mu: float) -> float:
    sqrt_mu = math.sqrt(mu)
    if alpha * r0_mag > 1e-9:
        return sqrt_mu * dt * alpha
    if alpha * r0_mag < -1e-9:
        a = 1.0 / alpha
        sign = math.copysign(1.0, dt)
        denom = rv0 + sign * math.sqrt(-mu * a) * (1.0 - r0_mag * alpha)
        arg = (-2.0 * mu * alpha * dt) / denom if denom != 0.0 else 0.0
        if arg > 0.0:
            return sign * math.sqrt(-a) * math.log(arg)
    return sqrt_mu * dt / r0_mag


def propagate_kepler(r0, v0, dt: float, mu: float, tol: float = 1e-12, max_iter: int = 50) -> CartesianState:
    """
    Propagate a ballistic (Keplerian) state by ``dt`` using f and g functions.

    The universal Kepler equation is solved by Newton-Raphson iteration, so
    elliptic, parabolic and hyperbolic arcs are handled alike. A diverging
    solve returns non-finite vectors; callers decide what that means.

    Args:
        r0: Initial position vector (m)
        v0: Initial velocity vector (m/s)
        dt: Time of flight (s)
        mu: Gravitational parameter (m^3/s^2)

    Returns:
        CartesianState after ``dt``

    References:
        Vallado, D. A. (2013). Fundamentals of Astrodynamics and Applications (4th ed.).
        Section 2.3: Position and Velocity as a Function of Time
    """
    r0 = np.asarray(r0, dtype=float)
    v0 = np.asarray(v0, dtype=float)
    if dt == 0.0:
        return CartesianState(r=r0.copy(), v=v0.copy())

    r0_mag = float(np.linalg.norm(r0))
    rv0 = float(np.dot(r0, v0))
    vr0 = rv0 / r0_mag
    alpha = 2.0 / r0_mag - float(np.dot(v0, v0)) / mu
    sqrt_mu = math.sqrt(mu)

    if alpha > 0.0:
        # whole revolutions leave the state unchanged
        dt = math.fmod(dt, orbital_period(1.0 / alpha, mu))

    chi = _initial_universal_anomaly(r0_mag, rv0, alpha, dt, mu)
    for _ in range(max_iter):
        z = alpha * chi * chi
        c = stumpff_c(z)
        s = stumpff_s(z)
        f = (r0_mag * vr0 / sqrt_mu) * chi ** 2 * c \
            + (1.0 - alpha * r0_mag) * chi ** 3 * s \
            + r0_mag * chi \
            - sqrt_mu * dt
        fp = (r0_mag * vr0 / sqrt_mu) * chi * (1.0 - z * s) \
            + (1.0 - alpha * r0_mag) * chi ** 2 * c \
            + r0_mag
        step = f / fp
        chi -= step
        if not math.isfinite(chi) or abs(step) <= tol * max(1.0, abs(chi)):
            break

    z = alpha * chi * chi
    c = stumpff_c(z)
    s = stumpff_s(z)

    f = 1.0 - (chi ** 2 / r0_mag) * c
    g = dt - (chi ** 3 / sqrt_mu) * s
    r = f * r0 + g * v0
    r_mag = float(np.linalg.norm(r))

    fdot = (sqrt_mu / (r_mag * r0_mag)) * (alpha * chi ** 3 * s - chi)
    gdot = 1.0 - (chi ** 2 / r_mag) * c
    v = fdot * r0 + gdot * v0
    return CartesianState(r=r, v=v)


# ----------------------------------------------------------------------------
# Patched-conic helpers
# ----------------------------------------------------------------------------

def spherical_direction(theta: float, phi: float, forward: np.ndarray, normal: np.ndarray) -> np.ndarray:
    """
    Unit vector at in-plane angle ``theta`` and elevation ``phi`` from ``forward``.

    The frame is (forward, normal x forward, normal), with ``normal`` made
    orthogonal to ``forward`` first.
    """
    e1 = unit_vector(np.asarray(forward, dtype=float))
    n = np.asarray(normal, dtype=float)
    e3 = unit_vector(n - np.dot(n, e1) * e1)
    if not e3.any():
        e3 = unit_vector(np.cross(e1, [1.0, 0.0, 0.0] if abs(e1[0]) < 0.9 else [0.0, 0.0, 1.0]))
    e2 = np.cross(e3, e1)
    cos_phi = math.cos(phi)
    return cos_phi * math.cos(theta) * e1 + cos_phi * math.sin(theta) * e2 + math.sin(phi) * e3


def flyby_periapsis(v_inf: float, mu: float, bending: float) -> float:
    """Periapsis radius (m) that bends a hyperbola with excess speed ``v_inf`` by ``bending``."""
    half = 0.5 * bending
    if half <= 0.0:
        return math.inf
    return mu / v_inf ** 2 * (1.0 / math.sin(half) - 1.0)


def max_bending_angle(v_inf: float, mu: float, rp_min: float) -> float:
    """Largest turn angle (rad) achievable without dipping below ``rp_min``."""
    return 2.0 * math.asin(1.0 / (1.0 + rp_min * v_inf ** 2 / mu))


def escape_delta_v(mu: float, r_park: float) -> float:
    """Burn (m/s) from a circular parking orbit to exactly parabolic escape."""
    return (math.sqrt(2.0) - 1.0) * math.sqrt(mu / r_park)


def ejection_excess_speed(delta_v: float, mu: float, r_park: float) -> float:
    """Hyperbolic excess speed (m/s) after a prograde burn from a circular parking orbit."""
    v_circ = math.sqrt(mu / r_park)
    v_periapsis = v_circ + delta_v
    return math.sqrt(max(0.0, v_periapsis ** 2 - 2.0 * mu / r_park))


def insertion_delta_v(v_inf: float, mu: float, r_park: float) -> float:
    """Burn (m/s) to capture from excess speed ``v_inf`` into a circular orbit of radius ``r_park``."""
    return math.sqrt(v_inf ** 2 + 2.0 * mu / r_park) - math.sqrt(mu / r_park)
