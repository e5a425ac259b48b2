"""
Physical and time constants for the flyby planner.

All quantities are SI: metres, seconds, kilograms.
"""

# Newtonian constant of gravitation (m^3 kg^-1 s^-2)
G = 6.67430e-11

# Kerbin calendar
HOUR = 3600.0
DAY = 6.0 * HOUR  # seconds per Kerbin day
YEAR = 426.0 * DAY  # seconds per Kerbin year

# Root star of the bundled system
MU_KERBOL = 1.1723328e18  # m^3/s^2

# Patched-conic defaults
MIN_PERIAPSIS_RADII = 1.1  # minimum flyby periapsis, in body radii
MAX_ALTITUDE_SOI_FRACTION = 0.75  # parking orbit altitude cap, as a fraction of (soi - radius)
