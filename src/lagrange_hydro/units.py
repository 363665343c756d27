"""Time and velocity units accepted in run files (SI seconds internally)."""

from __future__ import annotations

SECONDS_PER_YEAR = 86400.0 * 365.25

# factor taking a value in the named unit to m/s
VELOCITY_UNITS = {
    "m/s": 1.0,
    "m/yr": 1.0 / SECONDS_PER_YEAR,
    "cm/yr": 0.01 / SECONDS_PER_YEAR,
    "mm/yr": 0.001 / SECONDS_PER_YEAR,
}


def velocity_scale(unit: str) -> float:
    key = str(unit).strip().lower()
    if key not in VELOCITY_UNITS:
        raise ValueError(f"Unknown velocity unit {unit!r}; expected one of {sorted(VELOCITY_UNITS)}")
    return VELOCITY_UNITS[key]
