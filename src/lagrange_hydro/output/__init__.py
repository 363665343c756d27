"""Run output: energy ledgers."""

from lagrange_hydro.output.energy import EnergyHistory, EnergyRecord

__all__ = ["EnergyHistory", "EnergyRecord"]
