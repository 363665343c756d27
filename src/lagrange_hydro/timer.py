"""Stopwatches and solver counters for the run summary."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict


class StopWatch:
    def __init__(self):
        self.elapsed = 0.0
        self._t0 = None

    def start(self) -> None:
        self._t0 = time.perf_counter()

    def stop(self) -> None:
        if self._t0 is not None:
            self.elapsed += time.perf_counter() - self._t0
            self._t0 = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()
        return False


@dataclass
class TimingData:
    """Wall-clock split and work counters of a run."""

    sw_force: StopWatch = field(default_factory=StopWatch)
    sw_cg_h1: StopWatch = field(default_factory=StopWatch)
    sw_cg_l2: StopWatch = field(default_factory=StopWatch)
    sw_qdata: StopWatch = field(default_factory=StopWatch)
    h1_iter: int = 0
    l2_iter: int = 0
    quad_points: int = 0  # quadrature points processed by the driver

    def summary(self) -> Dict[str, float]:
        return {
            "force_s": self.sw_force.elapsed,
            "cg_h1_s": self.sw_cg_h1.elapsed,
            "cg_l2_s": self.sw_cg_l2.elapsed,
            "qdata_s": self.sw_qdata.elapsed,
            "h1_iter": float(self.h1_iter),
            "l2_iter": float(self.l2_iter),
            "quad_points": float(self.quad_points),
        }
