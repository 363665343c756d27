"""Energy ledger of accepted hydro steps.

Internal energy ``IE = sum_q rho0DetJ0w e`` and kinetic energy
``KE = 1/2 v^T M_v v`` are exchanged exactly by the RK2-average scheme when
no external work (damping, gravity, energy sources) is present, so the
relative drift of ``IE + KE`` is a direct accuracy check of a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class EnergyRecord:
    """Energies after one accepted step."""

    step: int          # accepted step number (0 = initial state)
    t: float           # time after the step
    dt: float          # step size used
    ie: float          # internal energy
    ke: float          # kinetic energy

    @property
    def total(self) -> float:
        return self.ie + self.ke

    def to_dict(self) -> Dict[str, float]:
        return {
            "step": float(self.step),
            "t": self.t,
            "dt": self.dt,
            "ie": self.ie,
            "ke": self.ke,
            "total": self.total,
        }


@dataclass
class EnergyHistory:
    records: List[EnergyRecord] = field(default_factory=list)

    def append(self, rec: EnergyRecord) -> None:
        self.records.append(rec)

    def __len__(self) -> int:
        return len(self.records)

    def relative_drift(self) -> float:
        """``|E_last - E_0| / |E_0|`` of the total energy."""
        if len(self.records) < 2:
            return 0.0
        e0 = self.records[0].total
        e1 = self.records[-1].total
        return abs(e1 - e0) / max(abs(e0), 1e-300)

    def __repr__(self) -> str:
        if not self.records:
            return "EnergyHistory(empty)"
        r0 = self.records[0]
        r1 = self.records[-1]
        lines = [
            "Energy history:",
            f"  steps:        {len(self.records) - 1}",
            f"  IE  start/end {r0.ie:14.8e} {r1.ie:14.8e}",
            f"  KE  start/end {r0.ke:14.8e} {r1.ke:14.8e}",
            f"  rel. drift    {self.relative_drift():14.8e}",
        ]
        return "\n".join(lines)
