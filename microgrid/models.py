"""Records emitted by the simulation core.

All of them are immutable; a new reading, forecast or plan is produced
wholesale rather than patched in place.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Tuple

__all__ = [
    "EnergyReading",
    "ForecastPoint",
    "OptimizationResult",
    "DispatchPlan",
    "Alert",
    "CHARGE",
    "DISCHARGE",
    "IDLE",
]

CHARGE = "charge"
DISCHARGE = "discharge"
IDLE = "idle"


@dataclass(frozen=True)
class EnergyReading:
    """One telemetry snapshot of the microgrid."""

    timestamp: datetime
    solar_power_w: float
    wind_power_w: float
    battery_soc_pct: float
    battery_voltage_v: float
    grid_power_w: float  # + import, - export
    demand_w: float
    temperature_c: float
    cloud_cover_pct: float

    @property
    def generation_w(self) -> float:
        return self.solar_power_w + self.wind_power_w

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ForecastPoint:
    hour: str
    solar_w: int
    demand_w: int
    confidence_pct: int

    @property
    def hour_of_day(self) -> int:
        return int(self.hour.split(":")[0])


@dataclass(frozen=True)
class OptimizationResult:
    """Dispatch decision for a single hour of the day-ahead plan."""

    timestamp: str
    hour: int
    battery_action: str
    grid_import_kw: float
    grid_export_kw: float
    cost_rs: float  # + net cost, - net revenue


@dataclass(frozen=True)
class DispatchPlan:
    """Ordered results of one optimizer run and the SOC it planned.

    ``planned_soc[i]`` is the planned SOC after step ``i``. It never refers to
    the live battery SOC.
    """

    results: Tuple[OptimizationResult, ...] = ()
    planned_soc: Tuple[float, ...] = ()

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    @property
    def total_cost_rs(self) -> float:
        return float(sum(r.cost_rs for r in self.results))


@dataclass(frozen=True)
class Alert:
    id: str
    severity: str
    message: str
    timestamp: datetime
    kind: str = "low_soc"
