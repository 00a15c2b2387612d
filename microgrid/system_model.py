from __future__ import annotations
from typing import Any, Optional
import numpy as np

__all__ = ["SystemParams", "update_soc", "tariff_rs_per_kwh", "is_peak_hour"]

MS_PER_HOUR = 3_600_000.0

def _get(cfg: Optional[dict], path: str, default: Any) -> Any:
    cur = cfg or {}
    for k in path.split("."):
        if not isinstance(cur, dict) or k not in cur: return default
        cur = cur[k]
    return cur

class SystemParams:
    def __init__(self, conf: Optional[dict] = None):
        b = lambda k, d: float(_get(conf, f"battery.{k}", d))
        t = lambda k, d: float(_get(conf, f"tariff.{k}", d))
        s = lambda k, d: _get(conf, f"simulation.{k}", d)

        self.capacity_kwh = b("capacity_kwh", 100.0)
        self.max_charge_kw = b("max_charge_kw", 25.0)
        self.max_discharge_kw = b("max_discharge_kw", 25.0)
        self.degradation_rs_per_kwh = b("degradation_rs_per_kwh", 0.75)
        # live-loop hard band
        self.soc_min = b("soc_min", 20.0)
        self.soc_max = b("soc_max", 90.0)
        # day-ahead planning band
        self.plan_soc_start = b("plan_soc_start", 65.0)
        self.plan_soc_max = b("plan_soc_max", 85.0)
        self.plan_discharge_floor = b("plan_discharge_floor", 30.0)
        self.residual_kw = b("residual_kw", 0.1)

        self.peak_rs_per_kwh = t("peak_rs_per_kwh", 8.0)
        self.offpeak_rs_per_kwh = t("offpeak_rs_per_kwh", 5.0)
        self.export_multiplier = t("export_multiplier", 0.8)
        self.peak_windows = [tuple(int(h) for h in w) for w in _get(conf, "tariff.peak_windows", [[7, 11], [17, 21]])]

        self.start_soc = float(s("start_soc", 65.0))
        self.tick_ms = float(s("tick_ms", 5000.0))
        self.speed = float(s("speed", 1.0))
        self.forecast_period_s = float(s("forecast_period_s", 60.0))
        self.horizon_h = int(s("horizon_hours", 24))
        self.low_soc_alert = float(s("low_soc_alert", 30.0))
        self.clear_soc_alert = float(s("clear_soc_alert", 60.0))

        w = lambda k, d: tuple(float(v) for v in _get(conf, f"weather.{k}", d))
        self.solar_peak_w = float(_get(conf, "solar.peak_w", 3500.0))
        self.demand_base_w = float(_get(conf, "demand.base_w", 800.0))
        self.cloud_cover_pct = w("cloud_cover_pct", (20.0, 60.0))
        self.temperature_c = w("temperature_c", (25.0, 35.0))
        self.forecast_cloud_cover_pct = w("forecast_cloud_cover_pct", (20.0, 50.0))

        if self.capacity_kwh <= 0:
            raise ValueError(f"battery.capacity_kwh must be positive, got {self.capacity_kwh}")
        if self.speed <= 0 or self.tick_ms <= 0 or self.forecast_period_s <= 0:
            raise ValueError("simulation.speed, tick_ms and forecast_period_s must be positive")
        if not self.soc_min < self.soc_max or not self.soc_min < self.plan_soc_max:
            raise ValueError("battery SOC band is inverted")

    @property
    def export_rs_per_kwh(self) -> float:
        return self.offpeak_rs_per_kwh * self.export_multiplier

def is_peak_hour(hour: int, params: SystemParams) -> bool:
    return any(lo <= hour <= hi for lo, hi in params.peak_windows)

def tariff_rs_per_kwh(hour: int, params: SystemParams) -> float:
    return params.peak_rs_per_kwh if is_peak_hour(hour, params) else params.offpeak_rs_per_kwh

def update_soc(current_soc, generation_w, demand_w, grid_w, delta_ms=5000.0,
               *, capacity_kwh=100.0, soc_min=20.0, soc_max=90.0):
    """Advance the live SOC by one tick of energy balance.

    Whatever generation is not consumed by demand or pushed to the grid is
    taken to flow into (or, when negative, out of) the battery.
    """
    balance_w = float(generation_w) - float(demand_w) - float(grid_w)
    energy_wh = balance_w * (float(delta_ms) / MS_PER_HOUR)
    soc = float(current_soc) + energy_wh / (capacity_kwh * 1000.0) * 100.0
    if np.isnan(soc):
        soc = float(current_soc) if np.isfinite(current_soc) else soc_min
    return float(np.clip(soc, soc_min, soc_max))
