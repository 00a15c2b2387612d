from __future__ import annotations
import logging
from functools import reduce
from typing import Iterable, Tuple

import numpy as np
import pandas as pd

from .data_generator import round_half_up
from .models import CHARGE, DISCHARGE, IDLE, DispatchPlan, ForecastPoint, OptimizationResult
from .system_model import SystemParams, is_peak_hour, tariff_rs_per_kwh

__all__ = ["dispatch_step", "run_dispatch", "plan_to_frame"]

_LOGGER = logging.getLogger(__name__)


def dispatch_step(soc: float, point: ForecastPoint, params: SystemParams) -> Tuple[float, OptimizationResult]:
    """Greedy allocation for one forecast hour.

    Returns the planned SOC after the hour and the (rounded) result record.
    Flows are hourly, so kW and kWh are interchangeable here.
    """
    hour = point.hour_of_day
    peak = is_peak_hour(hour, params)
    tariff = tariff_rs_per_kwh(hour, params)
    cap = params.capacity_kwh

    surplus = point.solar_w/1000.0 - point.demand_w/1000.0
    action = IDLE
    imp = exp = cost = 0.0

    if surplus > 0:
        if soc < params.plan_soc_max:
            charged = min(surplus, params.max_charge_kw, (params.plan_soc_max - soc)*cap/100.0)
            soc += charged/cap*100.0
            action = CHARGE
            cost = charged*params.degradation_rs_per_kwh
            if surplus - charged > params.residual_kw:
                exp = surplus - charged
                cost -= exp*params.export_rs_per_kwh
        else:
            exp = surplus
            cost = -exp*params.export_rs_per_kwh
    else:
        deficit = -surplus
        if not peak and soc > params.plan_discharge_floor:
            discharged = min(deficit, params.max_discharge_kw, (soc - params.soc_min)*cap/100.0)
            soc -= discharged/cap*100.0
            if discharged > 0:
                action = DISCHARGE
            cost = discharged*params.degradation_rs_per_kwh
            if deficit - discharged > params.residual_kw:
                imp = deficit - discharged
                cost += imp*tariff
        else:
            imp = deficit
            cost = imp*tariff

    soc = float(np.clip(soc, params.soc_min, params.plan_soc_max))
    result = OptimizationResult(
        timestamp=point.hour,
        hour=hour,
        battery_action=action,
        grid_import_kw=round_half_up(imp, 2),
        grid_export_kw=round_half_up(exp, 2),
        cost_rs=round_half_up(cost, 2),
    )
    return soc, result


def run_dispatch(forecast: Iterable[ForecastPoint], params: SystemParams | None = None) -> DispatchPlan:
    """Fold ``dispatch_step`` over the forecast, starting from a fresh planned SOC."""
    params = params or SystemParams()

    def _fold(state, point):
        soc, results, trajectory = state
        soc, result = dispatch_step(soc, point, params)
        return soc, results + (result,), trajectory + (soc,)

    soc, results, trajectory = reduce(_fold, forecast, (params.plan_soc_start, (), ()))
    _LOGGER.debug("Dispatch planned %d steps, final SOC %.2f%%", len(results), soc)
    return DispatchPlan(results=results, planned_soc=trajectory)


def plan_to_frame(plan: DispatchPlan) -> pd.DataFrame:
    cols = ["timestamp", "hour", "battery_action", "grid_import_kw", "grid_export_kw", "cost_rs", "planned_soc"]
    rows = [
        (r.timestamp, r.hour, r.battery_action, r.grid_import_kw, r.grid_export_kw, r.cost_rs, soc)
        for r, soc in zip(plan.results, plan.planned_soc)
    ]
    return pd.DataFrame(rows, columns=cols)
