from __future__ import annotations
import numpy as np, pandas as pd
from typing import Dict, Any, Iterable, Optional

from .models import IDLE, DispatchPlan, ForecastPoint
from .optimizer import plan_to_frame
from .system_model import MS_PER_HOUR, SystemParams, tariff_rs_per_kwh

def system_efficiency_pct(generation_w: float, demand_w: float) -> float:
    """Generation as a percentage of demand; 0 when there is no demand."""
    if demand_w <= 0: return 0.0
    return float(generation_w)/float(demand_w)*100.0

def naive_cost_rs(forecast: Iterable[ForecastPoint], params: SystemParams) -> float:
    """Cost of the same day with no battery: every deficit imported, every surplus exported."""
    total = 0.0
    for p in forecast:
        net_kw = (p.solar_w - p.demand_w)/1000.0
        if net_kw < 0: total += -net_kw*tariff_rs_per_kwh(p.hour_of_day, params)
        else: total -= net_kw*params.export_rs_per_kwh
    return float(total)

def kpi_plan_cost(df: pd.DataFrame, params: SystemParams) -> Dict[str, Any]:
    tariffs = df["hour"].map(lambda h: tariff_rs_per_kwh(int(h), params)) if len(df) else pd.Series(dtype=float)
    return {
        "total_cost_rs": float(df["cost_rs"].sum()),
        "grid_import_cost_rs": float((df["grid_import_kw"]*tariffs).sum()),
        "export_revenue_rs": float((df["grid_export_kw"]*params.export_rs_per_kwh).sum()),
        "grid_import_kwh": float(df["grid_import_kw"].sum()),
        "grid_export_kwh": float(df["grid_export_kw"].sum()),
    }

def kpi_battery_usage(df: pd.DataFrame, params: SystemParams) -> Dict[str, Any]:
    soc = np.concatenate([[params.plan_soc_start], df["planned_soc"].to_numpy(dtype=float)])
    throughput = float(np.abs(np.diff(soc)).sum())*params.capacity_kwh/100.0
    counts = df["battery_action"].value_counts()
    return {
        "battery_throughput_kwh": throughput,
        "battery_wear_rs": throughput*params.degradation_rs_per_kwh,
        "charge_hours": int(counts.get("charge", 0)),
        "discharge_hours": int(counts.get("discharge", 0)),
        "idle_hours": int(counts.get(IDLE, 0)),
        "final_planned_soc": float(soc[-1]),
    }

def summarize_plan(plan: DispatchPlan, params: SystemParams, forecast: Optional[Iterable[ForecastPoint]] = None) -> Dict[str, Any]:
    df = plan_to_frame(plan)
    out: Dict[str, Any] = {}
    out.update(kpi_plan_cost(df, params))
    out.update(kpi_battery_usage(df, params))
    if forecast is not None:
        naive = naive_cost_rs(forecast, params)
        savings = naive - out["total_cost_rs"]
        out.update({
            "naive_cost_rs": naive,
            "savings_rs": savings,
            "savings_pct": savings/abs(naive)*100.0 if abs(naive) > 1e-9 else 0.0,
        })
    return out

def summarize_live(df: pd.DataFrame, delta_ms: float) -> Dict[str, Any]:
    if df.empty:
        return {"energy_generated_wh": 0.0, "energy_demand_wh": 0.0, "grid_import_wh": 0.0, "grid_export_wh": 0.0,
                "renewable_share_pct": 0.0, "mean_efficiency_pct": 0.0,
                "soc_min": None, "soc_max": None, "soc_final": None}
    dt_h = float(delta_ms)/MS_PER_HOUR
    gen = df["solar_power_w"] + df["wind_power_w"]
    demand = df["demand_w"]
    grid = df["grid_power_w"]
    demand_wh = float(demand.sum())*dt_h
    served_wh = float(np.minimum(gen, demand).sum())*dt_h
    eff = [system_efficiency_pct(g, d) for g, d in zip(gen, demand)]
    return {
        "energy_generated_wh": float(gen.sum())*dt_h,
        "energy_demand_wh": demand_wh,
        "grid_import_wh": float(grid.clip(lower=0.0).sum())*dt_h,
        "grid_export_wh": float((-grid).clip(lower=0.0).sum())*dt_h,
        "renewable_share_pct": served_wh/demand_wh*100.0 if demand_wh > 0 else 0.0,
        "mean_efficiency_pct": float(np.mean(eff)),
        "soc_min": float(df["battery_soc_pct"].min()),
        "soc_max": float(df["battery_soc_pct"].max()),
        "soc_final": float(df["battery_soc_pct"].iloc[-1]),
    }
