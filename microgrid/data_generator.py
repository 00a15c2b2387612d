from __future__ import annotations
import yaml, numpy as np, pandas as pd
from datetime import datetime, timedelta
from typing import List, Optional

from .models import EnergyReading, ForecastPoint
from .signal_model import uniform, is_weekend, solar_power, demand_power, wind_power
from .system_model import SystemParams, _get

__all__ = ["load_conf", "generate_time_index", "generate_reading", "generate_forecast", "forecast_to_frame", "round_half_up"]

def load_conf(path: str = "config.yaml") -> dict:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}

def generate_time_index(start, periods: int, delta_ms: float) -> pd.DatetimeIndex:
    # whole microseconds, so ticks convert to datetime without losing precision
    step = pd.to_timedelta(round(float(delta_ms)*1000.0), unit="us")
    return pd.date_range(start=pd.Timestamp(start), periods=int(periods), freq=step)

def round_half_up(x: float, ndigits: int = 0) -> float:
    scale = 10.0**ndigits
    return float(np.floor(x*scale + 0.5)/scale)

def battery_voltage(soc: float) -> float:
    return 48.0 + (soc - 50.0)*0.05

def grid_balance(generation_w: float, demand_w: float, soc: float) -> float:
    """Grid power covering the gap; the battery's share is not debited here."""
    if generation_w < demand_w:
        deficit = demand_w - generation_w
        return deficit*0.5 if soc > 30.0 else deficit
    if soc < 85.0:
        return 0.0
    return -(generation_w - demand_w)

def generate_reading(now: datetime, rng, soc: float = 65.0, params: Optional[SystemParams] = None) -> EnergyReading:
    params = params or SystemParams()
    hour = now.hour
    cloud = uniform(rng, *params.cloud_cover_pct)
    temp = uniform(rng, *params.temperature_c)

    solar = solar_power(hour, cloud, peak_w=params.solar_peak_w)
    wind = wind_power(rng)
    demand = demand_power(hour, is_weekend(now), rng, base_w=params.demand_base_w)

    return EnergyReading(
        timestamp=now,
        solar_power_w=solar,
        wind_power_w=wind,
        battery_soc_pct=float(soc),
        battery_voltage_v=battery_voltage(soc),
        grid_power_w=grid_balance(solar + wind, demand, soc),
        demand_w=demand,
        temperature_c=temp,
        cloud_cover_pct=cloud,
    )

def generate_forecast(now: datetime, rng, horizon: int = 24, params: Optional[SystemParams] = None) -> List[ForecastPoint]:
    params = params or SystemParams()
    lo, hi = params.forecast_cloud_cover_pct
    peak_w = params.solar_peak_w
    base_w = params.demand_base_w
    points = []
    for i in range(int(horizon)):
        hour = (now.hour + i) % 24
        future = now + timedelta(hours=i)
        cloud = uniform(rng, lo, hi)
        solar = solar_power(hour, cloud, peak_w=peak_w)
        demand = demand_power(hour, is_weekend(future), rng, base_w=base_w)
        confidence = max(60.0, 95.0 - 1.5*i)
        points.append(ForecastPoint(
            hour=f"{hour}:00",
            solar_w=int(round_half_up(solar)),
            demand_w=int(round_half_up(demand)),
            confidence_pct=int(round_half_up(confidence)),
        ))
    return points

def forecast_to_frame(points: List[ForecastPoint]) -> pd.DataFrame:
    df = pd.DataFrame(
        [(p.hour, p.hour_of_day, p.solar_w, p.demand_w, p.confidence_pct) for p in points],
        columns=["hour", "hour_of_day", "solar_w", "demand_w", "confidence_pct"],
    )
    return df

if __name__ == "__main__":
    try:
        conf = load_conf("config.yaml")
    except FileNotFoundError:
        conf = None
    rng = np.random.default_rng(int(_get(conf, "simulation.seed", 42)))
    print(forecast_to_frame(generate_forecast(datetime.now(), rng, params=SystemParams(conf))).to_string(index=False))
