from __future__ import annotations
from datetime import datetime
import numpy as np

__all__ = ["uniform", "is_weekend", "solar_power", "demand_power", "wind_power", "demand_multiplier"]

# (first hour, last hour, multiplier); hours outside every band use NIGHT_MULT
DEMAND_BANDS = ((7, 9, 2.5), (17, 20, 2.8), (10, 16, 1.8))
NIGHT_MULT = 0.8

def uniform(rng, low: float, high: float) -> float:
    """Draw from [low, high) using any source exposing ``random()`` in [0, 1)."""
    return float(low) + float(rng.random())*(float(high) - float(low))

def is_weekend(ts: datetime) -> bool:
    return ts.weekday() >= 5

def solar_power(hour, cloud_cover_pct, *, peak_w=3500.0, sunrise=6, sunset=18, cloud_loss=0.6):
    if hour < sunrise or hour > sunset: return 0.0
    curve = peak_w*np.exp(-((hour - 12)**2)/18.0)
    return float(max(0.0, curve*(1.0 - cloud_loss*(cloud_cover_pct/100.0))))

def demand_multiplier(hour: int, weekend: bool, *, weekend_factor=0.7) -> float:
    mult = NIGHT_MULT
    for lo, hi, m in DEMAND_BANDS:
        if lo <= hour <= hi:
            mult = m
            break
    return mult*weekend_factor if weekend else mult

def demand_power(hour, weekend, rng, *, base_w=800.0, noise=0.1):
    noise_factor = uniform(rng, 1.0 - noise, 1.0 + noise)
    return base_w*demand_multiplier(hour, weekend)*noise_factor

def wind_power(rng, *, low_w=300.0, high_w=700.0):
    return uniform(rng, low_w, high_w)
