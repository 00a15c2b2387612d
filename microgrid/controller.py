from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from .data_generator import generate_forecast, generate_reading, generate_time_index
from .models import Alert, EnergyReading, ForecastPoint
from .system_model import SystemParams, update_soc

__all__ = ["LiveRun", "tick_delta_ms", "run_live_loop", "update_alerts", "forecast_schedule"]

_LOGGER = logging.getLogger(__name__)

LOW_SOC_MESSAGE = "Battery SOC below {threshold:.0f}% - Critical level reached"

TelemetrySink = Callable[[EnergyReading], object]


@dataclass
class LiveRun:
    readings: pd.DataFrame
    live_soc: float
    alerts: List[Alert] = field(default_factory=list)


def tick_delta_ms(params: SystemParams) -> float:
    """Simulated time covered by one tick at the configured speed multiplier."""
    return params.tick_ms / params.speed


def update_alerts(alerts: List[Alert], soc: float, now: datetime, params: SystemParams) -> List[Alert]:
    """Raise one low-SOC alert when SOC drops below threshold, clear it on recovery."""
    low_active = any(a.kind == "low_soc" for a in alerts)
    if soc < params.low_soc_alert and not low_active:
        alert = Alert(
            id=f"alert-{int(now.timestamp()*1000)}",
            severity="critical",
            message=LOW_SOC_MESSAGE.format(threshold=params.low_soc_alert),
            timestamp=now,
        )
        _LOGGER.warning("%s (SOC %.1f%%)", alert.message, soc)
        return [alert] + alerts
    if soc > params.clear_soc_alert and low_active:
        _LOGGER.info("Battery SOC recovered to %.1f%%, clearing low-SOC alerts", soc)
        return [a for a in alerts if a.kind != "low_soc"]
    return alerts


def _emit(sink: Optional[TelemetrySink], reading: EnergyReading) -> None:
    if sink is None:
        return
    try:
        sink(reading)
    except Exception as err:
        _LOGGER.warning("Telemetry sink rejected reading at %s: %s", reading.timestamp, err)


def run_live_loop(
    params: SystemParams,
    rng,
    start: datetime,
    n_ticks: int,
    soc: Optional[float] = None,
    sink: Optional[TelemetrySink] = None,
) -> LiveRun:
    """Drive the telemetry/battery feedback loop for ``n_ticks`` ticks.

    Each tick produces a reading from the current live SOC, advances that SOC
    once with the tick's own delta, and hands the reading (carrying the
    post-tick SOC) to ``sink``.
    """
    delta_ms = tick_delta_ms(params)
    live_soc = float(np.clip(params.start_soc if soc is None else soc, params.soc_min, params.soc_max))
    alerts: List[Alert] = []
    rows = []

    for ts in generate_time_index(start, n_ticks, delta_ms):
        now = ts.to_pydatetime()
        reading = generate_reading(now, rng, soc=live_soc, params=params)
        live_soc = update_soc(
            live_soc,
            reading.generation_w,
            reading.demand_w,
            reading.grid_power_w,
            delta_ms,
            capacity_kwh=params.capacity_kwh,
            soc_min=params.soc_min,
            soc_max=params.soc_max,
        )
        record = replace(reading, battery_soc_pct=live_soc)
        alerts = update_alerts(alerts, live_soc, now, params)
        _emit(sink, record)
        rows.append(record.to_dict())

    cols = list(EnergyReading.__dataclass_fields__)
    df = pd.DataFrame(rows, columns=cols)
    if not df.empty:
        df = df.set_index("timestamp")
    return LiveRun(readings=df, live_soc=live_soc, alerts=alerts)


def forecast_schedule(
    params: SystemParams,
    rng,
    start: datetime,
    duration_s: float,
) -> Iterator[Tuple[datetime, List[ForecastPoint]]]:
    """Refresh the forecast every ``forecast_period_s`` of clock time.

    Independent of the tick loop: it only reads the same clock.
    """
    period = timedelta(seconds=params.forecast_period_s)
    now, end = start, start + timedelta(seconds=duration_s)
    while now <= end:
        yield now, generate_forecast(now, rng, horizon=params.horizon_h, params=params)
        now += period
