# tests/test_controller.py

import warnings
from datetime import datetime, timedelta
from itertools import islice

import numpy as np
import pytest

from conftest import SequenceRandom
from microgrid.controller import forecast_schedule, run_live_loop, tick_delta_ms, update_alerts
from microgrid.system_model import SystemParams, update_soc


class TestLiveLoop:
    """Tests for the telemetry/battery feedback loop."""

    def test_tick_delta_scales_with_speed(self):
        assert tick_delta_ms(SystemParams()) == 5000.0
        assert tick_delta_ms(SystemParams({"simulation": {"speed": 10}})) == 500.0

    def test_readings_and_soc_feedback(self, params, mid_rng, weekday_noon):
        run = run_live_loop(params, mid_rng, weekday_noon, 3)
        df = run.readings
        assert len(df) == 3
        assert df.index[1] - df.index[0] == timedelta(milliseconds=5000)
        # surplus at noon with SOC below 85 charges the battery every tick
        assert df["battery_soc_pct"].is_monotonic_increasing
        assert run.live_soc == df["battery_soc_pct"].iloc[-1]
        assert run.live_soc > 65.0

    def test_soc_advanced_once_per_tick(self, params, weekday_noon):
        run = run_live_loop(params, SequenceRandom([0.5]), weekday_noon, 1)
        r = run.readings.iloc[0]
        expected = update_soc(65.0, r["solar_power_w"] + r["wind_power_w"], r["demand_w"], r["grid_power_w"], 5000)
        assert run.live_soc == pytest.approx(expected)
        # voltage reflects the SOC the reading was generated with
        assert r["battery_voltage_v"] == pytest.approx(48.75)

    def test_soc_stays_in_band(self, weekday_noon):
        params = SystemParams({"simulation": {"tick_ms": 3_600_000, "speed": 1}})
        run = run_live_loop(params, np.random.default_rng(5), weekday_noon, 48)
        assert run.readings["battery_soc_pct"].between(20.0, 90.0).all()

    def test_fractional_tick_keeps_microsecond_precision(self, mid_rng, weekday_noon):
        params = SystemParams({"simulation": {"speed": 3}})
        with warnings.catch_warnings():
            warnings.simplefilter("error", UserWarning)
            run = run_live_loop(params, mid_rng, weekday_noon, 5)
        steps = run.readings.index[1:] - run.readings.index[:-1]
        assert all(step == timedelta(microseconds=1_666_667) for step in steps)

    @pytest.mark.parametrize("start_soc, voltage", [(99.0, 50.0), (5.0, 46.5)])
    def test_start_soc_clamped_to_live_band(self, params, mid_rng, weekday_noon, start_soc, voltage):
        run = run_live_loop(params, mid_rng, weekday_noon, 1, soc=start_soc)
        assert run.readings["battery_voltage_v"].iloc[0] == pytest.approx(voltage)

    def test_signal_settings_come_from_params(self, mid_rng, weekday_noon):
        params = SystemParams({
            "solar": {"peak_w": 7000},
            "demand": {"base_w": 1600},
            "weather": {"cloud_cover_pct": [0, 0]},
        })
        r = run_live_loop(params, mid_rng, weekday_noon, 1).readings.iloc[0]
        assert r["cloud_cover_pct"] == 0.0
        assert r["solar_power_w"] == pytest.approx(7000.0)
        assert r["demand_w"] == pytest.approx(1600*1.8)

    def test_zero_ticks(self, params, mid_rng, weekday_noon):
        run = run_live_loop(params, mid_rng, weekday_noon, 0)
        assert run.readings.empty
        assert run.live_soc == 65.0

    def test_sink_receives_every_reading(self, params, mid_rng, weekday_noon):
        received = []
        run_live_loop(params, mid_rng, weekday_noon, 4, sink=received.append)
        assert len(received) == 4
        assert received[0].timestamp == weekday_noon

    def test_sink_failure_does_not_stop_loop(self, params, mid_rng, weekday_noon, caplog):
        def broken_sink(reading):
            raise ConnectionError("store unavailable")

        run = run_live_loop(params, mid_rng, weekday_noon, 3, sink=broken_sink)
        assert len(run.readings) == 3
        assert "store unavailable" in caplog.text

    def test_low_soc_raises_alert(self, weekday_noon):
        # an hour per tick of evening deficit drains the battery quickly
        params = SystemParams({"simulation": {"tick_ms": 3_600_000}, "battery": {"capacity_kwh": 2}})
        evening = weekday_noon.replace(hour=19)
        run = run_live_loop(params, SequenceRandom([0.5]), evening, 3, soc=40.0)
        assert run.live_soc < 30.0
        assert len(run.alerts) == 1
        assert run.alerts[0].severity == "critical"


class TestAlerts:

    def test_raised_once(self, params, weekday_noon):
        alerts = update_alerts([], 25.0, weekday_noon, params)
        alerts = update_alerts(alerts, 22.0, weekday_noon, params)
        assert len(alerts) == 1
        assert "below 30%" in alerts[0].message

    def test_kept_between_thresholds(self, params, weekday_noon):
        alerts = update_alerts([], 25.0, weekday_noon, params)
        assert len(update_alerts(alerts, 45.0, weekday_noon, params)) == 1

    def test_cleared_on_recovery(self, params, weekday_noon):
        alerts = update_alerts([], 25.0, weekday_noon, params)
        assert update_alerts(alerts, 61.0, weekday_noon, params) == []


class TestForecastSchedule:

    def test_refresh_period(self, params, weekday_noon):
        refreshes = list(forecast_schedule(params, np.random.default_rng(0), weekday_noon, 180))
        assert [t for t, _ in refreshes] == [weekday_noon + timedelta(seconds=60*i) for i in range(4)]
        assert all(len(f) == 24 for _, f in refreshes)

    def test_each_refresh_is_fresh(self, params, weekday_noon):
        (_, a), (_, b) = islice(forecast_schedule(params, np.random.default_rng(0), weekday_noon, 600), 2)
        assert a != b
