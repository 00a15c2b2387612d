# main.py
from __future__ import annotations
import os, json, argparse, logging
import numpy as np
from datetime import datetime, timezone

from microgrid.data_generator import load_conf, generate_forecast, forecast_to_frame
from microgrid.controller import run_live_loop, tick_delta_ms
from microgrid.optimizer import run_dispatch, plan_to_frame
from microgrid.evaluation import summarize_plan, summarize_live
from microgrid.system_model import SystemParams, _get

def create_argparser():
    parser = argparse.ArgumentParser(description="Microgrid telemetry simulation and day-ahead dispatch")
    parser.add_argument("--config", type=str, default="config.yaml", help="Path to the YAML config")
    parser.add_argument("--ticks", type=int, help="Number of live-loop ticks to simulate")
    parser.add_argument("--seed", type=int, help="Random seed (overrides simulation.seed)")
    parser.add_argument("--out", type=str, default="results", help="Output directory")
    return parser

def run_all(conf: dict, *, ticks=None, seed=None, out_dir="results", now=None):
    os.makedirs(out_dir, exist_ok=True)
    params = SystemParams(conf)
    seed = int(seed if seed is not None else _get(conf, "simulation.seed", 42))
    n_ticks = int(ticks if ticks is not None else _get(conf, "simulation.n_ticks", 720))
    now = now or datetime.now().replace(microsecond=0)

    # separate generators so the two loops never share random state
    live_rng, forecast_rng = (np.random.default_rng(s) for s in np.random.SeedSequence(seed).spawn(2))

    print("\n--- Running Microgrid Simulation ---")
    print(f"1. Live telemetry loop ({n_ticks} ticks at {params.speed:g}x)...")
    live = run_live_loop(params, live_rng, now, n_ticks)
    live.readings.to_csv(os.path.join(out_dir, "telemetry.csv"))
    for a in live.alerts:
        print(f"   [{a.severity}] {a.message}")

    print("2. 24-hour forecast...")
    forecast = generate_forecast(now, forecast_rng, horizon=params.horizon_h, params=params)
    forecast_to_frame(forecast).to_csv(os.path.join(out_dir, "forecast.csv"), index=False)

    print("3. Day-ahead dispatch...")
    plan = run_dispatch(forecast, params)
    plan_to_frame(plan).to_csv(os.path.join(out_dir, "schedule.csv"), index=False)

    kpis = {
        "plan": summarize_plan(plan, params, forecast),
        "live": summarize_live(live.readings, tick_delta_ms(params)),
    }
    with open(os.path.join(out_dir, "kpis.json"), "w") as f:
        json.dump(kpis, f, indent=2)
    print(f"Planned cost Rs {kpis['plan']['total_cost_rs']:.2f} "
          f"(no battery Rs {kpis['plan']['naive_cost_rs']:.2f}), live SOC {live.live_soc:.1f}%")

    meta = {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "seed": seed,
        "ticks": n_ticks,
        "tick_delta_ms": tick_delta_ms(params),
        "battery_capacity_kwh": params.capacity_kwh,
        "horizon_hours": params.horizon_h,
        "outputs": ["telemetry.csv", "forecast.csv", "schedule.csv", "kpis.json"],
    }
    with open(os.path.join(out_dir, "run_metadata.json"), "w") as f:
        json.dump(meta, f, indent=2)
    return kpis

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = create_argparser().parse_args()
    conf = load_conf(args.config)
    run_all(conf, ticks=args.ticks, seed=args.seed, out_dir=args.out)
