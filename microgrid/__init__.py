from .models import EnergyReading, ForecastPoint, OptimizationResult, DispatchPlan, Alert
from .system_model import SystemParams, update_soc
from .data_generator import generate_reading, generate_forecast
from .optimizer import run_dispatch, dispatch_step
from .controller import run_live_loop, forecast_schedule

__version__ = "0.1.0"
