# psychrometrics.py

import math
from typing import Optional

import numpy as np
import pandas as pd


# ----------------- Magnus-Tetens constants ----------------- #

SVP_COEFF_KPA = 0.6108
MAGNUS_A = 17.27
MAGNUS_B = 237.3   # °C

# °C of temperature change per kPa of VPD error (quick-estimate path only)
TEMPERATURE_APPROX_FACTOR = 5.0


def saturation_vapor_pressure(temp_c: float) -> float:
    """
    Saturation vapor pressure (kPa) at temp_c using the Magnus-Tetens formula:

        es = 0.6108 * exp((17.27*T) / (T + 237.3))

    Not guarded below -237.3 °C.
    """
    return SVP_COEFF_KPA * math.exp((MAGNUS_A * temp_c) / (temp_c + MAGNUS_B))


def vpd(temp_c: float, humidity_pct: float) -> float:
    """
    VPD (kPa) from air temperature (°C) and relative humidity (%).

    RH is not clamped: RH > 100 gives a negative VPD. Range checks belong
    to ingestion.
    """
    return saturation_vapor_pressure(temp_c) * (1.0 - humidity_pct / 100.0)


def required_humidity_for_target_vpd(temp_c: float, target_vpd_kpa: float) -> float:
    """
    Relative humidity (%) that gives target_vpd_kpa at temp_c.

    The result may fall outside 0-100 when the target cannot be reached at
    this temperature; see humidity_is_feasible().
    """
    return (1.0 - target_vpd_kpa / saturation_vapor_pressure(temp_c)) * 100.0


def temperature_adjustment_approx(
    current_temp: float,
    current_vpd: float,
    target_vpd: float,
    k: float = TEMPERATURE_APPROX_FACTOR,
) -> float:
    """Linear estimate of the temperature change (°C) needed to reach target_vpd."""
    return -(current_vpd - target_vpd) * k


def temperature_for_target_vpd(humidity_pct: float, target_vpd_kpa: float) -> Optional[float]:
    """
    Exact temperature (°C) that gives target_vpd_kpa at a fixed humidity.

    Inverts the Magnus-Tetens formula. Returns None when no temperature
    works (RH >= 100 or a non-positive target).
    """
    dryness = 1.0 - humidity_pct / 100.0
    if dryness <= 0 or target_vpd_kpa <= 0:
        return None

    es = target_vpd_kpa / dryness
    g = math.log(es / SVP_COEFF_KPA)
    if g >= MAGNUS_A:
        return None
    return MAGNUS_B * g / (MAGNUS_A - g)


def humidity_is_feasible(humidity_pct: float) -> bool:
    return 0.0 <= humidity_pct <= 100.0


def vpd_series(temp_c: pd.Series, humidity_pct: pd.Series) -> pd.Series:
    """
    Vectorised VPD (kPa) for pandas Series.

    Same formula as vpd(); non-numeric values become NaN and RH is left
    unclamped.
    """
    temp = pd.to_numeric(temp_c, errors="coerce")
    rh = pd.to_numeric(humidity_pct, errors="coerce")

    es = SVP_COEFF_KPA * np.exp((MAGNUS_A * temp) / (temp + MAGNUS_B))
    return es * (1.0 - rh / 100.0)
