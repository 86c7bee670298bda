# recommendations.py

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

import numpy as np
import pandas as pd

import psychrometrics
from crop_config import VPDBand


# ========= ADJUSTMENT POLICY ========= #

TEMPERATURE_STEP = 2.0     # °C per suggested move
HUMIDITY_STEP = 10.0       # % RH per suggested move

WATTS_PER_DEGREE = 180.0   # W per °C of heating/cooling
WATTS_PER_PERCENT = 40.0   # W per % RH of (de)humidification

# Comfortable operating ranges; moves that end outside them cost more
TEMPERATURE_COMFORT = (18.0, 28.0)  # °C
HUMIDITY_COMFORT = (50.0, 85.0)     # % RH
EXCURSION_PENALTY = 0.1             # extra cost fraction per unit outside the range

SCENARIO_HUMIDITIES = np.arange(60.0, 81.0, 2.0)
SURFACE_TEMPERATURES = np.arange(18.0, 26.25, 0.5)
SURFACE_HUMIDITIES = np.arange(55.0, 86.0, 2.0)


class VPDStatus(str, Enum):
    LOW = "low"
    OPTIMAL = "optimal"
    HIGH = "high"


class Action(str, Enum):
    ADJUST_TEMPERATURE = "adjust_temperature"
    ADJUST_HUMIDITY = "adjust_humidity"
    MAINTAIN = "maintain"


class VPDCategory(str, Enum):
    OPTIMAL = "optimal"
    ACCEPTABLE = "acceptable"
    TOO_LOW = "too_low"
    TOO_HIGH = "too_high"


@dataclass(frozen=True)
class AdjustmentOption:
    kind: str               # "temperature" | "humidity"
    delta: float            # °C or % RH
    resulting_value: float
    resulting_vpd: float
    energy_cost_w: float
    feasibility: str        # easy | moderate | difficult


@dataclass(frozen=True)
class TargetAdjustment:
    """Estimates for going all the way to the target VPD in one move."""
    temperature_delta: float
    required_humidity: float
    humidity_feasible: bool
    temperature_energy_w: float
    humidity_energy_w: float
    cheaper: str


@dataclass(frozen=True)
class AdjustmentRecommendation:
    status: VPDStatus
    current_temperature: float
    current_humidity: float
    current_vpd: float
    target_vpd: float
    band: VPDBand
    temperature_option: AdjustmentOption
    humidity_option: AdjustmentOption
    recommended_action: Action
    to_target: TargetAdjustment
    energy_status: Optional[object] = None

    def option_for(self, action: Action) -> Optional[AdjustmentOption]:
        if action == Action.ADJUST_TEMPERATURE:
            return self.temperature_option
        if action == Action.ADJUST_HUMIDITY:
            return self.humidity_option
        return None


# ----------------- Classification ----------------- #

def vpd_status(current_vpd: float, band: VPDBand) -> VPDStatus:
    if current_vpd < band.optimal_min:
        return VPDStatus.LOW
    if current_vpd > band.optimal_max:
        return VPDStatus.HIGH
    return VPDStatus.OPTIMAL


def classify_vpd(value: float, band: VPDBand) -> VPDCategory:
    if band.optimal_min <= value <= band.optimal_max:
        return VPDCategory.OPTIMAL
    if band.acceptable_min <= value <= band.acceptable_max:
        return VPDCategory.ACCEPTABLE
    if value < band.acceptable_min:
        return VPDCategory.TOO_LOW
    return VPDCategory.TOO_HIGH


# ----------------- Cost / feasibility ----------------- #

def _excursion(value: float, comfort: tuple) -> float:
    low, high = comfort
    return max(0.0, low - value, value - high)


def energy_cost(kind: str, delta: float, resulting_value: float) -> float:
    """Estimated draw (W) of a move, penalised when it leaves the comfortable range."""
    if kind == "temperature":
        base = abs(delta) * WATTS_PER_DEGREE
        excursion = _excursion(resulting_value, TEMPERATURE_COMFORT)
    else:
        base = abs(delta) * WATTS_PER_PERCENT
        excursion = _excursion(resulting_value, HUMIDITY_COMFORT)
    return base * (1.0 + excursion * EXCURSION_PENALTY)


def feasibility(kind: str, resulting_value: float) -> str:
    low, high = TEMPERATURE_COMFORT if kind == "temperature" else HUMIDITY_COMFORT
    if resulting_value < low:
        return "difficult"
    if resulting_value > high:
        return "moderate"
    return "easy"


# ----------------- Options ----------------- #

def _capped_step(step: float, exact_delta: Optional[float], direction: int) -> float:
    # A move stops at the target when the target is nearer than one step
    if exact_delta is None:
        return direction * step
    if exact_delta * direction <= 0:
        return 0.0
    return direction * min(step, abs(exact_delta))


def _vpd_goal(temp: float, humidity: float, current_vpd: float, target_vpd: float):
    """
    Baseline VPD computed from temp/humidity and the VPD it has to reach.

    Averaged stored VPD and the VPD of the averaged temperature and humidity
    rarely agree, so the move is sized on the computed curve by the gap
    (target - current) rather than by the absolute target.
    """
    baseline = psychrometrics.vpd(temp, humidity)
    return baseline, baseline + (target_vpd - current_vpd)


def temperature_option(
    temp: float, humidity: float, current_vpd: float, target_vpd: float, direction: int
) -> AdjustmentOption:
    baseline, goal = _vpd_goal(temp, humidity, current_vpd, target_vpd)
    exact_temp = psychrometrics.temperature_for_target_vpd(humidity, goal)
    exact_delta = exact_temp - temp if exact_temp is not None else None
    delta = _capped_step(TEMPERATURE_STEP, exact_delta, direction)

    new_temp = temp + delta
    return AdjustmentOption(
        kind="temperature",
        delta=delta,
        resulting_value=new_temp,
        resulting_vpd=current_vpd + psychrometrics.vpd(new_temp, humidity) - baseline,
        energy_cost_w=energy_cost("temperature", delta, new_temp),
        feasibility=feasibility("temperature", new_temp),
    )


def humidity_option(
    temp: float, humidity: float, current_vpd: float, target_vpd: float, direction: int
) -> AdjustmentOption:
    baseline, goal = _vpd_goal(temp, humidity, current_vpd, target_vpd)
    exact_delta = psychrometrics.required_humidity_for_target_vpd(temp, goal) - humidity
    delta = _capped_step(HUMIDITY_STEP, exact_delta, direction)

    new_humidity = humidity + delta
    return AdjustmentOption(
        kind="humidity",
        delta=delta,
        resulting_value=new_humidity,
        resulting_vpd=current_vpd + psychrometrics.vpd(temp, new_humidity) - baseline,
        energy_cost_w=energy_cost("humidity", delta, new_humidity),
        feasibility=feasibility("humidity", new_humidity),
    )


def _hold_option(kind: str, value: float, current_vpd: float) -> AdjustmentOption:
    return AdjustmentOption(
        kind=kind,
        delta=0.0,
        resulting_value=value,
        resulting_vpd=current_vpd,
        energy_cost_w=0.0,
        feasibility=feasibility(kind, value),
    )


def target_adjustments(temp: float, humidity: float, current_vpd: float, target_vpd: float) -> TargetAdjustment:
    """
    Quick linear temperature estimate and exact required humidity to reach
    target_vpd, with the plain energy impact of each.
    """
    temperature_delta = psychrometrics.temperature_adjustment_approx(temp, current_vpd, target_vpd)
    required = psychrometrics.required_humidity_for_target_vpd(temp, target_vpd)

    temperature_energy = abs(temperature_delta) * WATTS_PER_DEGREE
    humidity_energy = abs(required - humidity) * WATTS_PER_PERCENT

    return TargetAdjustment(
        temperature_delta=temperature_delta,
        required_humidity=required,
        humidity_feasible=psychrometrics.humidity_is_feasible(required),
        temperature_energy_w=temperature_energy,
        humidity_energy_w=humidity_energy,
        cheaper="humidity" if humidity_energy <= temperature_energy else "temperature",
    )


def recommend(
    avg_temp: float,
    avg_humidity: float,
    avg_vpd: float,
    band: VPDBand,
    energy_status=None,
) -> AdjustmentRecommendation:
    """
    Build both adjustment options for an island and pick the cheaper one.

    Low VPD raises temperature or lowers humidity; high VPD does the
    opposite. Each option moves one fixed step, or less when the target is
    closer than a step. Ties in energy cost go to humidity. avg_vpd may be
    the stored average, which need not equal vpd(avg_temp, avg_humidity);
    options are then shifted by the same gap so they still end closer.
    """
    target = band.target
    status = vpd_status(avg_vpd, band)

    if status == VPDStatus.OPTIMAL:
        temp_opt = _hold_option("temperature", avg_temp, avg_vpd)
        hum_opt = _hold_option("humidity", avg_humidity, avg_vpd)
        action = Action.MAINTAIN
    else:
        direction = 1 if status == VPDStatus.LOW else -1
        temp_opt = temperature_option(avg_temp, avg_humidity, avg_vpd, target, direction)
        hum_opt = humidity_option(avg_temp, avg_humidity, avg_vpd, target, -direction)
        if hum_opt.energy_cost_w <= temp_opt.energy_cost_w:
            action = Action.ADJUST_HUMIDITY
        else:
            action = Action.ADJUST_TEMPERATURE

    return AdjustmentRecommendation(
        status=status,
        current_temperature=avg_temp,
        current_humidity=avg_humidity,
        current_vpd=avg_vpd,
        target_vpd=target,
        band=band,
        temperature_option=temp_opt,
        humidity_option=hum_opt,
        recommended_action=action,
        to_target=target_adjustments(avg_temp, avg_humidity, avg_vpd, target),
        energy_status=energy_status,
    )


def recommend_for_island(stats, band: VPDBand, energy_status=None) -> Optional[AdjustmentRecommendation]:
    """Recommendation from an island's averages; None when any summary is missing."""
    if stats is None or stats.temperature is None or stats.humidity is None or stats.vpd is None:
        return None
    return recommend(stats.temperature.avg, stats.humidity.avg, stats.vpd.avg, band, energy_status)


# ----------------- What-if tables ----------------- #

def humidity_scenarios(
    temp_c: float,
    band: VPDBand,
    target_vpd: Optional[float] = None,
    humidities: Optional[Iterable[float]] = None,
) -> pd.DataFrame:
    """VPD at temp_c for a range of humidities, nearest to target first."""
    target = band.target if target_vpd is None else target_vpd
    humidities = SCENARIO_HUMIDITIES if humidities is None else humidities

    rows = []
    for rh in humidities:
        value = psychrometrics.vpd(temp_c, float(rh))
        rows.append({
            "humidity": float(rh),
            "vpd": value,
            "category": classify_vpd(value, band).value,
            "distance": abs(value - target),
        })
    df = pd.DataFrame(rows, columns=["humidity", "vpd", "category", "distance"])
    return df.sort_values("distance", kind="stable").reset_index(drop=True)


def vpd_surface(
    band: VPDBand,
    temperatures: Optional[Iterable[float]] = None,
    humidities: Optional[Iterable[float]] = None,
) -> pd.DataFrame:
    """Long-form temperature x humidity grid of VPD values with their category."""
    temperatures = SURFACE_TEMPERATURES if temperatures is None else temperatures
    humidities = SURFACE_HUMIDITIES if humidities is None else humidities

    rows = []
    for temp in temperatures:
        for rh in humidities:
            value = psychrometrics.vpd(float(temp), float(rh))
            rows.append({
                "temperature": float(temp),
                "humidity": float(rh),
                "vpd": value,
                "category": classify_vpd(value, band).value,
            })
    return pd.DataFrame(rows, columns=["temperature", "humidity", "vpd", "category"])
