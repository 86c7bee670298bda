# island_stats.py

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from climate_data import EnvironmentalRecord
from crop_config import WEEKS, IslandAssignment, VPDBand, average_band, band_for_assignment
from time_blocks import (
    BlockScheme,
    DayNightConvention,
    Period,
    TimeBlock,
    classify_block,
    classify_period,
    classify_thermal_stage,
    scheme_of,
)


# ========= VARIABILITY / HEALTH POLICY ========= #

HIGH_VARIABILITY_VPD_RANGE = 0.6   # kPa, max-min above this is "high variability"
GOOD_VPD_RANGE = 0.5               # kPa
EXCELLENT_VPD_RANGE = 0.4          # kPa
MAX_TEMPERATURE_RANGE = 6.0        # °C
MAX_HUMIDITY_RANGE = 20.0          # % RH

OPTIMAL_TIME_EXCELLENT = 95.0      # % of samples in the optimal band
OPTIMAL_TIME_GOOD = 85.0
OPTIMAL_TIME_ACCEPTABLE = 70.0
OPTIMAL_TIME_MINIMUM = 80.0        # below this, "too little time in range"

OPTIMAL_TIME_SUCCESS = 80.0        # UI rating cut-offs
OPTIMAL_TIME_WARNING = 60.0

SAMPLE_STEP_HOURS = 5.0 / 60.0     # fallback step when timestamps do not advance
MAX_SAMPLE_GAP_HOURS = 1.0         # longer steps are gaps, e.g. a filtered-out window

MAX_THERMAL_GRADIENT = 1.0         # °C/h, absolute
MAX_THERMAL_AMPLITUDE = 8.0        # °C between the coldest and warmest sample

PLANTED_WEEKS = tuple(w for w in WEEKS if w > 0)

METRICS = ("temperature", "humidity", "vpd")


# ----------------- Result types ----------------- #

@dataclass(frozen=True)
class MetricSummary:
    avg: float
    min: float
    max: float
    std: float
    count: int

    @property
    def range(self) -> float:
        return self.max - self.min


@dataclass(frozen=True)
class IslandStatistics:
    """Each metric is None when the island had no samples for it."""
    temperature: Optional[MetricSummary]
    humidity: Optional[MetricSummary]
    vpd: Optional[MetricSummary]
    optimal_time_percentage: Optional[float] = None

    def metric(self, name: str) -> Optional[MetricSummary]:
        return getattr(self, name)


@dataclass(frozen=True)
class IslandAssessment:
    status: str  # excellent | good | acceptable | needs_improvement
    problems: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    vpd_range: float = 0.0
    temperature_range: Optional[float] = None
    humidity_range: Optional[float] = None


@dataclass(frozen=True)
class EnergyStatus:
    avg_consumption_kw: float
    peak_consumption_kw: float
    samples: int


@dataclass(frozen=True)
class WeekGroup:
    """Islands at the same growth week; band averages their crop bands (None if no island)."""
    week: int
    island_ids: Tuple[str, ...]
    band: Optional[VPDBand]


@dataclass(frozen=True)
class ThermalAlert:
    level: str  # warning | info
    message: str
    action: str


# ----------------- Filters ----------------- #

def filter_by_period(
    records: Iterable[EnvironmentalRecord],
    period,
    convention: DayNightConvention = DayNightConvention.PLANT_CYCLE,
) -> List[EnvironmentalRecord]:
    period = Period(period)
    if period == Period.FULL:
        return list(records)
    return [r for r in records if classify_period(r.hour, convention) == period]


def filter_by_block(
    records: Iterable[EnvironmentalRecord],
    block: Optional[TimeBlock],
    scheme: Optional[BlockScheme] = None,
    convention: DayNightConvention = DayNightConvention.PLANT_CYCLE,
) -> List[EnvironmentalRecord]:
    if block is None:
        return list(records)
    block = TimeBlock(block)
    scheme = scheme or scheme_of(block)
    return [r for r in records if classify_block(r.hour, scheme, convention) == block]


def filter_records(
    records: Iterable[EnvironmentalRecord],
    period=None,
    block: Optional[TimeBlock] = None,
    convention: DayNightConvention = DayNightConvention.PLANT_CYCLE,
) -> List[EnvironmentalRecord]:
    """Intersection of the period and block filters; None skips a filter."""
    result = list(records)
    if period is not None:
        result = filter_by_period(result, period, convention)
    return filter_by_block(result, block, convention=convention)


def filter_by_island_selection(
    records: Iterable[EnvironmentalRecord],
    selected_ids: Iterable[str],
) -> List[EnvironmentalRecord]:
    """Copies of records keeping only the selected islands' readings."""
    selected = set(selected_ids)
    return [
        replace(r, islands={k: v for k, v in r.islands.items() if k in selected})
        for r in records
    ]


# ----------------- Statistics ----------------- #

def island_values(records: Iterable[EnvironmentalRecord], island_id: str, metric: str) -> List[float]:
    """All present samples of one metric for one island; missing samples are skipped."""
    values = []
    for record in records:
        reading = record.islands.get(island_id)
        if reading is None:
            continue
        value = getattr(reading, metric)
        if value is not None:
            values.append(value)
    return values


def summarize(values: Iterable[float]) -> Optional[MetricSummary]:
    """avg/min/max/std of values, or None for an empty set (never 0, NaN or inf)."""
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return None
    return MetricSummary(
        avg=float(arr.mean()),
        min=float(arr.min()),
        max=float(arr.max()),
        std=float(arr.std()),
        count=int(arr.size),
    )


def optimal_time_percentage(values: Iterable[float], band: VPDBand) -> Optional[float]:
    """Share (%) of VPD samples inside [optimal_min, optimal_max]; None when there are no samples."""
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return None
    in_band = (arr >= band.optimal_min) & (arr <= band.optimal_max)
    return 100.0 * float(in_band.sum()) / arr.size


def _statistics(values: Dict[str, List[float]], band: Optional[VPDBand]) -> IslandStatistics:
    return IslandStatistics(
        temperature=summarize(values["temperature"]),
        humidity=summarize(values["humidity"]),
        vpd=summarize(values["vpd"]),
        optimal_time_percentage=optimal_time_percentage(values["vpd"], band) if band is not None else None,
    )


def compute_statistics(
    records: Iterable[EnvironmentalRecord],
    island_ids: Iterable[str],
    bands: Union[VPDBand, Dict[str, VPDBand], None] = None,
) -> Dict[str, IslandStatistics]:
    """
    Per-island summaries over records.

    bands is either one band for every island or a mapping island -> band;
    optimal_time_percentage is None for islands without a band.
    """
    records = list(records)
    stats = {}
    for island_id in island_ids:
        values = {metric: island_values(records, island_id, metric) for metric in METRICS}
        band = bands.get(island_id) if isinstance(bands, dict) else bands
        stats[island_id] = _statistics(values, band)
    return stats


def pooled_statistics(
    records: Iterable[EnvironmentalRecord],
    island_ids: Iterable[str],
    band: Optional[VPDBand] = None,
) -> IslandStatistics:
    """Statistics over the samples of several islands taken together."""
    records = list(records)
    island_ids = list(island_ids)
    values = {
        metric: [v for island_id in island_ids for v in island_values(records, island_id, metric)]
        for metric in METRICS
    }
    return _statistics(values, band)


def group_islands_by_week(
    assignments: Dict[str, IslandAssignment],
    island_ids: Optional[Iterable[str]] = None,
    weeks: Sequence[int] = PLANTED_WEEKS,
) -> List[WeekGroup]:
    """
    One group per week in `weeks`, holding the islands assigned to it.

    Only islands in island_ids (default: every assigned island) are placed,
    in that order. Each group's band is the average of its islands' bands.
    """
    selected = list(assignments) if island_ids is None else [i for i in island_ids if i in assignments]
    groups = []
    for week in weeks:
        members = tuple(i for i in selected if assignments[i].week == week)
        band = average_band(band_for_assignment(assignments[i]) for i in members)
        groups.append(WeekGroup(week=week, island_ids=members, band=band))
    return groups


def optimal_time_rating(percentage: Optional[float]) -> str:
    if percentage is None:
        return "no_data"
    if percentage > OPTIMAL_TIME_SUCCESS:
        return "success"
    if percentage > OPTIMAL_TIME_WARNING:
        return "warning"
    return "danger"


def assess_island(stats: IslandStatistics, band: VPDBand) -> Optional[IslandAssessment]:
    """
    Classify an island's day against its band and list the problems found.
    None when there is no VPD data or no optimal-time figure to judge.
    """
    if stats.vpd is None or stats.optimal_time_percentage is None:
        return None

    problems = []
    suggestions = []

    if stats.vpd.avg < band.optimal_min:
        problems.append("Average VPD below the optimal band")
        suggestions.append("Raise temperature or lower relative humidity")
    elif stats.vpd.avg > band.optimal_max:
        problems.append("Average VPD above the optimal band")
        suggestions.append("Lower temperature or raise relative humidity")

    vpd_range = stats.vpd.range
    if vpd_range > HIGH_VARIABILITY_VPD_RANGE:
        problems.append("High VPD variability")
        suggestions.append("Tighten environmental control for more stability")

    optimal_time = stats.optimal_time_percentage
    if optimal_time < OPTIMAL_TIME_MINIMUM:
        problems.append("Little time in the optimal VPD band")
        suggestions.append("Adjust climate control setpoints")

    temperature_range = stats.temperature.range if stats.temperature else None
    if temperature_range is not None and temperature_range > MAX_TEMPERATURE_RANGE:
        problems.append("Excessive temperature swings")
        suggestions.append("Check heating/cooling control")

    humidity_range = stats.humidity.range if stats.humidity else None
    if humidity_range is not None and humidity_range > MAX_HUMIDITY_RANGE:
        problems.append("Excessive humidity swings")
        suggestions.append("Check dehumidifier operation")

    if optimal_time >= OPTIMAL_TIME_EXCELLENT and vpd_range <= EXCELLENT_VPD_RANGE:
        status = "excellent"
    elif optimal_time >= OPTIMAL_TIME_GOOD and vpd_range <= GOOD_VPD_RANGE:
        status = "good"
    elif optimal_time >= OPTIMAL_TIME_ACCEPTABLE and vpd_range <= HIGH_VARIABILITY_VPD_RANGE:
        status = "acceptable"
    else:
        status = "needs_improvement"

    return IslandAssessment(
        status=status,
        problems=problems,
        suggestions=suggestions,
        vpd_range=vpd_range,
        temperature_range=temperature_range,
        humidity_range=humidity_range,
    )


# ----------------- Energy ----------------- #

def island_energy_status(records: Iterable[EnvironmentalRecord], island_id: str) -> Optional[EnergyStatus]:
    """
    Dehumidifier draw for one island's units (keys like "I1_Oriente").
    None when the source carries no consumption data for the island.
    """
    prefix = f"{island_id}_"
    totals = []
    for record in records:
        watts = [w for unit, w in record.dehumidifiers.items() if unit.startswith(prefix)]
        if watts:
            totals.append(sum(watts) / 1000.0)
    if not totals:
        return None
    return EnergyStatus(
        avg_consumption_kw=sum(totals) / len(totals),
        peak_consumption_kw=max(totals),
        samples=len(totals),
    )


# ----------------- Chart-ready projections ----------------- #

def records_to_frame(
    records: Iterable[EnvironmentalRecord],
    island_ids: Iterable[str],
    convention: DayNightConvention = DayNightConvention.PLANT_CYCLE,
) -> pd.DataFrame:
    """
    One row per record with `{id}_vpd`, `{id}_temperature`, `{id}_humidity`
    columns for the given islands. Missing samples are NaN.
    """
    island_ids = list(island_ids)
    rows = []
    for record in records:
        row = {
            "time": record.timestamp,
            "hour": record.hour,
            "minute": record.minute,
            "period": classify_period(record.hour, convention).value,
            "block": classify_block(record.hour).value,
        }
        for island_id in island_ids:
            reading = record.islands.get(island_id)
            for metric in METRICS:
                value = getattr(reading, metric) if reading is not None else None
                row[f"{island_id}_{metric}"] = np.nan if value is None else value
        row["total_consumption_kw"] = (
            sum(record.dehumidifiers.values()) / 1000.0 if record.dehumidifiers else np.nan
        )
        rows.append(row)

    columns = ["time", "hour", "minute", "period", "block"]
    columns += [f"{i}_{m}" for i in island_ids for m in METRICS]
    columns.append("total_consumption_kw")
    return pd.DataFrame(rows, columns=columns)


# ----------------- Thermal analysis ----------------- #

def thermal_profile(records: Iterable[EnvironmentalRecord], island_id: str) -> pd.DataFrame:
    """
    Temperature series for one island with the gradient (°C/h) between
    consecutive samples and the thermal stage of each sample.
    """
    rows = [
        {
            "time": r.timestamp,
            "hour": r.hour,
            "temperature": r.islands[island_id].temperature,
            "stage": classify_thermal_stage(r.hour).value,
        }
        for r in records
        if island_id in r.islands and r.islands[island_id].temperature is not None
    ]
    df = pd.DataFrame(rows, columns=["time", "hour", "temperature", "stage"])
    if df.empty:
        df["step_hours"] = pd.Series(dtype=float)
        df["gradient"] = pd.Series(dtype=float)
        return df

    df["time"] = pd.to_datetime(df["time"])
    step = df["time"].diff().dt.total_seconds() / 3600.0
    step = step.where(step > 0, SAMPLE_STEP_HOURS)
    step = step.where(step <= MAX_SAMPLE_GAP_HOURS)
    step.iloc[0] = np.nan
    df["step_hours"] = step
    df["gradient"] = df["temperature"].diff() / step
    return df


def thermal_summary(profile: pd.DataFrame) -> Optional[dict]:
    """Average/min/max temperature, amplitude, gradient extremes and degree-hours; None if empty."""
    if profile.empty:
        return None

    temps = profile["temperature"]
    gradients = profile["gradient"].dropna()
    return {
        "avg_temp": float(temps.mean()),
        "min_temp": float(temps.min()),
        "max_temp": float(temps.max()),
        "amplitude": float(temps.max() - temps.min()),
        "max_gradient": float(gradients.max()) if not gradients.empty else None,
        "min_gradient": float(gradients.min()) if not gradients.empty else None,
        "degree_hours": float((temps * profile["step_hours"]).sum()),
    }


def thermal_alerts(summary: Optional[dict]) -> List[ThermalAlert]:
    """Alerts for a thermal_summary: fast temperature swings and a wide daily amplitude."""
    if summary is None:
        return []

    alerts = []
    gradients = [abs(g) for g in (summary["max_gradient"], summary["min_gradient"]) if g is not None]
    if gradients and max(gradients) > MAX_THERMAL_GRADIENT:
        alerts.append(ThermalAlert(
            level="warning",
            message=f"Steep temperature gradient ({max(gradients):.1f} °C/h). Check the climate control system.",
            action="Slow down temperature changes",
        ))
    if summary["amplitude"] > MAX_THERMAL_AMPLITUDE:
        alerts.append(ThermalAlert(
            level="info",
            message=f"Wide thermal amplitude ({summary['amplitude']:.1f} °C) may affect crop development.",
            action="Consider stabilising temperature",
        ))
    return alerts
