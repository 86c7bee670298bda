# time_blocks.py

import numbers
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Period(str, Enum):
    DAY = "day"
    NIGHT = "night"
    FULL = "full"


class DayNightConvention(str, Enum):
    """
    Two day/night boundaries are in use:

    - PLANT_CYCLE: day is 23:00-16:59, night is 17:00-22:59 (default)
    - SIMPLE: day is 06:00-16:59, everything else is night
    """
    PLANT_CYCLE = "plant_cycle"
    SIMPLE = "simple"


class BlockScheme(str, Enum):
    FIVE_BLOCK = "five_block"
    TWO_BLOCK = "two_block"


class TimeBlock(str, Enum):
    DAWN_COLD = "dawn_cold"
    NIGHT_DEEP = "night_deep"
    MORNING = "morning"
    DAY_ACTIVE = "day_active"
    NIGHT_PLANT = "night_plant"
    DAY = "day"
    NIGHT = "night"


class ThermalStage(str, Enum):
    WARMING = "warming"
    STABLE_DAY = "stable_day"
    COOLING = "cooling"
    STABLE_NIGHT = "stable_night"


# ----------------- Block tables: half-open [start, end) hour ranges ----------------- #

# start > end means the range wraps past midnight
BLOCK_HOURS: Dict[BlockScheme, Dict[TimeBlock, Tuple[int, int]]] = {
    BlockScheme.FIVE_BLOCK: {
        TimeBlock.DAWN_COLD: (23, 2),
        TimeBlock.NIGHT_DEEP: (2, 8),
        TimeBlock.MORNING: (8, 12),
        TimeBlock.DAY_ACTIVE: (12, 17),
        TimeBlock.NIGHT_PLANT: (17, 23),
    },
    BlockScheme.TWO_BLOCK: {
        TimeBlock.DAY: (23, 17),
        TimeBlock.NIGHT: (17, 23),
    },
}

DAY_HOURS: Dict[DayNightConvention, Tuple[int, int]] = {
    DayNightConvention.PLANT_CYCLE: (23, 17),
    DayNightConvention.SIMPLE: (6, 17),
}

THERMAL_STAGE_HOURS: Dict[ThermalStage, Tuple[int, int]] = {
    ThermalStage.WARMING: (5, 10),
    ThermalStage.STABLE_DAY: (10, 14),
    ThermalStage.COOLING: (14, 21),
    ThermalStage.STABLE_NIGHT: (21, 5),
}

# Display metadata for the UI (label, hours text under PLANT_CYCLE)
BLOCK_LABELS = {
    TimeBlock.DAWN_COLD: ("Cold dawn", "23:00-01:59"),
    TimeBlock.NIGHT_DEEP: ("Deep night", "02:00-07:59"),
    TimeBlock.MORNING: ("Morning", "08:00-11:59"),
    TimeBlock.DAY_ACTIVE: ("Active day", "12:00-16:59"),
    TimeBlock.NIGHT_PLANT: ("Plant night", "17:00-22:59"),
    TimeBlock.DAY: ("Day", "23:00-16:59"),
    TimeBlock.NIGHT: ("Night", "17:00-22:59"),
}


def _check_hour(hour) -> int:
    if isinstance(hour, bool) or not isinstance(hour, numbers.Integral) or not 0 <= hour <= 23:
        raise ValueError(f"hour must be an integer between 0 and 23, got {hour!r}")
    return int(hour)


def hour_in_range(hour: int, start: int, end: int) -> bool:
    """True when hour is in the half-open range [start, end), wrapping past midnight if start > end."""
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


def _lookup(hour: int, table: dict):
    for key, (start, end) in table.items():
        if hour_in_range(hour, start, end):
            return key
    raise ValueError(f"hour {hour} is not covered by any range")


def _check_partition(table: dict, name: str):
    seen = {}
    for key, (start, end) in table.items():
        for hour in range(24):
            if hour_in_range(hour, start, end):
                if hour in seen:
                    raise ValueError(f"{name}: hour {hour} is in both {seen[hour]} and {key}")
                seen[hour] = key
    missing = sorted(set(range(24)) - set(seen))
    if missing:
        raise ValueError(f"{name}: hours {missing} are not covered")


def block_table(
    scheme: BlockScheme = BlockScheme.FIVE_BLOCK,
    convention: DayNightConvention = DayNightConvention.PLANT_CYCLE,
) -> Dict[TimeBlock, Tuple[int, int]]:
    """Hour ranges for scheme; the two-block day is the convention's day window."""
    scheme = BlockScheme(scheme)
    if scheme == BlockScheme.TWO_BLOCK:
        start, end = DAY_HOURS[DayNightConvention(convention)]
        return {TimeBlock.DAY: (start, end), TimeBlock.NIGHT: (end, start)}
    return BLOCK_HOURS[scheme]


for _scheme, _table in BLOCK_HOURS.items():
    _check_partition(_table, _scheme.value)
for _convention in DayNightConvention:
    _check_partition(block_table(BlockScheme.TWO_BLOCK, _convention), f"two_block/{_convention.value}")
_check_partition(THERMAL_STAGE_HOURS, "thermal stages")


# ----------------- Classification ----------------- #

def classify_period(hour: int, convention: DayNightConvention = DayNightConvention.PLANT_CYCLE) -> Period:
    start, end = DAY_HOURS[DayNightConvention(convention)]
    if hour_in_range(_check_hour(hour), start, end):
        return Period.DAY
    return Period.NIGHT


def classify_block(
    hour: int,
    scheme: BlockScheme = BlockScheme.FIVE_BLOCK,
    convention: DayNightConvention = DayNightConvention.PLANT_CYCLE,
) -> TimeBlock:
    return _lookup(_check_hour(hour), block_table(scheme, convention))


def classify_thermal_stage(hour: int) -> ThermalStage:
    return _lookup(_check_hour(hour), THERMAL_STAGE_HOURS)


def blocks_for(scheme: BlockScheme = BlockScheme.FIVE_BLOCK) -> List[TimeBlock]:
    return list(BLOCK_HOURS[BlockScheme(scheme)])


def scheme_of(block: TimeBlock) -> BlockScheme:
    for scheme, table in BLOCK_HOURS.items():
        if block in table:
            return scheme
    raise ValueError(f"unknown time block: {block!r}")


def block_hours(
    block: TimeBlock,
    scheme: Optional[BlockScheme] = None,
    convention: DayNightConvention = DayNightConvention.PLANT_CYCLE,
) -> List[int]:
    """Sorted list of the hours that belong to block."""
    block = TimeBlock(block)
    scheme = scheme or scheme_of(block)
    start, end = block_table(scheme, convention)[block]
    return [h for h in range(24) if hour_in_range(h, start, end)]


def block_label(block: TimeBlock, convention: DayNightConvention = DayNightConvention.PLANT_CYCLE) -> str:
    """e.g. "Morning (08:00-11:59)"."""
    block = TimeBlock(block)
    start, end = block_table(scheme_of(block), convention)[block]
    return f"{BLOCK_LABELS[block][0]} ({start:02d}:00-{(end - 1) % 24:02d}:59)"
