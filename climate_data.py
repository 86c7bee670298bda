# climate_data.py

import io
import json
import logging
import math
import numbers
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

import psychrometrics
from crop_config import ISLAND_IDS

logger = logging.getLogger(__name__)


EXCEL_EPOCH = datetime(1899, 12, 30)

SEEDLING_SECTOR = "Almacigo"
SEEDLING_ISLANDS = ("I1", "I2", "I3", "I4")

# Excel column names, one set per island id
TEMPERATURE_COLUMN = "{} Temperatura Promedio"
HUMIDITY_COLUMN = "{} Humedad Promedio"
VPD_COLUMN = "{} VPD"
LIGHT_COLUMN = "{} Estado Luz"
CO2_COLUMN = "CO2 Promedio"
WEEK_COLUMN = "Week Number"
TIME_COLUMN = "Time"


# ----------------- Record types ----------------- #

@dataclass(frozen=True)
class IslandReading:
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    vpd: Optional[float] = None


@dataclass(frozen=True)
class EnvironmentalRecord:
    """
    One timestamp of a day's series. `hour` is what the classifiers use;
    it comes from the source when the source provides it.
    """
    timestamp: datetime
    hour: int
    minute: int = 0
    islands: Dict[str, IslandReading] = field(default_factory=dict)
    dehumidifiers: Dict[str, float] = field(default_factory=dict)
    light_status: Dict[str, float] = field(default_factory=dict)
    co2: Optional[float] = None
    week_number: Optional[int] = None


@dataclass
class VPDDataset:
    metadata: Dict[str, Any]
    records: List[EnvironmentalRecord]
    statistics: Dict[str, Any] = field(default_factory=dict)

    @property
    def island_ids(self) -> List[str]:
        islands = self.metadata.get("islands")
        if islands:
            return list(islands)
        seen = []
        for record in self.records:
            for island_id in record.islands:
                if island_id not in seen:
                    seen.append(island_id)
        return sorted(seen)

    @property
    def sector(self) -> str:
        return self.metadata.get("sector") or "Default"


# ----------------- Value helpers ----------------- #

def _to_float(value) -> Optional[float]:
    """Numeric value or None; NaN and blanks count as missing."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def make_reading(temperature, humidity, vpd=None) -> Optional[IslandReading]:
    """
    Build an IslandReading. A stored VPD is kept as-is; it is computed only
    when missing and both temperature and humidity are present.
    Returns None when the island has no data at all.
    """
    temperature = _to_float(temperature)
    humidity = _to_float(humidity)
    vpd = _to_float(vpd)

    if vpd is None and temperature is not None and humidity is not None:
        vpd = psychrometrics.vpd(temperature, humidity)

    if temperature is None and humidity is None and vpd is None:
        return None
    return IslandReading(temperature=temperature, humidity=humidity, vpd=vpd)


def excel_serial_to_datetime(serial: float) -> datetime:
    """
    Convert an Excel serial day count (days since 1899-12-30) to a naive
    local datetime, rounded to the nearest second. No timezone shift.
    """
    seconds = round(float(serial) * 86400.0)
    return EXCEL_EPOCH + timedelta(seconds=seconds)


def _parse_time(value) -> datetime:
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return excel_serial_to_datetime(value)
    ts = pd.Timestamp(value)
    # Drop any offset without converting: the wall-clock time is what counts
    return ts.tz_localize(None).to_pydatetime() if ts.tzinfo is not None else ts.to_pydatetime()


# ----------------- JSON documents ----------------- #

def record_from_dict(raw: dict) -> EnvironmentalRecord:
    """Build a record from one entry of a JSON document's `data` list."""
    timestamp = _parse_time(raw["time"])

    hour = raw.get("hour")
    hour = int(hour) if hour is not None else timestamp.hour
    minute = raw.get("minute")
    minute = int(minute) if minute is not None else timestamp.minute

    islands = {}
    for island_id, values in (raw.get("islands") or {}).items():
        if not isinstance(values, dict):
            continue
        reading = make_reading(values.get("temperature"), values.get("humidity"), values.get("vpd"))
        if reading is not None:
            islands[island_id] = reading

    dehumidifiers = {
        unit: watts
        for unit, watts in ((u, _to_float(w)) for u, w in (raw.get("dehumidifiers") or {}).items())
        if watts is not None
    }
    light_status = {
        island_id: value
        for island_id, value in ((i, _to_float(v)) for i, v in (raw.get("lightStatus") or {}).items())
        if value is not None
    }
    week_number = _to_float(raw.get("weekNumber"))

    return EnvironmentalRecord(
        timestamp=timestamp,
        hour=hour,
        minute=minute,
        islands=islands,
        dehumidifiers=dehumidifiers,
        light_status=light_status,
        co2=_to_float(raw.get("co2")),
        week_number=int(week_number) if week_number is not None else None,
    )


def parse_dataset(document: dict) -> VPDDataset:
    if not isinstance(document, dict) or not isinstance(document.get("data"), list):
        raise ValueError("VPD document must be an object with a 'data' list")

    records = [record_from_dict(raw) for raw in document["data"]]
    metadata = dict(document.get("metadata") or {})
    metadata.setdefault("totalRecords", len(records))
    return VPDDataset(metadata=metadata, records=records, statistics=document.get("statistics") or {})


def load_json_dataset(source) -> VPDDataset:
    """
    Load a precomputed `{metadata, data, statistics}` document.
    source may be a path, a JSON string, bytes or a file-like object.
    """
    try:
        if hasattr(source, "read"):
            content = source.read()
            if isinstance(content, bytes):
                content = content.decode("utf-8")
            document = json.loads(content)
        elif isinstance(source, bytes):
            document = json.loads(source.decode("utf-8"))
        elif isinstance(source, str) and source.lstrip().startswith("{"):
            document = json.loads(source)
        else:
            with open(source, "r", encoding="utf-8") as f:
                document = json.load(f)
    except (OSError, ValueError) as e:
        raise ValueError(f"Could not read VPD data: {e}")

    dataset = parse_dataset(document)
    logger.info(f"Loaded {len(dataset.records)} records from JSON")
    return dataset


# ----------------- Excel workbooks ----------------- #

def _excel_source(source):
    # pandas wants a path or a seekable buffer; uploads give raw bytes
    if isinstance(source, (bytes, bytearray)):
        return io.BytesIO(source)
    if hasattr(source, "seek"):
        source.seek(0)
    return source


def available_sectors(source) -> List[str]:
    """Sheet names of the workbook; one sheet per sector."""
    try:
        workbook = pd.ExcelFile(_excel_source(source), engine="openpyxl")
    except Exception as e:
        raise ValueError(f"Could not read Excel file: {e}")
    return list(workbook.sheet_names)


def _read_sector(source, sector: str) -> pd.DataFrame:
    sectors = available_sectors(source)
    if sector not in sectors:
        raise ValueError(f"Sector {sector!r} not found in workbook (available: {sectors})")
    df = pd.read_excel(_excel_source(source), sheet_name=sector, engine="openpyxl")
    if TIME_COLUMN not in df.columns:
        raise ValueError(f"Sector {sector!r} has no {TIME_COLUMN!r} column")
    return df.dropna(subset=[TIME_COLUMN])


def available_dates(source, sector: str) -> List[str]:
    """Sorted unique YYYY-MM-DD dates present in a sector sheet."""
    df = _read_sector(source, sector)
    dates = {_parse_time(value).date().isoformat() for value in df[TIME_COLUMN]}
    return sorted(dates)


def workbook_index(source) -> Dict[str, List[str]]:
    """Sector -> available dates for every sheet; unreadable sheets map to []."""
    index = {}
    for sector in available_sectors(source):
        try:
            index[sector] = available_dates(source, sector)
        except ValueError as e:
            logger.warning(f"Skipping sector {sector!r}: {e}")
            index[sector] = []
    return index


def islands_for_sector(sector: str) -> tuple:
    return SEEDLING_ISLANDS if sector == SEEDLING_SECTOR else ISLAND_IDS


def record_from_row(row: dict, island_ids) -> EnvironmentalRecord:
    timestamp = _parse_time(row[TIME_COLUMN])

    islands = {}
    light_status = {}
    for island_id in island_ids:
        reading = make_reading(
            row.get(TEMPERATURE_COLUMN.format(island_id)),
            row.get(HUMIDITY_COLUMN.format(island_id)),
            row.get(VPD_COLUMN.format(island_id)),
        )
        if reading is not None:
            islands[island_id] = reading
        light = _to_float(row.get(LIGHT_COLUMN.format(island_id)))
        if light is not None:
            light_status[island_id] = light

    week_number = _to_float(row.get(WEEK_COLUMN))
    return EnvironmentalRecord(
        timestamp=timestamp,
        hour=timestamp.hour,
        minute=timestamp.minute,
        islands=islands,
        light_status=light_status,
        co2=_to_float(row.get(CO2_COLUMN)),
        week_number=int(week_number) if week_number is not None else None,
    )


def load_excel_dataset(source, sector: str, day: Optional[str] = None) -> VPDDataset:
    """
    Convert one sector sheet of the weekly workbook into a VPDDataset.

    day (YYYY-MM-DD) restricts the result to a single calendar day.
    """
    df = _read_sector(source, sector)
    island_ids = islands_for_sector(sector)

    records = [record_from_row(row, island_ids) for row in df.to_dict(orient="records")]
    if day is not None:
        target = date.fromisoformat(day)
        records = [r for r in records if r.timestamp.date() == target]

    metadata = {
        "date": records[0].timestamp.date().isoformat() if records else "",
        "endDate": records[-1].timestamp.date().isoformat() if records else "",
        "sector": sector,
        "totalRecords": len(records),
        "timeInterval": "5 minutes",
        "islands": list(island_ids),
    }
    logger.info(f"Loaded {len(records)} records for sector {sector} ({day or 'all days'})")
    return VPDDataset(metadata=metadata, records=records)


# ----------------- Stored VPD validation ----------------- #

def find_vpd_discrepancies(records: List[EnvironmentalRecord], tolerance: float = 0.05) -> List[dict]:
    """
    List samples whose stored VPD differs from the VPD computed from the same
    sample's temperature and humidity by more than tolerance (kPa).
    Stored values are never replaced.
    """
    issues = []
    for record in records:
        for island_id, reading in record.islands.items():
            if reading.vpd is None or reading.temperature is None or reading.humidity is None:
                continue
            computed = psychrometrics.vpd(reading.temperature, reading.humidity)
            if abs(computed - reading.vpd) > tolerance:
                issues.append({
                    "time": record.timestamp,
                    "island": island_id,
                    "stored_vpd": reading.vpd,
                    "computed_vpd": computed,
                    "difference": reading.vpd - computed,
                })
    return issues


# ----------------- Dataset cache ----------------- #

class DatasetCache:
    """
    Holds the last loaded value (a dataset or a workbook index) for
    ttl_seconds. Pass one instance to whatever needs the data; call
    invalidate() to force a reload.
    """

    def __init__(self, loader: Callable[[], Any], ttl_seconds: float = 300.0,
                 clock: Callable[[], float] = time.monotonic):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._data: Any = None
        self._loaded_at: Optional[float] = None

    def get(self) -> Any:
        now = self.clock()
        if self._data is not None and now - self._loaded_at < self.ttl_seconds:
            logger.debug("Cache hit")
            return self._data

        self._data = self.loader()
        self._loaded_at = now
        return self._data

    def invalidate(self):
        self._data = None
        self._loaded_at = None
