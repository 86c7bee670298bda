# crop_config.py

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


# -----------------------------
# Crop types, bands and defaults
# -----------------------------

class CropType(str, Enum):
    BASIL = "basil"
    LETTUCE = "lettuce"
    MIXED = "mixed"


WEEKS = (0, 1, 2, 3)  # 0 = unplanted

ISLAND_IDS = ("I1", "I2", "I3", "I4", "I5", "I6")


@dataclass(frozen=True)
class VPDBand:
    optimal_min: float
    optimal_max: float
    acceptable_min: float
    acceptable_max: float

    @property
    def target(self) -> float:
        """Midpoint of the optimal band."""
        return (self.optimal_min + self.optimal_max) / 2.0

    def is_ordered(self) -> bool:
        return self.acceptable_min <= self.optimal_min <= self.optimal_max <= self.acceptable_max

    def label(self) -> str:
        return f"{self.optimal_min:.2f}-{self.optimal_max:.2f}"


@dataclass(frozen=True)
class IslandAssignment:
    crop_type: CropType
    week: int

    @property
    def planted(self) -> bool:
        return self.week != 0


UNPLANTED_BAND = VPDBand(0.5, 1.5, 0.3, 2.0)

CROP_LABELS = {
    CropType.BASIL: "Basil",
    CropType.LETTUCE: "Lettuce",
    CropType.MIXED: "Mixed",
}

# (crop, week) -> (band, focus)
VPD_BANDS: Dict[Tuple[CropType, int], Tuple[VPDBand, str]] = {
    (CropType.BASIL, 0): (UNPLANTED_BAND, "No crop"),
    (CropType.BASIL, 1): (VPDBand(1.05, 1.15, 1.00, 1.20), "Basil germination"),
    (CropType.BASIL, 2): (VPDBand(0.95, 1.10, 0.90, 1.15), "Vegetative growth"),
    (CropType.BASIL, 3): (VPDBand(0.85, 1.05, 0.80, 1.10), "Peak aromatic production"),
    (CropType.LETTUCE, 0): (UNPLANTED_BAND, "No crop"),
    (CropType.LETTUCE, 1): (VPDBand(0.95, 1.05, 0.90, 1.10), "Lettuce germination"),
    (CropType.LETTUCE, 2): (VPDBand(0.85, 0.95, 0.80, 1.00), "Leaf formation"),
    (CropType.LETTUCE, 3): (VPDBand(0.75, 0.90, 0.70, 0.95), "Compact head"),
    (CropType.MIXED, 0): (UNPLANTED_BAND, "No crop"),
    (CropType.MIXED, 1): (VPDBand(1.00, 1.10, 0.95, 1.15), "General establishment"),
    (CropType.MIXED, 2): (VPDBand(0.90, 1.00, 0.85, 1.05), "Balanced development"),
    (CropType.MIXED, 3): (VPDBand(0.80, 0.95, 0.75, 1.00), "Mixed production"),
}

DEFAULT_ASSIGNMENTS: Dict[str, IslandAssignment] = {
    "I1": IslandAssignment(CropType.BASIL, 3),
    "I2": IslandAssignment(CropType.BASIL, 2),
    "I3": IslandAssignment(CropType.MIXED, 1),
    "I4": IslandAssignment(CropType.MIXED, 3),
    "I5": IslandAssignment(CropType.MIXED, 0),
    "I6": IslandAssignment(CropType.MIXED, 1),
}


def validate_band_table(table: dict):
    """Fail fast when a (crop, week) pair is missing or a band is out of order."""
    for crop in CropType:
        for week in WEEKS:
            if (crop, week) not in table:
                raise ValueError(f"VPD band table is missing {crop.value} week {week}")
            band, _ = table[(crop, week)]
            if not band.is_ordered():
                raise ValueError(f"VPD band for {crop.value} week {week} is not ordered: {band}")


validate_band_table(VPD_BANDS)


def parse_crop_type(value) -> CropType:
    try:
        return CropType(value)
    except ValueError:
        raise ValueError(f"Unknown crop type {value!r}; expected one of {[c.value for c in CropType]}")


def parse_week(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value not in WEEKS:
        raise ValueError(f"Growth week must be one of {WEEKS}, got {value!r}")
    return value


def get_band(crop_type, week: int) -> VPDBand:
    return VPD_BANDS[(parse_crop_type(crop_type), parse_week(week))][0]


def get_focus(crop_type, week: int) -> str:
    return VPD_BANDS[(parse_crop_type(crop_type), parse_week(week))][1]


def band_for_assignment(assignment: IslandAssignment) -> VPDBand:
    return get_band(assignment.crop_type, assignment.week)


def average_band(bands: Iterable[VPDBand]) -> Optional[VPDBand]:
    """
    Mean of each bound across several bands, for charts that show more than
    one island against a single reference band. None for no bands.
    """
    bands = list(bands)
    if not bands:
        return None
    n = len(bands)
    return VPDBand(
        optimal_min=sum(b.optimal_min for b in bands) / n,
        optimal_max=sum(b.optimal_max for b in bands) / n,
        acceptable_min=sum(b.acceptable_min for b in bands) / n,
        acceptable_max=sum(b.acceptable_max for b in bands) / n,
    )


# ---------------------------------
# Key-value backends
# ---------------------------------

class MemoryBackend:
    def __init__(self, initial: Optional[dict] = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str):
        self._data[key] = value

    def delete(self, key: str):
        self._data.pop(key, None)


class JsonFileBackend:
    """Stores each key as a top-level entry of one JSON file on disk."""

    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _write_all(self, data: dict):
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str):
        try:
            data = self._read_all()
        except ValueError as e:
            logger.warning(f"Overwriting unreadable config file {self.path}: {e}")
            data = {}
        data[key] = value
        self._write_all(data)

    def delete(self, key: str):
        try:
            data = self._read_all()
        except ValueError as e:
            logger.warning(f"Could not read config file {self.path}: {e}")
            return
        if key in data:
            del data[key]
            self._write_all(data)


# ---------------------------------
# Island configuration store
# ---------------------------------

class IslandConfigStore:
    """
    Per-sector crop/week assignments persisted under a single key as

        {sector: {island_id: {"cropType": "basil", "week": 3}}}

    Reads never raise: unreadable or malformed data is logged and treated as
    absent, so callers fall back to DEFAULT_ASSIGNMENTS.
    """

    STORAGE_KEY = "vpd_island_configs"

    def __init__(self, backend=None):
        self.backend = backend if backend is not None else MemoryBackend()

    # ---------- raw map ----------

    def _load(self) -> dict:
        try:
            raw = self.backend.get(self.STORAGE_KEY)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read island configs: {e}")
            return {}
        if not raw:
            return {}
        try:
            configs = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Stored island configs are not valid JSON, ignoring them: {e}")
            return {}
        if not isinstance(configs, dict):
            logger.warning("Stored island configs are not a JSON object, ignoring them")
            return {}
        return configs

    def _save(self, configs: dict):
        self.backend.set(self.STORAGE_KEY, json.dumps(configs, sort_keys=True))

    @staticmethod
    def _parse_entry(sector: str, island_id: str, entry) -> Optional[IslandAssignment]:
        if not isinstance(entry, dict):
            logger.warning(f"Ignoring malformed config for {sector}/{island_id}: {entry!r}")
            return None
        try:
            return IslandAssignment(parse_crop_type(entry.get("cropType")), parse_week(entry.get("week")))
        except ValueError as e:
            logger.warning(f"Ignoring invalid config for {sector}/{island_id}: {e}")
            return None

    # ---------- public API ----------

    def get(self, sector: str, island_id: str) -> Optional[IslandAssignment]:
        sector_config = self._load().get(sector)
        if not isinstance(sector_config, dict) or island_id not in sector_config:
            return None
        return self._parse_entry(sector, island_id, sector_config[island_id])

    def get_sector(self, sector: str) -> Dict[str, IslandAssignment]:
        sector_config = self._load().get(sector)
        if not isinstance(sector_config, dict):
            return {}
        result = {}
        for island_id, entry in sector_config.items():
            assignment = self._parse_entry(sector, island_id, entry)
            if assignment is not None:
                result[island_id] = assignment
        return result

    def all_configs(self) -> Dict[str, Dict[str, IslandAssignment]]:
        return {sector: self.get_sector(sector) for sector in self._load()}

    def set(self, sector: str, island_id: str, crop_type, week: int):
        assignment = IslandAssignment(parse_crop_type(crop_type), parse_week(week))

        configs = self._load()
        sector_config = configs.get(sector)
        if not isinstance(sector_config, dict):
            sector_config = {}
        sector_config[island_id] = {"cropType": assignment.crop_type.value, "week": assignment.week}
        configs[sector] = sector_config

        self._save(configs)
        logger.info(f"Saved config for {sector}/{island_id}: {assignment.crop_type.value} week {assignment.week}")

    def clear(self, sector: str):
        configs = self._load()
        if sector in configs:
            del configs[sector]
            self._save(configs)
            logger.info(f"Cleared island configs for {sector}")

    def clear_all(self):
        self.backend.delete(self.STORAGE_KEY)
        logger.info("Cleared all island configs")

    def resolve(self, sector: str, island_id: str) -> IslandAssignment:
        """Stored assignment, or the built-in default for the island."""
        stored = self.get(sector, island_id)
        if stored is not None:
            return stored
        return DEFAULT_ASSIGNMENTS.get(island_id, IslandAssignment(CropType.MIXED, 0))

    def resolve_sector(self, sector: str, island_ids: Iterable[str] = ISLAND_IDS) -> Dict[str, IslandAssignment]:
        return {island_id: self.resolve(sector, island_id) for island_id in island_ids}

    def bands_for_sector(self, sector: str, island_ids: Iterable[str] = ISLAND_IDS) -> Dict[str, VPDBand]:
        return {
            island_id: band_for_assignment(assignment)
            for island_id, assignment in self.resolve_sector(sector, island_ids).items()
        }
