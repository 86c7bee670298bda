import json
import logging

import pytest

from crop_config import (
    DEFAULT_ASSIGNMENTS,
    UNPLANTED_BAND,
    VPD_BANDS,
    WEEKS,
    CropType,
    IslandAssignment,
    IslandConfigStore,
    JsonFileBackend,
    MemoryBackend,
    VPDBand,
    average_band,
    band_for_assignment,
    get_band,
    get_focus,
    parse_week,
    validate_band_table,
)


SECTOR = "Sector 1"


def _store_with(raw):
    return IslandConfigStore(MemoryBackend({IslandConfigStore.STORAGE_KEY: raw}))


def test_every_crop_week_has_an_ordered_band():
    for crop in CropType:
        for week in WEEKS:
            band = get_band(crop, week)
            assert band.is_ordered()
            assert band.optimal_min < band.optimal_max


def test_week_zero_is_unplanted_band():
    for crop in CropType:
        assert get_band(crop, 0) == UNPLANTED_BAND


def test_band_lookup_examples():
    band = get_band(CropType.BASIL, 1)
    assert (band.optimal_min, band.optimal_max) == (1.05, 1.15)
    assert band.target == pytest.approx(1.10)
    assert get_band("lettuce", 3).optimal_max == 0.90
    assert get_focus("mixed", 2) == "Balanced development"


def test_validate_band_table_rejects_missing_and_unordered():
    missing = dict(VPD_BANDS)
    del missing[(CropType.LETTUCE, 2)]
    with pytest.raises(ValueError):
        validate_band_table(missing)

    unordered = dict(VPD_BANDS)
    unordered[(CropType.BASIL, 1)] = (VPDBand(1.2, 1.1, 1.0, 1.3), "bad")
    with pytest.raises(ValueError):
        validate_band_table(unordered)


@pytest.mark.parametrize("bad", [4, -1, True, "1", 1.0])
def test_parse_week_rejects_bad_values(bad):
    with pytest.raises(ValueError):
        parse_week(bad)


def test_unknown_crop_raises():
    with pytest.raises(ValueError):
        get_band("tomato", 1)


def test_average_band():
    assert average_band([]) is None
    band = average_band([VPDBand(0.8, 1.0, 0.7, 1.1), VPDBand(1.0, 1.2, 0.9, 1.3)])
    assert band.optimal_min == pytest.approx(0.9)
    assert band.optimal_max == pytest.approx(1.1)
    assert band.acceptable_min == pytest.approx(0.8)
    assert band.acceptable_max == pytest.approx(1.2)


def test_store_set_get_and_serialized_shape():
    backend = MemoryBackend()
    store = IslandConfigStore(backend)

    store.set(SECTOR, "I1", "basil", 2)

    assert store.get(SECTOR, "I1") == IslandAssignment(CropType.BASIL, 2)
    assert json.loads(backend.get(IslandConfigStore.STORAGE_KEY)) == {
        SECTOR: {"I1": {"cropType": "basil", "week": 2}}
    }


def test_store_set_rejects_invalid_input():
    store = IslandConfigStore()
    with pytest.raises(ValueError):
        store.set(SECTOR, "I1", "tomato", 1)
    with pytest.raises(ValueError):
        store.set(SECTOR, "I1", "basil", 5)
    assert store.get(SECTOR, "I1") is None


def test_store_last_write_wins():
    store = IslandConfigStore()
    store.set(SECTOR, "I1", "basil", 1)
    store.set(SECTOR, "I1", "lettuce", 3)
    assert store.get(SECTOR, "I1") == IslandAssignment(CropType.LETTUCE, 3)


def test_resolve_falls_back_to_defaults():
    store = IslandConfigStore()
    assert store.resolve(SECTOR, "I1") == DEFAULT_ASSIGNMENTS["I1"]
    assert store.resolve(SECTOR, "I9") == IslandAssignment(CropType.MIXED, 0)

    store.set(SECTOR, "I1", "lettuce", 1)
    assert store.resolve(SECTOR, "I1") == IslandAssignment(CropType.LETTUCE, 1)
    assert store.resolve("Other", "I1") == DEFAULT_ASSIGNMENTS["I1"]


def test_bands_for_sector_uses_assignments():
    store = IslandConfigStore()
    store.set(SECTOR, "I2", "lettuce", 3)
    bands = store.bands_for_sector(SECTOR, ["I1", "I2"])
    assert bands["I1"] == band_for_assignment(DEFAULT_ASSIGNMENTS["I1"])
    assert bands["I2"] == get_band("lettuce", 3)


def test_malformed_json_is_treated_as_absent(caplog):
    store = _store_with("{not json")
    with caplog.at_level(logging.WARNING, logger="crop_config"):
        assert store.get(SECTOR, "I1") is None
        assert store.resolve(SECTOR, "I1") == DEFAULT_ASSIGNMENTS["I1"]
    assert "not valid JSON" in caplog.text


def test_wrong_shapes_are_skipped(caplog):
    raw = json.dumps({
        SECTOR: {
            "I1": {"cropType": "tomato", "week": 1},
            "I2": {"cropType": "basil", "week": 2},
            "I3": {"cropType": "basil", "week": 9},
            "I4": "basil",
        },
        "Broken": ["I1"],
    })
    store = _store_with(raw)

    with caplog.at_level(logging.WARNING, logger="crop_config"):
        assert store.get_sector(SECTOR) == {"I2": IslandAssignment(CropType.BASIL, 2)}
        assert store.get_sector("Broken") == {}
        assert store.resolve(SECTOR, "I3") == DEFAULT_ASSIGNMENTS["I3"]
    assert "I1" in caplog.text


def test_non_object_payload_is_ignored():
    store = _store_with(json.dumps([1, 2, 3]))
    assert store.all_configs() == {}


def test_clear_and_clear_all():
    store = IslandConfigStore()
    store.set(SECTOR, "I1", "basil", 1)
    store.set("Almacigo", "I1", "lettuce", 1)

    store.clear(SECTOR)
    assert store.get(SECTOR, "I1") is None
    assert store.get("Almacigo", "I1") == IslandAssignment(CropType.LETTUCE, 1)

    store.clear_all()
    assert store.all_configs() == {}


def test_json_file_backend_persists(tmp_path):
    path = tmp_path / "configs" / "islands.json"
    IslandConfigStore(JsonFileBackend(str(path))).set(SECTOR, "I4", "mixed", 2)

    reopened = IslandConfigStore(JsonFileBackend(str(path)))
    assert reopened.get(SECTOR, "I4") == IslandAssignment(CropType.MIXED, 2)
    assert reopened.all_configs() == {SECTOR: {"I4": IslandAssignment(CropType.MIXED, 2)}}


def test_json_file_backend_recovers_from_corrupt_file(tmp_path, caplog):
    path = tmp_path / "islands.json"
    path.write_text("this is not json", encoding="utf-8")
    store = IslandConfigStore(JsonFileBackend(str(path)))

    with caplog.at_level(logging.WARNING, logger="crop_config"):
        assert store.get(SECTOR, "I1") is None
        store.set(SECTOR, "I1", "basil", 3)

    assert store.get(SECTOR, "I1") == IslandAssignment(CropType.BASIL, 3)
    assert caplog.records
