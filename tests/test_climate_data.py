import io
import json
from datetime import datetime

import pandas as pd
import pytest

from climate_data import (
    DatasetCache,
    IslandReading,
    available_dates,
    available_sectors,
    excel_serial_to_datetime,
    find_vpd_discrepancies,
    load_excel_dataset,
    load_json_dataset,
    make_reading,
    workbook_index,
    parse_dataset,
)
from psychrometrics import vpd


DOCUMENT = {
    "metadata": {"date": "2024-05-01", "sector": "Sector 1", "timeInterval": "5 minutes"},
    "data": [
        {
            "time": "2024-05-01T23:30:00Z",
            "hour": 5,
            "minute": 30,
            "islands": {
                "I1": {"temperature": 20.0, "humidity": 70.0},
                "I2": {"temperature": 22.0, "humidity": 60.0, "vpd": 1.23},
                "I3": {"temperature": None, "humidity": None, "vpd": None},
            },
            "dehumidifiers": {"I1_Oriente": 1200, "I1_Poniente": 800},
            "weekNumber": 18,
        },
        {
            "time": "2024-05-01T23:35:00",
            "islands": {"I1": {"temperature": 20.5, "humidity": 68.0, "vpd": 0.77}},
        },
    ],
    "statistics": {},
}


def test_excel_serial_to_datetime():
    assert excel_serial_to_datetime(45000.5) == datetime(2023, 3, 15, 12, 0, 0)
    assert excel_serial_to_datetime(45000 + 0.6 / 86400) == datetime(2023, 3, 15, 0, 0, 1)


def test_make_reading_keeps_stored_vpd():
    reading = make_reading(22.0, 60.0, 1.23)
    assert reading.vpd == 1.23


def test_make_reading_computes_missing_vpd():
    reading = make_reading(20.0, 70.0)
    assert reading.vpd == pytest.approx(vpd(20.0, 70.0))


def test_make_reading_handles_partial_and_empty():
    assert make_reading(None, None, None) is None
    assert make_reading(float("nan"), "", None) is None
    assert make_reading(21.0, None) == IslandReading(temperature=21.0, humidity=None, vpd=None)


def test_parse_dataset_trusts_document_hour():
    dataset = parse_dataset(DOCUMENT)
    first, second = dataset.records

    assert first.hour == 5
    assert first.minute == 30
    assert first.timestamp == datetime(2024, 5, 1, 23, 30)
    assert second.hour == 23
    assert second.minute == 35


def test_parse_dataset_readings():
    first = parse_dataset(DOCUMENT).records[0]

    assert set(first.islands) == {"I1", "I2"}
    assert first.islands["I1"].vpd == pytest.approx(0.7015, abs=1e-3)
    assert first.islands["I2"].vpd == 1.23
    assert first.dehumidifiers == {"I1_Oriente": 1200.0, "I1_Poniente": 800.0}
    assert first.week_number == 18


def test_dataset_properties():
    dataset = parse_dataset(DOCUMENT)
    assert dataset.sector == "Sector 1"
    assert dataset.island_ids == ["I1", "I2"]
    assert dataset.metadata["totalRecords"] == 2


def test_load_json_dataset_sources(tmp_path):
    text = json.dumps(DOCUMENT)
    path = tmp_path / "vpd.json"
    path.write_text(text, encoding="utf-8")

    for source in (text, text.encode("utf-8"), io.StringIO(text), io.BytesIO(text.encode("utf-8")), str(path)):
        assert len(load_json_dataset(source).records) == 2


def test_load_json_dataset_errors(tmp_path):
    with pytest.raises(ValueError):
        load_json_dataset(str(tmp_path / "missing.json"))
    with pytest.raises(ValueError):
        load_json_dataset("{broken")
    with pytest.raises(ValueError):
        load_json_dataset(json.dumps({"metadata": {}}))


def test_find_vpd_discrepancies_flags_inconsistent_samples():
    records = parse_dataset(DOCUMENT).records
    issues = find_vpd_discrepancies(records)

    assert [(i["island"], i["time"].minute) for i in issues] == [("I2", 30)]
    assert issues[0]["stored_vpd"] == 1.23
    assert issues[0]["computed_vpd"] == pytest.approx(vpd(22.0, 60.0))


def test_dataset_cache_ttl_and_invalidate():
    calls = []
    now = [0.0]

    def loader():
        calls.append(now[0])
        return parse_dataset(DOCUMENT)

    cache = DatasetCache(loader, ttl_seconds=300, clock=lambda: now[0])

    first = cache.get()
    now[0] = 299.0
    assert cache.get() is first
    assert len(calls) == 1

    now[0] = 300.0
    cache.get()
    assert len(calls) == 2

    cache.invalidate()
    cache.get()
    assert len(calls) == 3


def _workbook(path):
    base = 45000.0  # 2023-03-15
    times = [base + 23 / 24, base + 1 + 0.5 / 24, base + 1 + 12 / 24]
    seedlings = pd.DataFrame({
        "Time": times,
        "I1 Temperatura Promedio": [19.0, 20.0, 24.0],
        "I1 Humedad Promedio": [80.0, 75.0, 60.0],
        "I1 VPD": [0.44, None, 1.2],
        "I1 Estado Luz": [1, 1, 0],
        "I2 Temperatura Promedio": [None, 21.0, 22.0],
        "I2 Humedad Promedio": [None, 70.0, 65.0],
        "I5 Temperatura Promedio": [30.0, 30.0, 30.0],
        "CO2 Promedio": [800, 820, 790],
        "Week Number": [11, 11, 11],
    })
    sector = pd.DataFrame({
        "Time": times,
        "I6 Temperatura Promedio": [21.0, 22.0, 23.0],
        "I6 Humedad Promedio": [70.0, 70.0, 70.0],
    })
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        seedlings.to_excel(writer, sheet_name="Almacigo", index=False)
        sector.to_excel(writer, sheet_name="Sector 1", index=False)


def test_excel_sectors_and_dates(tmp_path):
    path = tmp_path / "week.xlsx"
    _workbook(path)

    assert available_sectors(str(path)) == ["Almacigo", "Sector 1"]
    assert available_dates(str(path), "Almacigo") == ["2023-03-15", "2023-03-16"]


def test_workbook_index_lists_every_sector(tmp_path):
    path = tmp_path / "week.xlsx"
    _workbook(path)
    with pd.ExcelWriter(path, engine="openpyxl", mode="a") as writer:
        pd.DataFrame({"Nota": ["sin datos"]}).to_excel(writer, sheet_name="Notas", index=False)

    index = workbook_index(str(path))

    assert list(index) == ["Almacigo", "Sector 1", "Notas"]
    assert index["Almacigo"] == ["2023-03-15", "2023-03-16"]
    assert index["Sector 1"] == ["2023-03-15", "2023-03-16"]
    assert index["Notas"] == []


def test_load_excel_dataset_for_one_day(tmp_path):
    path = tmp_path / "week.xlsx"
    _workbook(path)

    dataset = load_excel_dataset(str(path), "Almacigo", "2023-03-16")

    assert dataset.metadata["islands"] == ["I1", "I2", "I3", "I4"]
    assert dataset.metadata["totalRecords"] == 2
    first = dataset.records[0]
    assert (first.hour, first.minute) == (0, 30)
    assert first.islands["I1"].vpd == pytest.approx(vpd(20.0, 75.0))
    assert first.light_status == {"I1": 1.0}
    assert first.co2 == 820
    assert first.week_number == 11
    assert "I5" not in first.islands

    dataset_all = load_excel_dataset(str(path), "Almacigo")
    assert "I2" not in dataset_all.records[0].islands
    assert dataset_all.records[0].islands["I1"].vpd == 0.44


def test_load_excel_dataset_from_bytes_and_other_sector(tmp_path):
    path = tmp_path / "week.xlsx"
    _workbook(path)
    content = path.read_bytes()

    dataset = load_excel_dataset(content, "Sector 1")
    assert dataset.metadata["islands"] == ["I1", "I2", "I3", "I4", "I5", "I6"]
    assert set(dataset.records[0].islands) == {"I6"}


def test_unknown_sector_raises(tmp_path):
    path = tmp_path / "week.xlsx"
    _workbook(path)
    with pytest.raises(ValueError):
        load_excel_dataset(str(path), "Sector 9")
