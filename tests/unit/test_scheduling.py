from datetime import date, datetime, timedelta, timezone

from vidhanto import scheduling


def test_generate_time_slots_every_half_hour_end_exclusive():
    slots = scheduling.generate_time_slots([{"start": "09:00", "end": "11:00"}])
    assert slots == ["09:00", "09:30", "10:00", "10:30"]


def test_generate_time_slots_merges_ranges():
    slots = scheduling.generate_time_slots([
        {"start": "14:00", "end": "15:00"},
        {"start": "09:00", "end": "10:00"},
        {"start": "09:30", "end": "10:30"},
    ])
    assert slots == ["09:00", "09:30", "10:00", "14:00", "14:30"]


def test_default_day_when_no_ranges():
    slots = scheduling.generate_time_slots([])
    assert slots[0] == "10:00"
    assert slots[-1] == "18:30"
    assert len(slots) == 18


def test_local_and_utc_conversion():
    utc = scheduling.local_slot_to_utc(date(2025, 3, 10), "10:00")
    assert utc == datetime(2025, 3, 10, 4, 30)
    assert scheduling.hhmm(scheduling.to_local(utc)) == "10:00"


def test_normalize_utc_drops_offset():
    aware = datetime(2025, 3, 10, 10, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    assert scheduling.normalize_utc(aware) == datetime(2025, 3, 10, 4, 30)
    naive = datetime(2025, 3, 10, 10, 0)
    assert scheduling.normalize_utc(naive) == naive


def test_day_name():
    assert scheduling.day_name(date(2025, 3, 10)) == "monday"
    assert scheduling.day_name(date(2025, 3, 16)) == "sunday"
