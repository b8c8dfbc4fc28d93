import io
from datetime import datetime, timedelta, timezone

import pytest

from hotlap import track
from hotlap.laps import LapIntegrityCorrector
from hotlap.parser import RecordParser, read_csv, parse_timestamp, parse_duration, parse_int, parse_float, \
    parse_lap_results, parse_benchmark

BASE = datetime(2025, 10, 19)

def row(ts, lap, distance, **extra):
    values = {"Timestamp": str(ts), "Lap": str(lap), "Laptrigger_lapdist_dls": str(distance), "vCar": "150.5"}
    values.update(extra)
    return values

class TestValues:
    def test_parse_int(self):
        assert parse_int("3") == 3
        assert parse_int("3.0") == 3
        assert parse_int("3.5") is None
        assert parse_int("x") is None
        assert parse_int(None) is None

    def test_parse_float_rejects_non_finite(self):
        assert parse_float("12.5") == 12.5
        assert parse_float("nan") is None
        assert parse_float("inf") is None
        assert parse_float("") is None

    def test_timestamps(self):
        assert parse_timestamp("90.5", BASE) == datetime(2025, 10, 19, 0, 1, 30, 500000)
        assert parse_timestamp("2025-10-19T13:00:00Z") == datetime(2025, 10, 19, 13, tzinfo=timezone.utc)
        assert parse_timestamp("2025-10-19T13:00:00.250") == datetime(2025, 10, 19, 13, 0, 0, 250000)
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None

    def test_durations(self):
        assert parse_duration("2:05.123") == pytest.approx(125.123)
        assert parse_duration("1:02:05.5") == pytest.approx(3725.5)
        assert parse_duration("31.2") == pytest.approx(31.2)
        assert parse_duration("") == 0.0
        assert parse_duration("DNF") == 0.0

class TestRecordParser:
    def test_row(self):
        parser = RecordParser("GR86-002", base_date=BASE)
        record = parser.parse_row(row(1.0, 4, 1500, pbrake_f="45.2", gear="4", FLAG_AT_FL="GF",
                                      VBOX_Lat_Min="30.13", VBOX_Long_Min="-97.64"))

        assert record.vehicle_id == "GR86-002"
        assert record.lap == 4
        assert record.lap_distance == 1500
        assert record.sector == 2
        assert record.speed == 150.5
        assert record.brake_front == 45.2
        assert record.brake_rear is None
        assert record.gear == 4
        assert record.flag == "GF"
        assert record.has_gps

    def test_default_base_date_fixed_at_construction(self):
        parser = RecordParser()
        base = parser.base_date
        assert base.time() == datetime.min.time()

        records = list(parser.parse([row(0.5, 1, 100), row(86399.5, 1, 200)]))

        assert parser.base_date == base
        assert [r.timestamp - base for r in records] == [timedelta(seconds=0.5), timedelta(seconds=86399.5)]

    def test_bad_rows_skipped(self):
        parser = RecordParser(base_date=BASE)
        rows = [row(0, 1, 100), {"Lap": "1"}, row("garbage", 1, 200), row(2, 1, 300)]

        records = list(parser.parse(rows))

        assert [r.lap_distance for r in records] == [100, 300]
        assert parser.rows_read == 4
        assert parser.rows_skipped == 2

    def test_missing_distance(self):
        parser = RecordParser(base_date=BASE)
        record = parser.parse_row(row(0, 1, ""))
        assert record.lap_distance is None
        assert record.sector == 1

    def test_sentinel_replaced(self):
        parser = RecordParser(base_date=BASE)
        records = list(parser.parse([row(0, 3, 2000), row(1, 32768, 2050), row(2, 3, 2100)]))
        assert [r.lap for r in records] == [3, 3, 3]

    def test_sentinel_replaced_by_corrector(self):
        parser = RecordParser(corrector=LapIntegrityCorrector(), base_date=BASE)
        records = list(parser.parse([row(0, 3, 5450), row(1, 32768, 30), row(2, 4, 60)]))
        assert [r.lap for r in records] == [3, 4, 4]

    def test_lap_scenario(self):
        distances = [0, 500, 1400, 3600, 5490, 10]
        parser = RecordParser(base_date=BASE)
        records = list(parser.parse([row(i, 1, d) for (i, d) in enumerate(distances)]))

        # 3600m is already past the end of sector 2 (3548.8m)
        assert [r.sector for r in records] == [1, 1, 2, 3, 3, 1]
        wraps = [track.is_lap_wrap(a.lap_distance, b.lap_distance) for (a, b) in zip(records, records[1:])]
        assert wraps.count(True) == 1
        assert wraps[-1]

    def test_lazy(self):
        consumed = list()

        def rows():
            for i in range(1000):
                consumed.append(i)
                yield row(i, 1, i)

        records = RecordParser(base_date=BASE).parse(rows())
        first = next(records)

        assert first.lap_distance == 0
        assert len(consumed) == 1

    def test_read_csv(self):
        stream = io.StringIO("Timestamp,Lap,Laptrigger_lapdist_dls,vCar,ath\n"
                             "2025-10-19T13:00:00,1,10.5,120,95\n"
                             "2025-10-19T13:00:01,1,,121,96\n"
                             "not a time,1,30,122,97\n")

        records = list(read_csv(stream, "Car7"))

        assert len(records) == 2
        assert records[0].vehicle_id == "Car7"
        assert records[0].throttle == 95
        assert records[1].lap_distance is None

class TestResults:
    def test_lap_results(self):
        laps = parse_lap_results([
            {"Lap": "1", "Name": "A. Driver", "Vehicle": "13", "LapTime": "2:08.500", "S1": "31.1", "S2": "52.2",
             "S3": "45.2", "Flag": "GF", "Pos": "3", "Valid": "True"},
            {"Lap": "2", "Name": "A. Driver", "Vehicle": "13", "LapTime": "2:30.000", "S1": "40", "S2": "60",
             "S3": "50", "Flag": "FCY", "Pos": "4", "Valid": "false"},
        ])

        assert len(laps) == 2
        assert laps[0].lap_time == pytest.approx(128.5)
        assert laps[0].s2 == pytest.approx(52.2)
        assert laps[0].position == 3
        assert laps[0].valid
        assert laps[1].flag == "FCY"
        assert not laps[1].valid

    def test_benchmark(self):
        benchmark = parse_benchmark([{"LapTime": "2:04.100", "S1": "29.8", "S2": "49.9", "S3": "44.4",
                                      "Name": "Fast", "Lap": "12"}])
        assert benchmark.lap_time == pytest.approx(124.1)
        assert benchmark.sector_time(3) == pytest.approx(44.4)
        assert benchmark.lap_number == 12

    def test_empty_benchmark(self):
        assert parse_benchmark([]) is None
