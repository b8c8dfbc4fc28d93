from datetime import datetime

import pytest

from hotlap import tires
from hotlap.events import TelemetryRecord, BestLapBenchmark, LapData, TireDegradation, WeatherRecord

NOW = datetime(2025, 10, 19, 13, 0, 0)

def braking(*pressures) -> list[TelemetryRecord]:
    return [TelemetryRecord(NOW, "Car1", 1, 100.0, brake_front=p) for p in pressures]

def laps(*times) -> list[LapData]:
    return [LapData(i + 1, lap_time=t) for (i, t) in enumerate(times)]

class TestTemperature:
    @pytest.mark.parametrize(("temperature", "multiplier"),
                             [(10, 0.85), (20, 0.95), (29.9, 0.95), (35, 1.0), (45, 1.3), (50, 1.5), (70, 1.5)])
    def test_bands(self, temperature, multiplier):
        assert tires.temperature_multiplier(temperature) == multiplier

class TestCalculate:
    def test_no_laps_no_wear(self):
        degradation = tires.calculate(1, [], braking(80), BestLapBenchmark(), 35)
        assert degradation.wear_percent == 0.0
        assert degradation.lap == 1

    def test_components(self):
        # 15/30 laps = 50%, 50 bar = 10%, 1.5s off = 50%
        degradation = tires.calculate(15, laps(126.5, 126.5), braking(40, 60), BestLapBenchmark(lap_time=125), 35)
        assert degradation.lap_time_delta == pytest.approx(1.5)
        assert degradation.average_brake_pressure == pytest.approx(50)
        assert degradation.peak_brake_pressure == 60
        assert degradation.wear_percent == pytest.approx(100.0)

        degradation = tires.calculate(6, laps(125), braking(50), BestLapBenchmark(lap_time=125), 35)
        assert degradation.wear_percent == pytest.approx(30.0)

    def test_temperature_scales_wear(self):
        degradation = tires.calculate(6, laps(125), [], BestLapBenchmark(lap_time=125), 45)
        assert degradation.temperature_multiplier == 1.3
        assert degradation.wear_percent == pytest.approx(26.0)

    def test_only_recent_laps_count(self):
        delta = tires.lap_time_delta(laps(200, 200, 126, 127, 128), BestLapBenchmark(lap_time=125))
        assert delta == pytest.approx(2.0)

    def test_no_benchmark(self):
        degradation = tires.calculate(3, laps(130), [], None, 35)
        assert degradation.lap_time_delta == 0.0
        assert degradation.wear_percent == pytest.approx(10.0)

    def test_clamped(self):
        worst = tires.calculate(500, laps(400), braking(1e6), BestLapBenchmark(lap_time=1), 90)
        assert worst.wear_percent == 100.0

        best = tires.calculate(1, laps(60), [], BestLapBenchmark(lap_time=125), 5)
        assert best.wear_percent >= 0.0
        assert best.lap_time_delta < 0

    def test_missing_brake_channel(self):
        records = [TelemetryRecord(NOW, "Car1", 1, 100.0)]
        degradation = tires.calculate(3, laps(125), records, None, 35)
        assert degradation.average_brake_pressure == 0.0
        assert degradation.peak_brake_pressure == 0.0

class TestProjections:
    def test_laps_remaining(self):
        assert tires.laps_remaining(TireDegradation(10, 50.0)) == 7
        assert tires.laps_remaining(TireDegradation(20, 90.0)) == 0
        assert tires.laps_remaining(TireDegradation(4, 0.0)) == 26
        assert tires.laps_remaining(TireDegradation(0, 0.0)) == 30

    def test_fresh_tire_gain(self):
        assert tires.fresh_tire_gain(TireDegradation(10, 40.0, lap_time_delta=2.5)) == pytest.approx(2.0)

class TestWeather:
    def test_wear_multiplier(self):
        assert WeatherRecord(track_temperature=20).tire_wear_multiplier() == 0.9
        assert WeatherRecord(track_temperature=40).tire_wear_multiplier() == 1.2
        assert WeatherRecord(track_temperature=50).tire_wear_multiplier() == 1.4

    def test_grip(self):
        assert WeatherRecord(conditions="Wet").grip_level() == 0.7
        assert WeatherRecord(track_temperature=15).grip_level() == 0.92
        assert WeatherRecord().grip_level() == 1.0
