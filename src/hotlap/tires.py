"""
Tire wear estimate: wear = (laps + braking + pace loss) * track temperature factor
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from hotlap.events import TelemetryRecord, BestLapBenchmark, LapData, TireDegradation

_log = logging.getLogger(__name__)

@dataclass(frozen=True)
class TireModelConfig:
    stint_laps: int = 30
    "Laps a set is expected to last; base wear reaches 100% here"
    brake_reference: float = 100.0
    "Front brake pressure (bar) that maps to the full braking contribution"
    brake_max_wear: float = 20.0
    max_pace_delta: float = 3.0
    "Seconds off the benchmark that counts as completely worn. Tuned for COTA, not a law of physics"
    pace_window: int = 3
    "How many recent laps are averaged for pace loss"
    temperature_bands: tuple[tuple[float, float], ...] = ((20, 0.85), (30, 0.95), (40, 1.0), (50, 1.3))
    "(upper bound in C, multiplier), checked in order"
    hot_multiplier: float = 1.5
    fresh_tire_recovery: float = 0.8
    "Fraction of the pace loss a new set gives back"

DEFAULT_CONFIG = TireModelConfig()

def temperature_multiplier(track_temperature: float, config: TireModelConfig = DEFAULT_CONFIG) -> float:
    for (bound, multiplier) in config.temperature_bands:
        if track_temperature < bound:
            return multiplier
    return config.hot_multiplier

def brake_pressures(telemetry: Sequence[TelemetryRecord]) -> list[float]:
    return [t.brake_front for t in telemetry if t.brake_front is not None]

def lap_time_delta(laps: Sequence[LapData], benchmark: BestLapBenchmark | None,
                   config: TireModelConfig = DEFAULT_CONFIG) -> float:
    """Average of the last few laps against the benchmark lap; 0 without a benchmark"""
    recent = laps[-config.pace_window:]
    if benchmark is None or len(recent) == 0:
        return 0.0
    return sum(lap.lap_time for lap in recent) / len(recent) - benchmark.lap_time

def calculate(current_lap: int,
              completed_laps: Sequence[LapData],
              recent_telemetry: Sequence[TelemetryRecord],
              benchmark: BestLapBenchmark | None,
              track_temperature: float,
              config: TireModelConfig = DEFAULT_CONFIG) -> TireDegradation:
    if len(completed_laps) == 0:
        return TireDegradation(current_lap, 0.0)

    base_wear = current_lap / config.stint_laps * 100.0

    pressures = brake_pressures(recent_telemetry)
    average_brake = sum(pressures) / len(pressures) if len(pressures) > 0 else 0.0
    peak_brake = max(pressures, default=0.0)
    brake_wear = average_brake / config.brake_reference * config.brake_max_wear

    delta = lap_time_delta(completed_laps, benchmark, config)
    pace_wear = min(max(0.0, delta), config.max_pace_delta) / config.max_pace_delta * 100.0

    multiplier = temperature_multiplier(track_temperature, config)
    wear = min(100.0, max(0.0, (base_wear + brake_wear + pace_wear) * multiplier))

    _log.debug("Tire degradation: %.1f%% (lap %d, brake %.1f, delta %.2fs, temp %.1fC)",
               wear, current_lap, average_brake, delta, track_temperature)

    return TireDegradation(lap=current_lap,
                           wear_percent=wear,
                           lap_time_delta=delta,
                           average_brake_pressure=average_brake,
                           peak_brake_pressure=peak_brake,
                           temperature_multiplier=multiplier)

def laps_remaining(degradation: TireDegradation, wear_threshold: float = 85.0,
                   config: TireModelConfig = DEFAULT_CONFIG) -> int:
    """Laps until wear_threshold at the wear rate seen so far"""
    if degradation.wear_percent >= wear_threshold:
        return 0

    if degradation.lap <= 0 or degradation.wear_percent <= 0:
        # no wear yet, so no rate to extrapolate from; assume a full stint
        return max(0, config.stint_laps - degradation.lap)

    wear_per_lap = degradation.wear_percent / degradation.lap
    return math.ceil((wear_threshold - degradation.wear_percent) / wear_per_lap)

def fresh_tire_gain(degradation: TireDegradation, config: TireModelConfig = DEFAULT_CONFIG) -> float:
    """Seconds per lap a new set should give back"""
    return degradation.lap_time_delta * config.fresh_tire_recovery
