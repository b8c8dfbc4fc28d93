import logging
from collections.abc import Sequence
from dataclasses import dataclass

from hotlap import tires
from hotlap.events import TelemetryRecord, BestLapBenchmark, LapData, WeatherRecord, \
    TireDegradation, PitUrgency, PitRecommendation

@dataclass(frozen=True)
class StrategyConfig:
    caution_min_lap: int = 5
    "Caution pits before this lap aren't worth the stop"
    caution_time_saving: float = 15.0
    critical_wear: float = 85.0
    critical_delta: float = 2.0
    high_wear: float = 70.0
    high_delta: float = 1.5
    high_wear_gain: float = 5.0
    pit_window_fraction: float = 0.45
    "Fraction of race distance for the baseline stop"
    pit_window_laps: int = 2
    window_gain: float = 2.0
    hot_track: float = 40.0
    very_hot_track: float = 45.0
    earliest_pit_lap: int = 5
    default_track_temperature: float = 35.0
    pit_lane_seconds: float = 36.0
    "Pit lane transit at the 50kph limiter"
    green_flag_penalty: float = 5.0
    caution_pit_loss: float = 15.0
    pit_entry_sector: int = 1

class PitStrategyEngine:
    """
    Rule cascade for pit stop calls. Rules are checked in priority order and
    the first one that matches wins:

    1. caution out: pit now
    2. critical wear or pace loss: pit next lap
    3. high wear or pace loss: pit in two laps
    4. inside the optimal window: pit at the optimal lap
    5. otherwise: keep going, plan for the optimal lap
    """

    config: StrategyConfig
    tire_config: tires.TireModelConfig

    def __init__(self, config: StrategyConfig = StrategyConfig(),
                 tire_config: tires.TireModelConfig = tires.DEFAULT_CONFIG):
        self.config = config
        self.tire_config = tire_config
        self._log = logging.getLogger(__name__)

    def recommend(self,
                  current_lap: int,
                  completed_laps: Sequence[LapData],
                  recent_telemetry: Sequence[TelemetryRecord],
                  benchmark: BestLapBenchmark | None,
                  weather: WeatherRecord | None = None,
                  caution: bool = False,
                  total_laps: int = 30) -> PitRecommendation:
        track_temperature = weather.track_temperature if weather is not None else self.config.default_track_temperature
        degradation = tires.calculate(current_lap, completed_laps, recent_telemetry, benchmark,
                                      track_temperature, self.tire_config)
        recommendation = self.decide(current_lap, degradation, track_temperature, caution, total_laps)

        self._log.info("Lap %d: %s (%s)", current_lap, recommendation.display_message(), recommendation.urgency.name)
        return recommendation

    def decide(self, current_lap: int, degradation: TireDegradation, track_temperature: float,
               caution: bool = False, total_laps: int = 30) -> PitRecommendation:
        wear = degradation.wear_percent
        delta = degradation.lap_time_delta
        factors = [f"Tire wear: {wear:.1f}%", f"Lap time delta: {delta:+.2f}s"]

        def recommendation(lap: int, urgency: PitUrgency, reason: str, strategy: str, gain: float,
                           caution_opportunity: bool = False) -> PitRecommendation:
            return PitRecommendation(recommended_lap=lap,
                                     current_lap=current_lap,
                                     urgency=urgency,
                                     reason=reason,
                                     strategy=strategy,
                                     factors=tuple(factors),
                                     expected_time_gain=gain,
                                     caution_opportunity=caution_opportunity,
                                     tire_wear_percent=wear,
                                     lap_time_delta=delta,
                                     track_temperature=track_temperature)

        if caution and current_lap > self.config.caution_min_lap:
            factors.append("Caution flag out")
            return recommendation(current_lap, PitUrgency.CRITICAL,
                                  "CAUTION - pit under yellow to save time!",
                                  "Caution pit strategy", self.config.caution_time_saving,
                                  caution_opportunity=True)

        if wear > self.config.critical_wear or delta > self.config.critical_delta:
            factors.append("Critical tire degradation")
            return recommendation(current_lap + 1, PitUrgency.WARNING,
                                  f"Tires critically worn ({wear:.0f}%), losing {delta:.1f}s/lap",
                                  "Emergency pit - tires degraded",
                                  max(0.0, delta) * max(0, total_laps - current_lap))

        if wear > self.config.high_wear or delta > self.config.high_delta:
            factors.append("High tire wear detected")
            return recommendation(current_lap + 2, PitUrgency.ADVISORY,
                                  f"High tire wear ({wear:.0f}%), recommend pit in 2 laps",
                                  "Planned pit - tire management", self.config.high_wear_gain)

        optimal = self.optimal_pit_lap(total_laps, track_temperature)
        if abs(current_lap - optimal) <= self.config.pit_window_laps:
            factors.append("In optimal pit window")
            return recommendation(optimal, PitUrgency.ADVISORY,
                                  f"Optimal pit window (lap {optimal})",
                                  "Standard pit strategy", self.config.window_gain)

        factors.append("Tires in good condition")
        return recommendation(optimal, PitUrgency.INFO,
                              f"Tires good, plan pit around lap {optimal}",
                              "Monitor and continue", 0.0)

    def optimal_pit_lap(self, total_laps: int, track_temperature: float) -> int:
        """Just under halfway, earlier on a hot track, and never before the earliest pit lap"""
        lap = int(total_laps * self.config.pit_window_fraction)

        if track_temperature > self.config.very_hot_track:
            lap -= 3
        elif track_temperature > self.config.hot_track:
            lap -= 2

        return max(self.config.earliest_pit_lap, lap)

    def estimate_pit_loss(self, caution: bool) -> float:
        """Seconds lost to a stop, including lost track position under green"""
        if caution:
            return self.config.caution_pit_loss
        return self.config.pit_lane_seconds + self.config.green_flag_penalty

    def is_good_sector_for_pit(self, sector: int) -> bool:
        return sector == self.config.pit_entry_sector
