from dataclasses import dataclass
from enum import IntEnum

@dataclass(frozen=True)
class TireDegradation:
    lap: int
    wear_percent: float
    "0 is a fresh set, 100 is completely worn"
    lap_time_delta: float = 0.0
    "Seconds lost per lap against the benchmark"
    average_brake_pressure: float = 0.0
    peak_brake_pressure: float = 0.0
    temperature_multiplier: float = 1.0

class PitUrgency(IntEnum):
    INFO = 0
    ADVISORY = 1
    WARNING = 2
    CRITICAL = 3

@dataclass(frozen=True)
class PitRecommendation:
    recommended_lap: int
    current_lap: int
    urgency: PitUrgency
    reason: str
    strategy: str
    factors: tuple[str, ...]
    expected_time_gain: float
    "Seconds"
    caution_opportunity: bool = False
    tire_wear_percent: float = 0.0
    lap_time_delta: float = 0.0
    track_temperature: float = 35.0

    @property
    def laps_until_pit(self) -> int:
        return max(0, self.recommended_lap - self.current_lap)

    def display_message(self) -> str:
        if self.urgency == PitUrgency.CRITICAL:
            return f"BOX BOX BOX: {self.reason}"
        elif self.laps_until_pit == 0:
            return f"Pit this lap: {self.reason}"
        return f"Pit on lap {self.recommended_lap} ({self.laps_until_pit} to go): {self.reason}"
