from dataclasses import dataclass
from datetime import datetime

@dataclass(frozen=True)
class TelemetryRecord:
    """A single sample from the car's data logger"""

    timestamp: datetime
    vehicle_id: str
    lap: int
    lap_distance: float | None
    "Meters from the S/F line, as reported by the logger (may be unnormalized). None if it wasn't logged"
    speed: float = 0.0
    "km/h"
    throttle: float = 0.0
    brake_front: float | None = None
    "Front brake pressure, bar"
    brake_rear: float | None = None
    gear: int | None = None
    steering_angle: float | None = None
    acc_x: float | None = None
    "Longitudinal acceleration, G"
    acc_y: float | None = None
    "Lateral acceleration, G"
    latitude: float | None = None
    longitude: float | None = None
    flag: str = ""
    "Race control flag at the time of the sample, e.g. FCY"
    sector: int = 1

    @property
    def has_gps(self) -> bool:
        return self.latitude is not None and self.longitude is not None

@dataclass(frozen=True)
class TrackPosition:
    lap_distance: float
    "Distance from the S/F line, always within [0, circuit length)"
    sector: int
    distance_into_sector: float
    lap_progress_percent: float
    in_pit_lane: bool
    at_speed_trap: bool
    nearest_turn: int | None
    track_zone: str
    pixel: tuple[float, float]
    "Canvas coordinate for the track map"
    speed: float = 0.0
    timestamp: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None

@dataclass(frozen=True)
class WeatherRecord:
    timestamp: datetime | None = None
    air_temperature: float = 25.0
    track_temperature: float = 35.0
    humidity: float = 0.0
    wind_speed: float = 0.0
    wind_direction: str = ""
    pressure: float = 0.0
    conditions: str = "Dry"
    "Dry, Damp or Wet"

    def tire_wear_multiplier(self) -> float:
        if self.track_temperature < 25:
            return 0.9
        elif self.track_temperature < 35:
            return 1.0
        elif self.track_temperature < 45:
            return 1.2
        return 1.4

    def grip_level(self) -> float:
        if self.conditions == "Wet":
            return 0.7
        if self.conditions == "Damp":
            return 0.85

        if self.track_temperature < 20:
            return 0.92
        elif self.track_temperature < 40:
            return 1.0
        return 0.95
