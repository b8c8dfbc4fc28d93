from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

class SectorStatus(Enum):
    AHEAD = "ahead"
    "Faster than the benchmark"
    CLOSE = "close"
    "Within a second of the benchmark (or exactly on it)"
    BEHIND = "behind"

@dataclass(frozen=True)
class BestLapBenchmark:
    lap_time: float = 125.0
    s1: float = 30.0
    s2: float = 50.0
    s3: float = 45.0
    driver_name: str = ""
    lap_number: int = 0

    def sector_time(self, sector: int) -> float:
        return (self.s1, self.s2, self.s3)[sector - 1]

@dataclass(frozen=True)
class SectorDelta:
    sector: int
    current: float
    best: float
    delta: float
    "Seconds, negative when faster than the benchmark"
    status: SectorStatus

    @property
    def is_faster(self) -> bool:
        return self.delta < 0

@dataclass(frozen=True)
class LapData:
    lap_number: int
    vehicle_id: str = ""
    driver_name: str = ""
    lap_time: float = 0.0
    s1: float = 0.0
    s2: float = 0.0
    s3: float = 0.0
    flag: str = ""
    valid: bool = True
    "False if the lap was deleted by race control"
    position: int = 0
    timestamp: datetime | None = None

@dataclass
class SectorTimingState:
    """Timing for one vehicle's lap, mutated as the car crosses sector boundaries"""

    vehicle_id: str
    lap: int
    lap_start: datetime
    last_sector_time: datetime | None = None
    current_sector: int = 0
    "0 until the first sample of the lap has been seen"
    sector_times: dict[int, float] = field(default_factory=dict)
    complete: bool = False

    @property
    def lap_time(self) -> float | None:
        if all(s in self.sector_times for s in (1, 2, 3)):
            return sum(self.sector_times[s] for s in (1, 2, 3))
        return None
