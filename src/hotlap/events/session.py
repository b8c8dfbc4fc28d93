from dataclasses import dataclass, field
from datetime import datetime

from .telemetry import TelemetryRecord, TrackPosition
from .timing import SectorDelta
from .strategy import PitRecommendation

@dataclass(frozen=True)
class PositionUpdate:
    session_id: str
    telemetry: TelemetryRecord
    position: TrackPosition
    timestamp: datetime
    "Wall clock time the update was emitted"

@dataclass(frozen=True)
class TelemetryUpdate:
    """Compact per-sample payload for live charts"""
    session_id: str
    speed: float
    brake: float
    throttle: float
    gear: int
    timestamp: datetime

@dataclass(frozen=True)
class SectorCrossing:
    session_id: str
    lap_number: int
    sector: int
    "The sector that was just completed"
    entered_sector: int
    sector_time: float
    deltas: tuple[SectorDelta, ...] | None = None
    "None if no benchmark is loaded"

@dataclass(frozen=True)
class LapCompleted:
    session_id: str
    lap_number: int
    lap_time: float | None
    "None if the lap wasn't timed through all three sectors"
    deltas: tuple[SectorDelta, ...] = field(default_factory=tuple)

@dataclass(frozen=True)
class PitRecommendationUpdate:
    session_id: str
    recommendation: PitRecommendation

@dataclass(frozen=True)
class CautionFlag:
    session_id: str
    flag_type: str
    lap_number: int
    position: TrackPosition

@dataclass(frozen=True)
class SimulationStatus:
    session_id: str
    running: bool
    speed_multiplier: float
    progress_percent: float
    current_index: int = 0
    total_records: int = 0

@dataclass(frozen=True)
class SimulationComplete:
    session_id: str
    vehicle_id: str
    records_played: int


SinkEvent = PositionUpdate | TelemetryUpdate | SectorCrossing | LapCompleted | \
    PitRecommendationUpdate | CautionFlag | SimulationStatus | SimulationComplete
