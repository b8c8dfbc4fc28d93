from .telemetry import TelemetryRecord as TelemetryRecord, TrackPosition as TrackPosition, WeatherRecord as WeatherRecord
from .timing import BestLapBenchmark as BestLapBenchmark, SectorDelta as SectorDelta, SectorStatus as SectorStatus, \
    LapData as LapData, SectorTimingState as SectorTimingState
from .strategy import TireDegradation as TireDegradation, PitUrgency as PitUrgency, PitRecommendation as PitRecommendation
from .session import SinkEvent as SinkEvent, PositionUpdate as PositionUpdate, TelemetryUpdate as TelemetryUpdate, \
    SectorCrossing as SectorCrossing, LapCompleted as LapCompleted, PitRecommendationUpdate as PitRecommendationUpdate, \
    CautionFlag as CautionFlag, SimulationStatus as SimulationStatus, SimulationComplete as SimulationComplete
