from .scheduler import PlaybackScheduler as PlaybackScheduler, SimulationSession as SimulationSession
from .parser import RecordParser as RecordParser, read_csv as read_csv
from .laps import LapIntegrityCorrector as LapIntegrityCorrector
from .timing import SectorTimingTracker as SectorTimingTracker
from .strategy import PitStrategyEngine as PitStrategyEngine
from .track import TrackConfig as TrackConfig, COTA as COTA
