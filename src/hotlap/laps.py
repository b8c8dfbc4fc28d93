import logging
from dataclasses import dataclass
from datetime import datetime

from hotlap.track import is_lap_wrap

LAP_SENTINEL = 32768
"What the logger reports when the lap trigger glitches (2^15)"

@dataclass(frozen=True)
class LapCorrectorDiagnostics:
    last_valid_lap: int
    last_timestamp: datetime | None
    consecutive_invalid: int
    healthy: bool

class LapIntegrityCorrector:
    """
    Repairs the lap counter using timestamp and lap distance continuity.

    The heuristics are tuned for COTA in the GR Cup cars: ~2:05 laps and a
    5.5km lap. They're constructor arguments so other circuits can override them.
    """

    def __init__(self,
                 average_lap_seconds: float = 125.0,
                 sentinel: int = LAP_SENTINEL,
                 wrap_near_zero: float = 500,
                 wrap_near_end: float = 5000,
                 lap_start_window: float = 100,
                 mid_lap_distance: float = 1000,
                 max_lap_jump: int = 2,
                 unhealthy_after: int = 10):
        self.average_lap_seconds = average_lap_seconds
        self.sentinel = sentinel
        self.wrap_near_zero = wrap_near_zero
        self.wrap_near_end = wrap_near_end
        self.lap_start_window = lap_start_window
        self.mid_lap_distance = mid_lap_distance
        self.max_lap_jump = max_lap_jump
        self.unhealthy_after = unhealthy_after
        self._log = logging.getLogger(__name__)
        self.reset()

    def reset(self, last_valid_lap: int = 0) -> None:
        self._last_valid_lap = last_valid_lap
        self._last_lap = last_valid_lap
        self._last_timestamp: datetime | None = None
        self._last_distance = 0.0
        self._consecutive_invalid = 0
        self._log.info("Lap corrector reset to lap %d", last_valid_lap)

    def is_invalid(self, lap: int | None) -> bool:
        return lap is None or lap == self.sentinel or lap < 0

    def fix(self, timestamp: datetime, lap_distance: float, reported_lap: int | None) -> int:
        if self.is_invalid(reported_lap):
            self._consecutive_invalid += 1
            self._log.warning("Corrupted lap number %s at %s", reported_lap, timestamp)
            lap = self._from_timestamp(timestamp, lap_distance)
        elif self._last_valid_lap > 0 and abs(reported_lap - self._last_valid_lap) > self.max_lap_jump:
            self._consecutive_invalid += 1
            self._log.warning("Implausible lap jump: %d -> %d", self._last_valid_lap, reported_lap)
            lap = self._from_distance(timestamp, lap_distance)
        else:
            lap = self._validate(lap_distance, reported_lap)
            self._advance(timestamp, lap)
            self._consecutive_invalid = 0

        self._last_distance = lap_distance

        # whatever the heuristics said, the lap counter never goes backwards
        lap = max(lap, self._last_lap)
        self._last_lap = lap
        return lap

    def _advance(self, timestamp: datetime, lap: int) -> None:
        self._last_valid_lap = lap
        self._last_timestamp = timestamp

    def _from_timestamp(self, timestamp: datetime, lap_distance: float) -> int:
        if self._last_timestamp is None:
            self._log.info("No previous timestamp, assuming lap 1")
            return 1

        if self._wrapped(lap_distance):
            self._advance(timestamp, self._last_valid_lap + 1)
            return self._last_valid_lap

        elapsed = (timestamp - self._last_timestamp).total_seconds()
        estimated = self._last_valid_lap + max(0, int(elapsed // self.average_lap_seconds))
        self._log.info("Using timestamp continuity: lap %d (%.1fs since last valid lap)", estimated, elapsed)
        return estimated

    def _from_distance(self, timestamp: datetime, lap_distance: float) -> int:
        if self._wrapped(lap_distance):
            self._advance(timestamp, self._last_valid_lap + 1)
            self._log.info("Lap crossing detected via distance: %.0fm -> %.0fm, lap %d",
                           self._last_distance, lap_distance, self._last_valid_lap)
        return self._last_valid_lap

    def _validate(self, lap_distance: float, reported_lap: int) -> int:
        if self._last_valid_lap == 0:
            # nothing to check against yet
            return reported_lap

        if lap_distance < self.lap_start_window and reported_lap > self._last_valid_lap:
            return reported_lap

        if lap_distance > self.mid_lap_distance and abs(reported_lap - self._last_valid_lap) > 1:
            self._log.warning("Mid-lap number change at %.0fm, keeping lap %d", lap_distance, self._last_valid_lap)
            return self._last_valid_lap

        # between the start window and mid-lap nothing contradicts the logger, so trust it
        return max(reported_lap, self._last_valid_lap)

    def _wrapped(self, lap_distance: float) -> bool:
        return is_lap_wrap(self._last_distance, lap_distance, self.wrap_near_zero, self.wrap_near_end)

    def diagnostics(self) -> LapCorrectorDiagnostics:
        return LapCorrectorDiagnostics(self._last_valid_lap,
                                       self._last_timestamp,
                                       self._consecutive_invalid,
                                       self._consecutive_invalid < self.unhealthy_after)
