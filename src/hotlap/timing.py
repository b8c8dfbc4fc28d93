import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Dict, List, Tuple

from hotlap.events import TelemetryRecord, BestLapBenchmark, SectorDelta, SectorStatus, SectorTimingState
from hotlap.track import COTA, TrackConfig, normalize, sector_for

LapKey = Tuple[str, int]

@dataclass(frozen=True)
class SectorTime:
    vehicle_id: str
    lap: int
    sector: int
    "The sector that was completed"
    seconds: float
    entered_sector: int

@dataclass(frozen=True)
class TimingUpdate:
    lap: int
    crossings: Tuple[SectorTime, ...] = ()
    deltas: Tuple[SectorDelta, ...] | None = None
    """Deltas for the lap of the most recent crossing, or None without a benchmark"""
    completed_lap: int | None = None
    """Set when this sample closed out sector 3 of a lap"""

def sector_status(delta: float) -> SectorStatus:
    if delta < 0:
        return SectorStatus.AHEAD
    elif delta < 1.0:
        return SectorStatus.CLOSE
    return SectorStatus.BEHIND

def sector_deltas(state: SectorTimingState, benchmark: BestLapBenchmark) -> Tuple[SectorDelta, ...]:
    deltas = list()
    for sector in (1, 2, 3):
        if sector not in state.sector_times:
            continue

        current = state.sector_times[sector]
        best = benchmark.sector_time(sector)
        deltas.append(SectorDelta(sector, current, best, current - best, sector_status(current - best)))
    return tuple(deltas)

class SectorTimingTracker:
    """
    Times each vehicle's sectors from consecutive telemetry samples.

    State is kept per (vehicle, lap). Each key moves from awaiting its first
    sample through sectors 1, 2 and 3, and is retired once sector 3 is closed,
    either by the lap counter moving on or by the distance wrapping back into
    sector 1. Different keys can be updated from different threads; updates to
    the same key are serialized.
    """

    track: TrackConfig
    keep_laps: int
    _states: Dict[LapKey, SectorTimingState]
    _key_locks: Dict[LapKey, threading.Lock]
    _current_lap: Dict[str, int]
    _sector_complete_callbacks: List[Callable[[SectorTime], None]]

    def __init__(self, track: TrackConfig = COTA, keep_laps: int = 5):
        self.track = track
        self.keep_laps = keep_laps
        self._states = dict()
        self._key_locks = dict()
        self._current_lap = dict()
        self._lock = threading.Lock()
        self._sector_complete_callbacks = list()
        self._log = logging.getLogger(__name__)

    def on_sector_complete(self, callback: Callable[[SectorTime], None]) -> None:
        self._sector_complete_callbacks.append(callback)

    def update(self, record: TelemetryRecord, benchmark: BestLapBenchmark | None = None,
               sector: int | None = None) -> TimingUpdate:
        """
        Advances the record's lap state. `sector` overrides the one derived from
        the record's lap distance, e.g. for a position estimated from GPS.
        """
        crossings = list()
        completed_lap = None
        deltas_state = None

        (state, key_lock, previous) = self._state_for(record)

        if previous is not None:
            with previous[1]:
                crossing = self._retire(previous[0], record)
            if crossing is not None:
                crossings.append(crossing)
                completed_lap = previous[0].lap
                deltas_state = previous[0]

        with key_lock:
            if state.complete:
                return TimingUpdate(record.lap, tuple(crossings), self._deltas(deltas_state, benchmark), completed_lap)

            if sector is None:
                sector = sector_for(normalize(record.lap_distance or 0.0, self.track), self.track)

            if state.current_sector == 0:
                state.current_sector = sector
                state.last_sector_time = record.timestamp
            elif sector != state.current_sector:
                crossing = self._close_sector(state, record, sector)
                crossings.append(crossing)
                deltas_state = state
                if crossing.sector == 3:
                    state.complete = True
                    completed_lap = state.lap

            if deltas_state is None:
                deltas_state = state
            deltas = self._deltas(deltas_state, benchmark)

        for crossing in crossings:
            for callback in self._sector_complete_callbacks:
                callback(crossing)

        return TimingUpdate(record.lap, tuple(crossings), deltas, completed_lap)

    def _state_for(self, record: TelemetryRecord):
        """Finds or creates the record's lap state, and the previous lap's state if this starts a new one"""
        key = (record.vehicle_id, record.lap)
        previous = None

        with self._lock:
            state = self._states.get(key)
            if state is None:
                state = SectorTimingState(record.vehicle_id, record.lap, record.timestamp)
                self._states[key] = state
                self._key_locks[key] = threading.Lock()

            last_lap = self._current_lap.get(record.vehicle_id)
            if last_lap is None or record.lap > last_lap:
                self._current_lap[record.vehicle_id] = record.lap
                last_key = (record.vehicle_id, last_lap)
                if last_lap is not None and last_key in self._states:
                    previous = (self._states[last_key], self._key_locks[last_key])

            return (state, self._key_locks[key], previous)

    def _retire(self, state: SectorTimingState, record: TelemetryRecord) -> SectorTime | None:
        if state.complete:
            return None

        state.complete = True
        if state.current_sector != 3:
            # the lap counter moved on somewhere other than the S/F line, so this lap can't be timed
            self._log.debug("Lap %d of %s retired in sector %d", state.lap, state.vehicle_id, state.current_sector)
            return None

        return self._close_sector(state, record, 1)

    def _close_sector(self, state: SectorTimingState, record: TelemetryRecord, entered: int) -> SectorTime:
        seconds = (record.timestamp - state.last_sector_time).total_seconds()
        exited = state.current_sector
        state.sector_times[exited] = seconds
        state.last_sector_time = record.timestamp
        state.current_sector = entered

        self._log.debug("Sector %d complete: %.3fs (lap %d)", exited, seconds, state.lap)
        return SectorTime(state.vehicle_id, state.lap, exited, seconds, entered)

    def _deltas(self, state: SectorTimingState | None, benchmark: BestLapBenchmark | None) -> Tuple[SectorDelta, ...] | None:
        if benchmark is None or state is None:
            return None
        return sector_deltas(state, benchmark)

    def state(self, vehicle_id: str, lap: int) -> SectorTimingState | None:
        with self._lock:
            return self._states.get((vehicle_id, lap))

    def deltas(self, vehicle_id: str, lap: int, benchmark: BestLapBenchmark) -> Tuple[SectorDelta, ...]:
        state = self.state(vehicle_id, lap)
        if state is None:
            return ()
        return sector_deltas(state, benchmark)

    def lap_time(self, vehicle_id: str, lap: int) -> float | None:
        """Only available once all three sectors of the lap have been timed"""
        state = self.state(vehicle_id, lap)
        if state is None:
            return None
        return state.lap_time

    def evict(self, keep_last: int | None = None) -> int:
        """Drops all but the most recent laps of each vehicle; returns how many were dropped"""
        if keep_last is None:
            keep_last = self.keep_laps

        with self._lock:
            laps_by_vehicle: Dict[str, List[int]] = dict()
            for (vehicle_id, lap) in self._states.keys():
                laps_by_vehicle.setdefault(vehicle_id, list()).append(lap)

            dropped = 0
            for (vehicle_id, laps) in laps_by_vehicle.items():
                for lap in sorted(laps, reverse=True)[keep_last:]:
                    del self._states[(vehicle_id, lap)]
                    del self._key_locks[(vehicle_id, lap)]
                    dropped += 1

        if dropped > 0:
            self._log.debug("Evicted %d lap timing states", dropped)
        return dropped

    def __len__(self) -> int:
        return len(self._states)
