import asyncio
import logging
import time
import uuid
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Deque, Dict, List

from hotlap import track as tracks
from hotlap.events import TelemetryRecord, TrackPosition, BestLapBenchmark, LapData, WeatherRecord, \
    PositionUpdate, TelemetryUpdate, SectorCrossing, LapCompleted, PitRecommendationUpdate, CautionFlag, \
    SimulationStatus, SimulationComplete
from hotlap.sinks import EventSink
from hotlap.strategy import PitStrategyEngine
from hotlap.timing import SectorTimingTracker
from hotlap.track import COTA, TrackConfig

MIN_SPEED = 0.1
MAX_SPEED = 20.0

def clamp_speed(multiplier: float) -> float:
    return min(max(multiplier, MIN_SPEED), MAX_SPEED)

@dataclass
class SimulationSession:
    """
    One replay. Control calls flip the flags and set the wake event; the replay
    loop only reads them between records or when woken from its pacing sleep,
    so a change always lands on the next scheduling step.
    """

    session_id: str
    vehicle_id: str
    records: List[TelemetryRecord]
    speed_multiplier: float = 1.0
    running: bool = True
    stopped: bool = False
    cursor: int = 0
    "Number of records already played"
    completed_laps: List[LapData] = field(default_factory=list)
    task: asyncio.Task | None = None
    _wake: asyncio.Event = field(default_factory=asyncio.Event)

    def __post_init__(self):
        self.speed_multiplier = clamp_speed(self.speed_multiplier)

    @property
    def progress_percent(self) -> float:
        if len(self.records) == 0:
            return 100.0
        return self.cursor / len(self.records) * 100.0

    def pause(self) -> None:
        self.running = False
        self._wake.set()

    def resume(self) -> None:
        self.running = True
        self._wake.set()

    def set_speed(self, multiplier: float) -> None:
        self.speed_multiplier = clamp_speed(multiplier)
        self._wake.set()

    def stop(self) -> None:
        self.stopped = True
        self.running = False
        self._wake.set()

    async def sleep(self, timeout: float) -> bool:
        """Sleeps for timeout seconds; returns True if a control call cut it short"""
        self._wake.clear()
        try:
            await asyncio.wait_for(self._wake.wait(), timeout)
            return True
        except TimeoutError:
            return False

    async def wait_while_paused(self) -> None:
        while not self.running and not self.stopped:
            self._wake.clear()
            await self._wake.wait()

    def status(self) -> SimulationStatus:
        return SimulationStatus(self.session_id, self.running, self.speed_multiplier,
                                self.progress_percent, self.cursor, len(self.records))

@dataclass
class _ReplayState:
    """What the replay loop remembers between records"""
    lap: int = 0
    wrap_lap: int | None = None
    "Lap in progress as of the last S/F crossing seen in the lap distance"
    last_distance: float | None = None
    caution: str | None = None
    reported: tuple[bool, float] | None = None
    "(running, speed) as of the last status event"
    window: Deque[TelemetryRecord] = field(default_factory=deque)

class PlaybackScheduler:
    """
    Replays recorded telemetry at a variable speed, one asyncio task per session.

    Each record is mapped onto the track, timed, and the results sent to the
    sink; the loop then sleeps for the recorded gap to the next sample divided
    by the session's speed multiplier.
    """

    sink: EventSink
    track: TrackConfig
    tracker: SectorTimingTracker
    strategy: PitStrategyEngine
    benchmark: BestLapBenchmark | None
    weather: WeatherRecord | None
    _sessions: Dict[str, SimulationSession]

    def __init__(self, sink: EventSink,
                 track: TrackConfig = COTA,
                 tracker: SectorTimingTracker | None = None,
                 strategy: PitStrategyEngine | None = None,
                 benchmark: BestLapBenchmark | None = None,
                 weather: WeatherRecord | None = None,
                 total_laps: int = 30,
                 default_interval: float = 0.1,
                 min_interval: float = 0.001,
                 max_gap: float | None = None,
                 telemetry_window: int = 200,
                 caution_flags: tuple[str, ...] = ("FCY",)):
        self.sink = sink
        self.track = track
        self.tracker = tracker if tracker is not None else SectorTimingTracker(track)
        self.strategy = strategy if strategy is not None else PitStrategyEngine()
        self.benchmark = benchmark
        self.weather = weather
        self.total_laps = total_laps
        self.default_interval = default_interval
        "Pause after the last record, when there's no gap to replay"
        self.min_interval = min_interval
        self.max_gap = max_gap
        "Longest recorded gap that's replayed in full, e.g. to skip over red flags"
        self.telemetry_window = telemetry_window
        self.caution_flags = caution_flags
        self._sessions = dict()
        self._log = logging.getLogger(__name__)

    async def start(self, records: Iterable[TelemetryRecord], vehicle_id: str, speed_multiplier: float = 1.0) -> str:
        session_id = uuid.uuid4().hex
        session = SimulationSession(session_id, vehicle_id, sorted(records, key=lambda r: r.timestamp), speed_multiplier)
        self._sessions[session_id] = session

        self._log.info("Started session %s with %d records at %.1fx", session_id, len(session.records),
                       session.speed_multiplier)
        session.task = asyncio.create_task(self._run(session), name=f"replay-{session_id}")
        return session_id

    def pause(self, session_id: str) -> None:
        session = self._find(session_id)
        if session is not None:
            session.pause()
            self._log.info("Paused session %s", session_id)

    def resume(self, session_id: str) -> None:
        session = self._find(session_id)
        if session is not None:
            session.resume()
            self._log.info("Resumed session %s", session_id)

    def set_speed(self, session_id: str, multiplier: float) -> None:
        session = self._find(session_id)
        if session is not None:
            session.set_speed(multiplier)
            self._log.info("Session %s speed set to %.1fx", session_id, session.speed_multiplier)

    def stop(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            self._log.debug("Stop for unknown session %s", session_id)
            return

        session.stop()
        self._log.info("Stopped session %s", session_id)

    def get_status(self, session_id: str) -> SimulationStatus | None:
        session = self._find(session_id)
        return session.status() if session is not None else None

    @property
    def sessions(self) -> List[str]:
        return list(self._sessions.keys())

    async def wait(self, session_id: str) -> None:
        """Returns once the session has finished or been stopped"""
        session = self._sessions.get(session_id)
        if session is not None and session.task is not None:
            await asyncio.shield(session.task)

    async def close(self) -> None:
        tasks = [s.task for s in self._sessions.values() if s.task is not None]
        for session_id in self.sessions:
            self.stop(session_id)
        await asyncio.gather(*tasks)

    def _find(self, session_id: str) -> SimulationSession | None:
        session = self._sessions.get(session_id)
        if session is None:
            self._log.debug("No session %s", session_id)
        return session

    async def _run(self, session: SimulationSession) -> None:
        state = _ReplayState(window=deque(maxlen=self.telemetry_window))
        records = session.records

        await self._report_status(session, state)
        while not session.stopped and session.cursor < len(records):
            if not session.running:
                await self._report_status(session, state)
                await session.wait_while_paused()
                continue

            record = records[session.cursor]
            started = time.monotonic()
            try:
                await self._step(session, state, record)
            except Exception:
                self._log.exception("Failed to replay record %d of session %s", session.cursor, session.session_id)
            # nothing replays this record again, whatever happens to the pacing below
            session.cursor += 1
            await self._report_status(session, state)

            if session.cursor < len(records):
                gap = (records[session.cursor].timestamp - record.timestamp).total_seconds()
                if self.max_gap is not None:
                    gap = min(gap, self.max_gap)
                # time spent processing this record counts towards the gap
                await self._pace(session, state, gap, time.monotonic() - started)
            else:
                await self._pace(session, state, None, 0.0)

        if session.stopped:
            await self._report_status(session, state)
            self._log.info("Session %s stopped at record %d of %d", session.session_id, session.cursor, len(records))
            return

        session.running = False
        self._sessions.pop(session.session_id, None)
        await self._report_status(session, state)
        await self.sink.publish(SimulationComplete(session.session_id, session.vehicle_id, session.cursor))
        self._log.info("Session %s completed", session.session_id)

    async def _pace(self, session: SimulationSession, state: _ReplayState, gap: float | None, spent: float) -> None:
        if gap is None:
            await session.sleep(self.default_interval)
            return

        remaining = max(0.0, gap) - spent * session.speed_multiplier
        while not session.stopped:
            if not session.running:
                await self._report_status(session, state)
                await session.wait_while_paused()
                continue

            multiplier = session.speed_multiplier
            started = time.monotonic()
            self._log.debug("Waiting %.3fs for next record", max(remaining, 0.0) / multiplier)
            if not await session.sleep(max(self.min_interval, remaining / multiplier)):
                return

            # woken early by a control call: replay whatever's left of the gap at the new speed
            remaining -= (time.monotonic() - started) * multiplier
            await self._report_status(session, state)
            if remaining <= 0:
                return

    async def _step(self, session: SimulationSession, state: _ReplayState, record: TelemetryRecord) -> None:
        position = self._position(record)

        lap = self._effective_lap(state, record, position)
        if lap != record.lap:
            record = replace(record, lap=lap)
        state.last_distance = position.lap_distance
        state.window.append(record)

        now = datetime.now(timezone.utc)
        await self.sink.publish(PositionUpdate(session.session_id, record, position, now))
        await self.sink.publish(TelemetryUpdate(session.session_id, record.speed, record.brake_front or 0.0,
                                                record.throttle, record.gear or 0, now))

        timing = self.tracker.update(record, self.benchmark, position.sector)
        for crossing in timing.crossings:
            await self.sink.publish(SectorCrossing(session.session_id, crossing.lap, crossing.sector,
                                                   crossing.entered_sector, crossing.seconds,
                                                   self._lap_deltas(record.vehicle_id, crossing.lap)))

        if state.lap > 0 and lap > state.lap:
            await self._complete_lap(session, state, state.lap, record)
        state.lap = lap

        flag = self._caution_flag(record)
        if flag is not None and flag != state.caution:
            state.caution = flag
            self._log.warning("Caution flag %s on lap %d at %s", flag, lap, position.track_zone)
            await self.sink.publish(CautionFlag(session.session_id, flag, lap, position))
            await self._recommend(session, state, lap)
        elif flag is None:
            state.caution = None

    def _effective_lap(self, state: _ReplayState, record: TelemetryRecord, position: TrackPosition) -> int:
        """The record's lap, moved on by one when the distance wraps and the logger hasn't counted the lap itself"""
        if state.wrap_lap is None:
            state.wrap_lap = record.lap

        lap = max(record.lap, state.lap)
        wrapped = state.last_distance is not None and \
            tracks.is_lap_wrap(state.last_distance, position.lap_distance, self.track.wrap_near_zero, self.track.wrap_near_end)
        if wrapped:
            # a counter that ticked over before the line has already been counted
            if state.lap <= state.wrap_lap:
                lap = max(lap, state.lap + 1)
            state.wrap_lap = lap
        return lap

    def _position(self, record: TelemetryRecord) -> TrackPosition:
        if record.lap_distance is None and record.has_gps:
            # much less accurate than lap distance, but better than parking the car on the S/F line
            return tracks.position_from_gps(record.latitude, record.longitude, record.speed, record.timestamp, self.track)
        return tracks.position(record.lap_distance or 0.0, record.speed, record.timestamp, self.track)

    def _caution_flag(self, record: TelemetryRecord) -> str | None:
        if any(marker in record.flag for marker in self.caution_flags):
            return record.flag
        return None

    def _lap_deltas(self, vehicle_id: str, lap: int):
        if self.benchmark is None:
            return None
        return self.tracker.deltas(vehicle_id, lap, self.benchmark)

    async def _complete_lap(self, session: SimulationSession, state: _ReplayState, lap: int,
                            record: TelemetryRecord) -> None:
        timing = self.tracker.state(record.vehicle_id, lap)
        lap_time = timing.lap_time if timing is not None else None
        deltas = self._lap_deltas(record.vehicle_id, lap) or ()

        if timing is not None and lap_time is not None:
            session.completed_laps.append(LapData(lap_number=lap,
                                                  vehicle_id=record.vehicle_id,
                                                  lap_time=lap_time,
                                                  s1=timing.sector_times[1],
                                                  s2=timing.sector_times[2],
                                                  s3=timing.sector_times[3],
                                                  flag=state.caution or "",
                                                  timestamp=record.timestamp))
            self._log.info("Lap %d completed in %.3fs", lap, lap_time)
        else:
            self._log.info("Lap %d completed (untimed)", lap)

        await self.sink.publish(LapCompleted(session.session_id, lap, lap_time, deltas))
        await self._recommend(session, state, lap + 1)
        self.tracker.evict()

    async def _recommend(self, session: SimulationSession, state: _ReplayState, current_lap: int) -> None:
        recommendation = self.strategy.recommend(current_lap,
                                                 session.completed_laps,
                                                 list(state.window),
                                                 self.benchmark,
                                                 self.weather,
                                                 state.caution is not None,
                                                 self.total_laps)
        await self.sink.publish(PitRecommendationUpdate(session.session_id, recommendation))

    async def _report_status(self, session: SimulationSession, state: _ReplayState) -> None:
        """Sends a status event if the session's running flag or speed changed since the last one"""
        current = (session.running and not session.stopped, session.speed_multiplier)
        if state.reported == current:
            return

        state.reported = current
        await self.sink.publish(session.status())
