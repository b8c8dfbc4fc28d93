import asyncio
import time
from datetime import datetime, timedelta
from typing import List

import pytest

from hotlap import PlaybackScheduler
from hotlap.events import TelemetryRecord, PositionUpdate, LapCompleted, SectorCrossing, SimulationStatus, \
    SimulationComplete, CautionFlag, PitRecommendationUpdate, PitUrgency
from hotlap.sinks import CallbackSink, EventSink
from hotlap.track import COTA

START = datetime(2025, 10, 19, 13, 0, 0)

def records(distances, lap: int = 1, interval: float = 1.0, flags=None) -> List[TelemetryRecord]:
    flags = flags or [""] * len(distances)
    return [TelemetryRecord(START + timedelta(seconds=i * interval), "Car1", lap, d, speed=150, flag=f)
            for (i, (d, f)) in enumerate(zip(distances, flags))]

class Recorder(CallbackSink):
    def __init__(self):
        super().__init__()
        self.events = list()
        self.arrivals = list()
        self.on_event(self.events.append)
        self.on_position_update(lambda _: self.arrivals.append(time.monotonic()))

    def of(self, event_type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]

class FlakySink(Recorder):
    async def _deliver(self, event):
        if isinstance(event, PositionUpdate):
            raise ConnectionError("dropped")
        await super()._deliver(event)

def gps_offset(distance: float) -> float:
    """Latitude offset from the S/F line that the GPS fallback maps to `distance`"""
    return distance * COTA.gps_scale / (111000 * COTA.length)

def scheduler_for(sink: EventSink, **kwargs) -> PlaybackScheduler:
    return PlaybackScheduler(sink, default_interval=0.01, **kwargs)

@pytest.mark.asyncio
class TestPlaybackScheduler:
    async def test_pacing(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)

        session_id = await scheduler.start(records([100, 200, 300]), "Car1", 10)
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        assert len(sink.of(PositionUpdate)) == 3
        gaps = [b - a for (a, b) in zip(sink.arrivals, sink.arrivals[1:])]
        for gap in gaps:
            assert 0.07 <= gap <= 0.4

        complete = sink.of(SimulationComplete)
        assert len(complete) == 1
        assert complete[0].records_played == 3
        assert complete[0].vehicle_id == "Car1"

        final = sink.of(SimulationStatus)[-1]
        assert not final.running
        assert final.progress_percent == 100.0
        assert scheduler.get_status(session_id) is None

    async def test_plays_in_timestamp_order(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)
        data = records([100, 200, 300, 400], interval=0.01)

        session_id = await scheduler.start(reversed(data), "Car1")
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        assert [e.telemetry.lap_distance for e in sink.of(PositionUpdate)] == [100, 200, 300, 400]

    async def test_speed_change_mid_gap(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)

        session_id = await scheduler.start(records([100, 200, 300, 400, 500]), "Car1", 1)
        await asyncio.sleep(0.05)
        scheduler.set_speed(session_id, 20)
        assert scheduler.get_status(session_id).speed_multiplier == 20

        started = time.monotonic()
        await asyncio.wait_for(scheduler.wait(session_id), 3)

        # four 1s gaps at 20x, not at 1x
        assert time.monotonic() - started < 1.5
        positions = sink.of(PositionUpdate)
        assert [p.telemetry.lap_distance for p in positions] == [100, 200, 300, 400, 500]
        assert 20 in [s.speed_multiplier for s in sink.of(SimulationStatus)]

    async def test_speed_clamped(self):
        scheduler = scheduler_for(Recorder())

        session_id = await scheduler.start(records([100, 200]), "Car1", 100)
        assert scheduler.get_status(session_id).speed_multiplier == 20.0

        scheduler.set_speed(session_id, 0)
        assert scheduler.get_status(session_id).speed_multiplier == 0.1
        scheduler.stop(session_id)
        await asyncio.sleep(0.05)

    async def test_pause_resume(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)

        session_id = await scheduler.start(records([100, 200, 300]), "Car1", 10)
        await asyncio.sleep(0.02)
        scheduler.pause(session_id)

        status = scheduler.get_status(session_id)
        assert not status.running
        assert status.total_records == 3

        await asyncio.sleep(0.4)
        assert len(sink.of(PositionUpdate)) == 1

        scheduler.resume(session_id)
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        assert len(sink.of(PositionUpdate)) == 3
        assert [s.running for s in sink.of(SimulationStatus)] == [True, False, True, False]

    async def test_stop(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)

        session_id = await scheduler.start(records([100, 200, 300]), "Car1", 1)
        await asyncio.sleep(0.05)
        scheduler.stop(session_id)
        await asyncio.sleep(0.1)

        assert scheduler.get_status(session_id) is None
        assert session_id not in scheduler.sessions
        assert len(sink.of(PositionUpdate)) == 1
        assert sink.of(SimulationComplete) == []
        assert not sink.of(SimulationStatus)[-1].running

    async def test_unknown_session(self):
        scheduler = scheduler_for(Recorder())

        scheduler.pause("nope")
        scheduler.resume("nope")
        scheduler.set_speed("nope", 2)
        scheduler.stop("nope")
        assert scheduler.get_status("nope") is None
        await scheduler.wait("nope")

    async def test_sink_failure_does_not_stop_replay(self):
        sink = FlakySink()
        scheduler = scheduler_for(sink)

        session_id = await scheduler.start(records([100, 200, 300], interval=0.01), "Car1")
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        assert sink.of(PositionUpdate) == []
        assert len(sink.of(SimulationComplete)) == 1

    async def test_lap_wrap(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)

        session_id = await scheduler.start(records([0, 500, 1400, 3600, 5490, 10]), "Car1", 20)
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        laps = sink.of(LapCompleted)
        assert len(laps) == 1
        assert laps[0].lap_number == 1
        assert laps[0].lap_time == pytest.approx(5.0)

        assert [(c.lap_number, c.sector) for c in sink.of(SectorCrossing)] == [(1, 1), (1, 2), (1, 3)]
        assert [p.position.sector for p in sink.of(PositionUpdate)] == [1, 1, 2, 3, 3, 1]
        assert sink.of(PositionUpdate)[-1].telemetry.lap == 2
        assert len(sink.of(PitRecommendationUpdate)) == 1

    async def test_counter_ticks_before_line(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)
        data = [TelemetryRecord(r.timestamp, r.vehicle_id, lap, r.lap_distance)
                for (r, lap) in zip(records([3600, 5400, 5490, 10, 100], interval=0.01), [1, 1, 2, 2, 2])]

        session_id = await scheduler.start(data, "Car1")
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        assert [lap.lap_number for lap in sink.of(LapCompleted)] == [1]
        assert [p.telemetry.lap for p in sink.of(PositionUpdate)] == [1, 1, 2, 2, 2]

    async def test_counter_and_wrap_over_several_laps(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)
        # lap 2 is counted early, lap 3 only by the distance wrap
        laps = [1, 2, 2, 2, 2, 2, 3]
        data = [TelemetryRecord(r.timestamp, r.vehicle_id, lap, r.lap_distance)
                for (r, lap) in zip(records([5300, 5490, 10, 2000, 5490, 10, 100], interval=0.01), laps)]

        session_id = await scheduler.start(data, "Car1")
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        assert [lap.lap_number for lap in sink.of(LapCompleted)] == [1, 2]
        assert [p.telemetry.lap for p in sink.of(PositionUpdate)] == [1, 2, 2, 2, 2, 3, 3]

    async def test_gps_only_sector_crossings(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)
        (latitude, longitude) = COTA.finish_line
        data = [TelemetryRecord(START + timedelta(seconds=i * 0.01), "Car1", 1, None,
                                latitude=latitude + gps_offset(d), longitude=longitude)
                for (i, d) in enumerate([100, 700, 2000, 3000, 4000])]

        session_id = await scheduler.start(data, "Car1")
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        assert [p.position.sector for p in sink.of(PositionUpdate)] == [1, 1, 2, 2, 3]
        crossings = sink.of(SectorCrossing)
        assert [(c.sector, c.entered_sector) for c in crossings] == [(1, 2), (2, 3)]
        assert crossings[0].sector_time == pytest.approx(0.02)

    async def test_caution(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)
        data = [TelemetryRecord(r.timestamp, r.vehicle_id, 7, r.lap_distance, flag=f)
                for (r, f) in zip(records([2000, 2100, 2200, 2300], interval=0.01), ["GF", "FCY", "FCY", "GF"])]

        session_id = await scheduler.start(data, "Car1")
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        cautions = sink.of(CautionFlag)
        assert len(cautions) == 1
        assert cautions[0].flag_type == "FCY"
        assert cautions[0].lap_number == 7
        assert cautions[0].position.sector == 2

        recommendations = sink.of(PitRecommendationUpdate)
        assert len(recommendations) == 1
        assert recommendations[0].recommendation.urgency == PitUrgency.CRITICAL

    async def test_gps_fallback(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)
        record = TelemetryRecord(START, "Car1", 1, None, latitude=COTA.finish_line[0], longitude=COTA.finish_line[1])

        session_id = await scheduler.start([record], "Car1")
        await asyncio.wait_for(scheduler.wait(session_id), 5)

        position = sink.of(PositionUpdate)[0].position
        assert position.latitude == COTA.finish_line[0]
        assert position.lap_distance == pytest.approx(0.0)

    async def test_close(self):
        sink = Recorder()
        scheduler = scheduler_for(sink)

        await scheduler.start(records([100, 200]), "Car1", 0.1)
        await scheduler.start(records([100, 200]), "Car2", 0.1)
        await asyncio.wait_for(scheduler.close(), 2)

        assert scheduler.sessions == []
        assert sink.of(SimulationComplete) == []
