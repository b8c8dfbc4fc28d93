#!/usr/bin/env python

import asyncio
import sys
import argparse
import time
import os
import logging

from colorist import Color

from hotlap import PlaybackScheduler, LapIntegrityCorrector
from hotlap.adapters import CsvAdapter
from hotlap.events import SectorCrossing, LapCompleted, PitRecommendationUpdate, CautionFlag, SimulationStatus, \
                          SimulationComplete, PitUrgency, SectorStatus, WeatherRecord
from hotlap.sinks import CallbackSink
from replay import load_benchmark

logging.basicConfig(
    format="%(asctime)s %(name)s: %(message)s",
    level=logging.WARNING,
)

STATUS_COLORS = {
    SectorStatus.AHEAD: Color.MAGENTA,
    SectorStatus.CLOSE: Color.GREEN,
    SectorStatus.BEHIND: Color.YELLOW,
}

URGENCY_COLORS = {
    PitUrgency.INFO: Color.GREEN,
    PitUrgency.ADVISORY: Color.CYAN,
    PitUrgency.WARNING: Color.YELLOW,
    PitUrgency.CRITICAL: Color.RED,
}

def on_sector_crossing(crossing: SectorCrossing) -> None:
    line = f"\tLap {crossing.lap_number} sector {crossing.sector}: {crossing.sector_time:.3f}s"
    for delta in crossing.deltas or ():
        if delta.sector == crossing.sector:
            line = f"{STATUS_COLORS[delta.status]}{line} ({delta.delta:+.3f}){Color.OFF}"
    print(line)

def on_lap_completed(lap: LapCompleted) -> None:
    if lap.lap_time is None:
        print(f"{Color.BLUE}Lap {lap.lap_number} complete (untimed){Color.OFF}")
    else:
        print(f"{Color.BLUE}Lap {lap.lap_number} complete: {lap.lap_time:.3f}s{Color.OFF}")

    if args.to > 0 and lap.lap_number >= args.to:
        # exceptions from callbacks never reach the replay loop, so stop it directly
        scheduler.stop(session_id)

def on_pit_recommendation(update: PitRecommendationUpdate) -> None:
    recommendation = update.recommendation
    if recommendation.urgency < args.urgency:
        return

    print(f"{URGENCY_COLORS[recommendation.urgency]}{recommendation.display_message()}{Color.OFF}")
    for factor in recommendation.factors:
        print(f"{URGENCY_COLORS[recommendation.urgency]}\t{factor}{Color.OFF}")

def on_caution_flag(flag: CautionFlag) -> None:
    print(f"{Color.RED}{flag.flag_type} on lap {flag.lap_number} at {flag.position.track_zone}{Color.OFF}")

def on_status(status: SimulationStatus) -> None:
    state = "running" if status.running else "stopped"
    print(f"{Color.GREEN}Replay {state} at {status.speed_multiplier:.1f}x ({status.progress_percent:.0f}%){Color.OFF}")

def on_complete(complete: SimulationComplete) -> None:
    print(f"{Color.GREEN}Replayed {complete.records_played} records for {complete.vehicle_id}{Color.OFF}")

async def replay():
    global scheduler, session_id

    sink = CallbackSink()
    sink.on_sector_crossing(on_sector_crossing)
    sink.on_lap_completed(on_lap_completed)
    sink.on_pit_recommendation(on_pit_recommendation)
    sink.on_caution_flag(on_caution_flag)
    sink.on_status(on_status)
    sink.on_complete(on_complete)

    adapter = CsvAdapter(args.input, args.vehicle, corrector=LapIntegrityCorrector())
    records = await adapter.collect()

    weather = WeatherRecord(track_temperature=args.track_temp)
    print(f"{Color.GREEN}Track {weather.track_temperature:.0f}C, grip {weather.grip_level():.2f}{Color.OFF}")

    scheduler = PlaybackScheduler(sink, benchmark=load_benchmark(args.benchmark), weather=weather,
                                  total_laps=args.laps, max_gap=5)
    session_id = await scheduler.start(records, args.vehicle, args.multiplier)
    await scheduler.wait(session_id)

def main():
    if args.input != "-":
        for i in range(20):
            if os.path.exists(args.input):
                break
            print(f"Waiting for {args.input}: {i}")
            time.sleep(1)

        if not os.path.exists(args.input):
            print(f"{args.input} didn't exist within 20 seconds")
            sys.exit(255)

    asyncio.run(replay())

if __name__ == "__main__":
    global args

    parser = argparse.ArgumentParser()
    parser.add_argument("-i", "--input", default="-")
    parser.add_argument("-v", "--vehicle", default="Car1")
    parser.add_argument("-x", "--multiplier", type=float, default=1.0)
    parser.add_argument("-b", "--benchmark")
    parser.add_argument("-l", "--laps", type=int, default=30)
    parser.add_argument("-t", "--to", default=0, type=int)
    parser.add_argument("--track-temp", type=float, default=35.0)
    parser.add_argument("-u", "--urgency", type=int, default=PitUrgency.ADVISORY,
                        help="Only show pit calls at least this urgent (0-3)")
    args = parser.parse_args()

    try:
        main()
    except (KeyboardInterrupt, BrokenPipeError):
        ...
