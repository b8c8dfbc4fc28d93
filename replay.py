#!/usr/bin/env python

import csv
import sys
from anyio import run
import os
import argparse
import logging

from hotlap import PlaybackScheduler, LapIntegrityCorrector
from hotlap.adapters import CsvAdapter, EOS
from hotlap.events import WeatherRecord
from hotlap.parser import parse_benchmark
from hotlap.sinks import CaptureSink

def load_benchmark(filename: str | None):
    if filename is None:
        return None

    with open(filename, newline="") as f:
        return parse_benchmark(csv.DictReader(f))

async def main():
    if args.output is not None:
        if os.path.exists(args.output):
            os.remove(args.output)

        os.mkfifo(args.output)
        output = open(args.output, "a")
    else:
        output = sys.stdout

    adapter = CsvAdapter(args.input, args.vehicle, corrector=LapIntegrityCorrector())
    records = await adapter.collect()

    weather = WeatherRecord(track_temperature=args.track_temp) if args.track_temp is not None else None
    sink = CaptureSink(output)
    scheduler = PlaybackScheduler(sink,
                                  benchmark=load_benchmark(args.benchmark),
                                  weather=weather,
                                  total_laps=args.laps,
                                  max_gap=5)

    session_id = await scheduler.start(records, args.vehicle, args.multiplier)
    try:
        await scheduler.wait(session_id)
    finally:
        await scheduler.close()
        await sink.close()

if __name__ == "__main__":
    try:
        global args
        parser = argparse.ArgumentParser()
        parser.add_argument("-i", "--input", required=True)
        parser.add_argument("-o", "--output")
        parser.add_argument("-x", "--multiplier", type=float, default=1.0)
        parser.add_argument("-v", "--vehicle", default="Car1")
        parser.add_argument("-b", "--benchmark")
        parser.add_argument("-l", "--laps", type=int, default=30)
        parser.add_argument("-t", "--track-temp", type=float)
        parser.add_argument("-d", "--debug", action="store_true")
        args = parser.parse_args()

        logging.basicConfig(
            format="%(asctime)s %(name)s: %(message)s",
            level=logging.DEBUG if args.debug else logging.INFO,
            stream=sys.stderr,
        )

        run(main)
    except (KeyboardInterrupt,BrokenPipeError,EOS):
        ...
    finally:
        try:
            if args.output is not None:
                os.remove(args.output)
        except (NameError,FileNotFoundError):
            ...
