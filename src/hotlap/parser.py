"""
Turns raw logger rows into TelemetryRecords.

Rows are consumed lazily, one at a time, so multi-gigabyte exports can be
replayed without ever holding the whole file. A bad row is logged and skipped;
it never ends the stream.
"""

import csv
import logging
import math
import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime, timedelta
from typing import Any, TextIO

from hotlap.events import TelemetryRecord, LapData, BestLapBenchmark
from hotlap.laps import LAP_SENTINEL, LapIntegrityCorrector
from hotlap.track import COTA, TrackConfig, normalize, sector_for

# logger channel names, with the friendlier spellings some exports use
FIELDS: dict[str, tuple[str, ...]] = {
    "timestamp": ("Timestamp", "timestamp", "Time", "time"),
    "lap": ("Lap", "lap"),
    "lap_distance": ("Laptrigger_lapdist_dls", "lap_distance", "LapDistance"),
    "speed": ("vCar", "speed", "Speed"),
    "throttle": ("ath", "throttle", "Throttle"),
    "brake_front": ("pbrake_f", "brake_front"),
    "brake_rear": ("pbrake_r", "brake_rear"),
    "gear": ("gear", "Gear"),
    "steering_angle": ("Steering_Angle", "steering_angle"),
    "acc_x": ("accx_can", "acc_x"),
    "acc_y": ("accy_can", "acc_y"),
    "latitude": ("VBOX_Lat_Min", "latitude", "lat"),
    "longitude": ("VBOX_Long_Min", "longitude", "lon"),
    "flag": ("FLAG_AT_FL", "flag", "Flag"),
}

def field(row: Mapping[str, Any], name: str) -> str | None:
    for key in FIELDS.get(name, (name,)):
        value = row.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value != "":
            return value
    return None

def parse_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None

def parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        # "3.0" from exports that write every channel as a float
        number = parse_float(value)
        if number is None or not number.is_integer():
            return None
        return int(number)

def today() -> datetime:
    return datetime.combine(datetime.now().date(), datetime.min.time())

def parse_timestamp(value: str | None, base: datetime | None = None) -> datetime | None:
    """ISO-8601 text, or a number of seconds since midnight of `base` (today by default)"""
    if value is None:
        return None

    seconds = parse_float(value)
    if seconds is not None:
        if base is None:
            base = today()
        return base + timedelta(seconds=seconds)

    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None

_DURATION = re.compile(r"^(?:(\d+):)?(\d+):(\d+(?:\.\d+)?)$")

def parse_duration(value: str | None) -> float:
    """Seconds from "m:ss.fff", "h:mm:ss.fff" or plain seconds; 0 if unparsable"""
    if value is None or value.strip() == "":
        return 0.0

    value = value.strip()
    match = _DURATION.match(value)
    if match is not None:
        (hours, minutes, seconds) = match.groups()
        return int(hours or 0) * 3600 + int(minutes) * 60 + float(seconds)

    seconds = parse_float(value)
    return seconds if seconds is not None else 0.0

class RecordParser:
    vehicle_id: str
    track: TrackConfig
    corrector: LapIntegrityCorrector | None
    rows_read: int
    rows_skipped: int

    def __init__(self, vehicle_id: str = "Car1", track: TrackConfig = COTA,
                 corrector: LapIntegrityCorrector | None = None,
                 progress_every: int = 10000,
                 base_date: datetime | None = None):
        self.vehicle_id = vehicle_id
        self.track = track
        self.corrector = corrector
        self.progress_every = progress_every
        # one midnight for every numeric timestamp in the file
        self.base_date = base_date if base_date is not None else today()
        self.rows_read = 0
        self.rows_skipped = 0
        self._last_lap = 0
        self._log = logging.getLogger(__name__)

    def parse(self, rows: Iterable[Mapping[str, Any]]) -> Iterator[TelemetryRecord]:
        for row in rows:
            record = self.feed(row)
            if record is not None:
                yield record

        self._log.info("Telemetry stream complete: %d rows, %d skipped", self.rows_read, self.rows_skipped)

    def feed(self, row: Mapping[str, Any]) -> TelemetryRecord | None:
        """Parses the next row of the stream, counting it towards progress"""
        self.rows_read += 1
        record = self.parse_row(row)

        if self.progress_every > 0 and self.rows_read % self.progress_every == 0:
            self._log.info("Processed %d telemetry rows...", self.rows_read)
        return record

    def parse_row(self, row: Mapping[str, Any]) -> TelemetryRecord | None:
        """Returns None (and counts the row as skipped) if it can't be used"""
        try:
            return self._parse_row(row)
        except (ValueError, TypeError, AttributeError, OverflowError) as ex:
            self.rows_skipped += 1
            self._log.warning("Skipping row %d: %s", self.rows_read, ex)
            return None

    def _parse_row(self, row: Mapping[str, Any]) -> TelemetryRecord:
        timestamp = parse_timestamp(field(row, "timestamp"), self.base_date)
        if timestamp is None:
            raise ValueError(f"missing or unparsable timestamp {field(row, 'timestamp')!r}")

        distance = parse_float(field(row, "lap_distance"))
        lap = self._lap(timestamp, distance or 0.0, parse_int(field(row, "lap")))

        return TelemetryRecord(timestamp=timestamp,
                               vehicle_id=self.vehicle_id,
                               lap=lap,
                               lap_distance=distance,
                               speed=parse_float(field(row, "speed")) or 0.0,
                               throttle=parse_float(field(row, "throttle")) or 0.0,
                               brake_front=parse_float(field(row, "brake_front")),
                               brake_rear=parse_float(field(row, "brake_rear")),
                               gear=parse_int(field(row, "gear")),
                               steering_angle=parse_float(field(row, "steering_angle")),
                               acc_x=parse_float(field(row, "acc_x")),
                               acc_y=parse_float(field(row, "acc_y")),
                               latitude=parse_float(field(row, "latitude")),
                               longitude=parse_float(field(row, "longitude")),
                               flag=field(row, "flag") or "",
                               sector=sector_for(normalize(distance or 0.0, self.track), self.track))

    def _lap(self, timestamp: datetime, distance: float, reported: int | None) -> int:
        if self.corrector is not None:
            return self.corrector.fix(timestamp, distance, reported)

        if reported is None or reported == LAP_SENTINEL or reported < 0:
            return self._last_lap

        self._last_lap = reported
        return reported

def read_csv(stream: TextIO, vehicle_id: str = "Car1", **kwargs) -> Iterator[TelemetryRecord]:
    """Lazily parses a CSV export with a header row"""
    return RecordParser(vehicle_id, **kwargs).parse(csv.DictReader(stream))

def parse_lap_results(rows: Iterable[Mapping[str, Any]]) -> list[LapData]:
    """Lap-by-lap results export (Lap, Name, Vehicle, LapTime, S1, S2, S3, Flag, Pos, Valid)"""
    log = logging.getLogger(__name__)
    laps = list()

    for row in rows:
        try:
            laps.append(LapData(lap_number=parse_int(field(row, "Lap")) or 0,
                                vehicle_id=field(row, "Vehicle") or "",
                                driver_name=field(row, "Name") or "",
                                lap_time=parse_duration(field(row, "LapTime")),
                                s1=parse_duration(field(row, "S1")),
                                s2=parse_duration(field(row, "S2")),
                                s3=parse_duration(field(row, "S3")),
                                flag=field(row, "Flag") or "",
                                valid=(field(row, "Valid") or "").lower() != "false",
                                position=parse_int(field(row, "Pos")) or 0))
        except (ValueError, TypeError) as ex:
            log.warning("Skipping lap row: %s", ex)

    log.info("Loaded %d laps", len(laps))
    return laps

def parse_benchmark(rows: Iterable[Mapping[str, Any]]) -> BestLapBenchmark | None:
    """The first row of a best-lap export, or None if it's empty"""
    for row in rows:
        return BestLapBenchmark(lap_time=parse_duration(field(row, "LapTime")),
                                s1=parse_duration(field(row, "S1")),
                                s2=parse_duration(field(row, "S2")),
                                s3=parse_duration(field(row, "S3")),
                                driver_name=field(row, "Name") or "",
                                lap_number=parse_int(field(row, "Lap")) or 0)
    return None
