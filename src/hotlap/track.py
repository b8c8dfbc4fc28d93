"""
Maps lap distance (or, failing that, a GPS fix) onto the circuit.

Everything here is a pure function of a TrackConfig, so it's safe to share
between replay sessions.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime

from hotlap.events import TrackPosition

_log = logging.getLogger(__name__)

@dataclass(frozen=True)
class Turn:
    number: int
    name: str
    distance: float
    "Meters from the S/F line"
    direction: str
    gear: int

COTA_TURNS = (
    Turn(1, "Turn 1", 150, "Left", 2),
    Turn(2, "Turn 2", 250, "Left", 2),
    Turn(3, "Turn 3", 450, "Right", 3),
    Turn(4, "Turn 4", 550, "Right", 3),
    Turn(5, "Turn 5", 650, "Right", 3),
    Turn(6, "Turn 6", 850, "Left", 2),
    Turn(7, "Turn 7", 950, "Left", 2),
    Turn(8, "Turn 8", 1100, "Left", 3),
    Turn(9, "Turn 9", 1200, "Left", 2),
    Turn(10, "Turn 10", 1400, "Right", 2),
    Turn(11, "Turn 11", 1700, "Right", 4),
    Turn(12, "Turn 12", 2100, "Left", 2),
    Turn(13, "Turn 13", 2300, "Left", 2),
    Turn(14, "Turn 14", 2500, "Left", 2),
    Turn(15, "Turn 15", 2900, "Left", 3),
    Turn(16, "Turn 16", 3300, "Right", 2),
    Turn(17, "Turn 17", 3500, "Right", 2),
    Turn(18, "Turn 18", 3800, "Left", 2),
    Turn(19, "Turn 19", 4200, "Left", 3),
    Turn(20, "Turn 20", 4600, "Right", 3),
)

# (upper bound, name), checked in order; anything past the last bound is the final straight
COTA_ZONES = (
    (150, "Main Straight"),
    (300, "Turn 1-2 Complex"),
    (700, "Esses (T3-5)"),
    (1000, "Turn 6-7"),
    (1309, "Turn 8-9 (End S1)"),
    (1800, "Turn 10-11"),
    (2600, "Turn 12-14 (Hairpins)"),
    (3549, "Turn 15 (End S2)"),
    (3900, "Turn 16-18"),
    (4700, "Turn 19-20"),
)

@dataclass(frozen=True)
class TrackConfig:
    """Circuit geometry. Defaults describe the Circuit of the Americas."""

    name: str = "Circuit of the Americas"
    length: float = 5498.3
    sector_ends: tuple[float, float] = (1308.8, 3548.8)
    "Cumulative end of sectors 1 and 2; sector 3 runs to the S/F line"

    pit_in: float = 63.42
    pit_in_to_out: float = 6.113
    pit_buffer: float = 50.0
    speed_trap: float = 3.407
    speed_trap_tolerance: float = 20.0
    wrap_near_zero: float = 500
    wrap_near_end: float = 5000
    "A drop from past wrap_near_end to under wrap_near_zero is a S/F crossing"

    turns: tuple[Turn, ...] = COTA_TURNS
    zones: tuple[tuple[float, str], ...] = COTA_ZONES
    final_zone: str = "Final Straight"

    finish_line: tuple[float, float] = (30.1343371, -97.6422583)
    "(lat, lon) of the S/F line"
    gps_scale: float = 1.5

    canvas: tuple[int, int] = (1200, 800)
    center: tuple[float, float] = (600, 400)
    radius: float = 280
    margin: float = 50
    sector_offsets: tuple[tuple[float, float], ...] = ((-50, -80), (100, 20), (-30, 50))
    "Pixel nudges applied per sector to roughly follow the real layout"

COTA = TrackConfig()

def normalize(distance: float, track: TrackConfig = COTA) -> float:
    normalized = math.fmod(distance, track.length)
    if normalized < 0:
        normalized += track.length
    # fmod of a tiny negative can round back up to exactly the length
    if normalized >= track.length:
        normalized = 0.0
    return normalized

def sector_for(distance: float, track: TrackConfig = COTA) -> int:
    """Sector (1-3) for an already-normalized distance"""
    if distance < track.sector_ends[0]:
        return 1
    elif distance < track.sector_ends[1]:
        return 2
    return 3

def distance_into_sector(distance: float, sector: int, track: TrackConfig = COTA) -> float:
    if sector == 1:
        return distance
    return distance - track.sector_ends[sector - 2]

def in_pit_lane(distance: float, track: TrackConfig = COTA) -> bool:
    return track.pit_in <= distance < track.pit_in + track.pit_in_to_out + track.pit_buffer

def at_speed_trap(distance: float, track: TrackConfig = COTA) -> bool:
    return abs(distance - track.speed_trap) < track.speed_trap_tolerance

def nearest_turn(distance: float, track: TrackConfig = COTA) -> Turn | None:
    if len(track.turns) == 0:
        return None
    return min(track.turns, key=lambda t: abs(t.distance - distance))

def zone_name(distance: float, track: TrackConfig = COTA) -> str:
    for (bound, name) in track.zones:
        if distance < bound:
            return name
    return track.final_zone

def to_pixel(distance: float, track: TrackConfig = COTA) -> tuple[float, float]:
    """Places a normalized distance on a circle, then nudges it towards the real track shape"""
    angle = (distance / track.length) * 2 * math.pi - math.pi / 2
    x = track.center[0] + track.radius * math.cos(angle)
    y = track.center[1] + track.radius * math.sin(angle)

    (dx, dy) = track.sector_offsets[sector_for(distance, track) - 1]
    x = min(max(x + dx, track.margin), track.canvas[0] - track.margin)
    y = min(max(y + dy, track.margin), track.canvas[1] - track.margin)
    return (x, y)

def position(distance: float, speed: float | None = None, timestamp: datetime | None = None,
             track: TrackConfig = COTA) -> TrackPosition:
    normalized = normalize(distance, track)
    sector = sector_for(normalized, track)
    turn = nearest_turn(normalized, track)

    return TrackPosition(lap_distance=normalized,
                         sector=sector,
                         distance_into_sector=distance_into_sector(normalized, sector, track),
                         lap_progress_percent=normalized / track.length * 100.0,
                         in_pit_lane=in_pit_lane(normalized, track),
                         at_speed_trap=at_speed_trap(normalized, track),
                         nearest_turn=turn.number if turn is not None else None,
                         track_zone=zone_name(normalized, track),
                         pixel=to_pixel(normalized, track),
                         speed=speed if speed is not None else 0.0,
                         timestamp=timestamp)

def gps_to_distance(latitude: float, longitude: float, track: TrackConfig = COTA) -> float:
    """
    Very rough lap distance from straight-line displacement to the S/F line.

    This ignores the shape of the circuit entirely, so it's only good enough to
    put a marker somewhere plausible when the logger didn't record lap distance.
    """
    lat_diff = latitude - track.finish_line[0]
    lon_diff = longitude - track.finish_line[1]
    meters = math.hypot(lat_diff, lon_diff) * 111000
    return normalize(meters / track.gps_scale * track.length, track)

def position_from_gps(latitude: float, longitude: float, speed: float | None = None,
                      timestamp: datetime | None = None, track: TrackConfig = COTA) -> TrackPosition:
    distance = gps_to_distance(latitude, longitude, track)
    _log.debug("GPS (%f, %f) mapped to %.0fm", latitude, longitude, distance)

    result = position(distance, speed, timestamp, track)
    return replace(result, latitude=latitude, longitude=longitude)

def is_lap_wrap(previous: float, current: float, near_zero: float = 500, near_end: float = 5000) -> bool:
    """True if the distance dropped from the end of the lap back to the start"""
    return current < near_zero and previous > near_end

def distance_between(a: TrackPosition, b: TrackPosition, track: TrackConfig = COTA) -> float:
    """Shortest distance along the lap between two positions, across the S/F line if needed"""
    dist = abs(b.lap_distance - a.lap_distance)
    if dist > track.length / 2:
        dist = track.length - dist
    return dist

def time_to_next_sector(pos: TrackPosition, average_speed: float, track: TrackConfig = COTA) -> float:
    """Seconds until the next sector boundary at average_speed (km/h)"""
    if average_speed <= 0:
        return 0.0

    if pos.sector < 3:
        remaining = track.sector_ends[pos.sector - 1] - pos.lap_distance
    else:
        remaining = track.length - pos.lap_distance
    return remaining / (average_speed / 3.6)
