from typing import Any, Dict

import orjson

from hotlap.events import SinkEvent, PositionUpdate, TelemetryUpdate, SectorCrossing, LapCompleted, \
    PitRecommendationUpdate, CautionFlag, SimulationStatus, SimulationComplete

# SignalR client method each event is delivered to
METHODS = {
    PositionUpdate: "ReceiveTelemetryUpdate",
    TelemetryUpdate: "ReceiveTelemetryData",
    SectorCrossing: "ReceiveSectorCrossing",
    LapCompleted: "ReceiveLapCompleted",
    PitRecommendationUpdate: "ReceivePitRecommendation",
    CautionFlag: "ReceiveCautionFlag",
    SimulationStatus: "ReceiveSimulationStatus",
    SimulationComplete: "ReceiveSimulationComplete",
}

def event_name(event: SinkEvent) -> str:
    return type(event).__name__

def to_payload(event: SinkEvent) -> Dict[str, Any]:
    """The wire shape of an event; nested records are left for orjson to serialize"""
    if isinstance(event, PositionUpdate):
        return {"sessionId": event.session_id, "telemetry": event.telemetry,
                "position": event.position, "timestamp": event.timestamp}
    elif isinstance(event, TelemetryUpdate):
        return {"sessionId": event.session_id, "speed": event.speed, "brake": event.brake,
                "throttle": event.throttle, "gear": event.gear, "timestamp": event.timestamp}
    elif isinstance(event, SectorCrossing):
        return {"sessionId": event.session_id, "lapNumber": event.lap_number, "sector": event.sector,
                "enteredSector": event.entered_sector, "sectorTimeSeconds": event.sector_time,
                "deltas": event.deltas}
    elif isinstance(event, LapCompleted):
        return {"sessionId": event.session_id, "lapNumber": event.lap_number,
                "lapTimeSeconds": event.lap_time, "deltas": event.deltas}
    elif isinstance(event, PitRecommendationUpdate):
        # the recommendation is sent whole
        return {"sessionId": event.session_id, **event.recommendation.__dict__,
                "urgency": event.recommendation.urgency.name.title(),
                "message": event.recommendation.display_message()}
    elif isinstance(event, CautionFlag):
        return {"sessionId": event.session_id, "flagType": event.flag_type,
                "lapNumber": event.lap_number, "position": event.position}
    elif isinstance(event, SimulationStatus):
        return {"sessionId": event.session_id, "isRunning": event.running,
                "speedMultiplier": event.speed_multiplier, "progressPercent": event.progress_percent,
                "currentIndex": event.current_index, "totalRecords": event.total_records}
    elif isinstance(event, SimulationComplete):
        return {"sessionId": event.session_id, "vehicleId": event.vehicle_id,
                "recordsPlayed": event.records_played}

    raise TypeError(f"Unknown event type {type(event).__name__}")

def dumps(event: SinkEvent) -> bytes:
    return orjson.dumps(to_payload(event), option=orjson.OPT_NON_STR_KEYS)
