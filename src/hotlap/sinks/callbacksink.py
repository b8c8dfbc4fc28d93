from asyncio import gather
from collections.abc import Callable
from typing import Any, Coroutine, Dict, List

from hotlap.events import SinkEvent, PositionUpdate, TelemetryUpdate, SectorCrossing, LapCompleted, \
    PitRecommendationUpdate, CautionFlag, SimulationStatus, SimulationComplete
from hotlap.sinks.abstract import EventSink

class CallbackSink(EventSink):
    """Fans events out to in-process callbacks, which may be plain functions or coroutines"""

    event_callbacks: List[Callable[[SinkEvent], Any]]
    callbacks: Dict[type, List[Callable[[Any], Any]]]

    def __init__(self):
        super().__init__()
        self.event_callbacks = list()
        self.callbacks = dict()

    def on_event(self, callback: Callable[[SinkEvent], Any]) -> None:
        self.event_callbacks.append(callback)

    def on_position_update(self, callback: Callable[[PositionUpdate], Any]) -> None:
        self.callbacks.setdefault(PositionUpdate, list()).append(callback)

    def on_telemetry_update(self, callback: Callable[[TelemetryUpdate], Any]) -> None:
        self.callbacks.setdefault(TelemetryUpdate, list()).append(callback)

    def on_sector_crossing(self, callback: Callable[[SectorCrossing], Any]) -> None:
        self.callbacks.setdefault(SectorCrossing, list()).append(callback)

    def on_lap_completed(self, callback: Callable[[LapCompleted], Any]) -> None:
        self.callbacks.setdefault(LapCompleted, list()).append(callback)

    def on_pit_recommendation(self, callback: Callable[[PitRecommendationUpdate], Any]) -> None:
        self.callbacks.setdefault(PitRecommendationUpdate, list()).append(callback)

    def on_caution_flag(self, callback: Callable[[CautionFlag], Any]) -> None:
        self.callbacks.setdefault(CautionFlag, list()).append(callback)

    def on_status(self, callback: Callable[[SimulationStatus], Any]) -> None:
        self.callbacks.setdefault(SimulationStatus, list()).append(callback)

    def on_complete(self, callback: Callable[[SimulationComplete], Any]) -> None:
        self.callbacks.setdefault(SimulationComplete, list()).append(callback)

    async def _deliver(self, event: SinkEvent) -> None:
        await self._fire_callbacks(self.event_callbacks + self.callbacks.get(type(event), []), event)

    async def _fire_callbacks(self, callbacks: List[Callable[[Any], Any]], payload: Any) -> None:
        futures = list()
        for callback in callbacks:
            future = callback(payload)
            if not isinstance(future, Coroutine):
                continue
            futures.append(future)
        await gather(*futures)
