from abc import ABC, abstractmethod
from asyncio import gather
from collections.abc import AsyncIterator, Callable
from typing import Any, Coroutine, List

from hotlap.events import TelemetryRecord

class EOS(Exception):
    """Raised when an adapter reaches the end of its telemetry stream"""
    pass

class TelemetryAdapter(ABC):
    """Source of parsed telemetry, consumed one record at a time"""

    record_callbacks: List[Callable[[TelemetryRecord], Any]]
    records_read: int

    def __init__(self):
        self.record_callbacks = list()
        self.records_read = 0

    @abstractmethod
    def records(self) -> AsyncIterator[TelemetryRecord]:
        ...

    def on_record(self, callback: Callable[[TelemetryRecord], Any]) -> None:
        self.record_callbacks.append(callback)

    async def run(self) -> None:
        """Pushes every record to the registered callbacks"""
        async for record in self.records():
            await self._record(record)

    async def collect(self) -> List[TelemetryRecord]:
        """Reads the whole stream; only for sources small enough to replay from memory"""
        return [record async for record in self.records()]

    async def _record(self, record: TelemetryRecord) -> None:
        self.records_read += 1
        futures = list()
        for callback in self.record_callbacks:
            future = callback(record)
            if not isinstance(future, Coroutine):
                continue
            futures.append(future)
        await gather(*futures)
