import logging
from abc import ABC, abstractmethod

from hotlap.events import SinkEvent

class EventSink(ABC):
    """
    Where the scheduler sends everything it computes. A sink that fails to
    deliver logs the failure and carries on: one bad broadcast shouldn't stop
    a replay.
    """

    def __init__(self):
        self._log = logging.getLogger(__name__)

    async def publish(self, event: SinkEvent) -> None:
        try:
            await self._deliver(event)
        except Exception:
            self._log.exception("Failed to deliver %s", type(event).__name__)

    @abstractmethod
    async def _deliver(self, event: SinkEvent) -> None:
        ...

    async def close(self) -> None:
        ...
