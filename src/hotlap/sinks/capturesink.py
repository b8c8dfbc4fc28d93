import sys
import time
from typing import TextIO

from hotlap.events import SinkEvent
from hotlap.sinks.abstract import EventSink
from hotlap.sinks.payloads import dumps, event_name

class CaptureSink(EventSink):
    """Writes events as `ts:EventName:json` lines, one per event"""

    def __init__(self, output: TextIO | None = None):
        super().__init__()
        self.output = output if output is not None else sys.stdout

    async def _deliver(self, event: SinkEvent) -> None:
        self.output.write(f"{time.time_ns()}:{event_name(event)}:{dumps(event).decode()}\n")
        self.output.flush()

    async def close(self) -> None:
        if self.output is not sys.stdout:
            self.output.close()
