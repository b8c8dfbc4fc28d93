import orjson
import pysignalr.client

from hotlap.events import SinkEvent
from hotlap.sinks.abstract import EventSink
from hotlap.sinks.payloads import METHODS, dumps

class SignalRSink(EventSink):
    """Pushes events to a SignalR hub, one hub method per event type"""

    client: pysignalr.client.SignalRClient

    def __init__(self, client: pysignalr.client.SignalRClient, session_group: str | None = None):
        super().__init__()
        self.client = client
        self.session_group = session_group

    async def _deliver(self, event: SinkEvent) -> None:
        # round-trip through orjson so nested dataclasses and datetimes go out as plain JSON types
        payload = orjson.loads(dumps(event))
        arguments = [payload] if self.session_group is None else [self.session_group, payload]
        await self.client.send(METHODS[type(event)], arguments)

    async def run(self) -> None:
        await self.client.run()
