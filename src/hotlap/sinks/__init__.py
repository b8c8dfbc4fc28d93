from .abstract import EventSink as EventSink
from .callbacksink import CallbackSink as CallbackSink
from .capturesink import CaptureSink as CaptureSink
from .signalrsink import SignalRSink as SignalRSink
from .payloads import to_payload as to_payload, dumps as dumps
