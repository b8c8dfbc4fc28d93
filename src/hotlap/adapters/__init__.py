from .abstract import EOS as EOS, TelemetryAdapter as TelemetryAdapter
from .csvadapter import CsvAdapter as CsvAdapter
