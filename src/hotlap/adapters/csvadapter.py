import csv
import logging
import sys
from collections.abc import AsyncIterator

from anyio import open_file, wrap_file

from hotlap.adapters.abstract import EOS, TelemetryAdapter
from hotlap.events import TelemetryRecord
from hotlap.laps import LapIntegrityCorrector
from hotlap.parser import RecordParser
from hotlap.track import COTA, TrackConfig

class CsvAdapter(TelemetryAdapter):
    """Streams a logger CSV export (with a header row) from a file, or stdin for "-" """

    def __init__(self, filename: str, vehicle_id: str = "Car1", track: TrackConfig = COTA,
                 corrector: LapIntegrityCorrector | None = None, progress_every: int = 10000):
        super().__init__()
        self.filename = filename
        self.parser = RecordParser(vehicle_id, track, corrector, progress_every)
        self._log = logging.getLogger(__name__)

    async def records(self) -> AsyncIterator[TelemetryRecord]:
        self._log.info("Starting")
        if self.filename == "-":
            in_file = wrap_file(sys.stdin)
        else:
            in_file = await open_file(self.filename, "r", newline="")

        async with in_file:
            self._log.debug("Opened %s", self.filename)
            header = None
            async for line in in_file:
                try:
                    values = self.split_line(line)
                except EOS:
                    self._log.info("End of stream")
                    break

                if header is None:
                    header = values
                    continue

                record = self.parser.feed(dict(zip(header, values)))
                if record is not None:
                    yield record

        self._log.info("Read %d rows, skipped %d", self.parser.rows_read, self.parser.rows_skipped)

    def split_line(self, line: str) -> list[str]:
        line = line.rstrip("\r\n")
        if len(line) == 0:
            raise EOS()
        return next(csv.reader([line]))
