"""
Reporting sinks for qualifying opportunities.

The monitor hands each OpportunityRecord to a sink; formatting, persistence
and any follow-up action live here, never in the evaluation core.
"""

from pathlib import Path as FilePath
from typing import Iterable, List, Protocol, Union, runtime_checkable

from .opportunity_math import format_opportunity
from .types import OpportunityRecord
from .utils import get_logger, safe_json_dump

logger = get_logger(__name__)


@runtime_checkable
class Sink(Protocol):
    """Protocol for opportunity consumers."""

    def emit(self, record: OpportunityRecord) -> None:
        ...


class LogSink:
    """Writes one formatted line per opportunity to the project logger."""

    def __init__(self, name: str = "amm_arb.opportunities"):
        self.logger = get_logger(name)

    def emit(self, record: OpportunityRecord) -> None:
        self.logger.info(
            f"[tick {record.tick}] PROFITABLE {format_opportunity(record.opportunity)}"
        )


class JsonlSink:
    """Appends each record as one JSON object per line."""

    def __init__(self, path: Union[str, FilePath]):
        self.path = FilePath(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: OpportunityRecord) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(safe_json_dump(record.to_dict(), indent=None) + "\n")


class CollectingSink:
    """Keeps records in memory (single-scan runs and tests)."""

    def __init__(self):
        self.records: List[OpportunityRecord] = []

    def emit(self, record: OpportunityRecord) -> None:
        self.records.append(record)

    def clear(self) -> None:
        self.records.clear()


class MultiSink:
    """Fans each record out to several sinks in order."""

    def __init__(self, sinks: Iterable[Sink]):
        self.sinks = list(sinks)

    def emit(self, record: OpportunityRecord) -> None:
        for sink in self.sinks:
            sink.emit(record)
