from collections.abc import Callable, Iterator
from contextlib import ExitStack
from enum import Enum
import logging
from pathlib import Path
from typing import Protocol

from tripload.batching import BatchAccumulator
from tripload.config import Settings
from tripload.database import build_engine
from tripload.dedup import InMemoryKeyIndex, KeyIndex
from tripload.duplicates import DuplicateSink
from tripload.normalizer import RecordNormalizer
from tripload.retry import RetryPolicy
from tripload.row_source import CsvRowSource, RowSource
from tripload.schemas import RawRow, Rejected, RunCounters
from tripload.sink import BatchSink, SqlAlchemyBatchSink


logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    START = "start"
    HEADER_READ = "header_read"
    ROW_LOOP = "row_loop"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


class IngestionPipeline:
    def __init__(
        self,
        sink: BatchSink,
        *,
        normalizer: RecordNormalizer | None = None,
        batch_size: int = 10000,
        key_index_factory: Callable[[], KeyIndex] = InMemoryKeyIndex,
        row_source_factory: Callable[[Path], RowSource] = CsvRowSource,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.sink = sink
        self.normalizer = normalizer or RecordNormalizer()
        self.batch_size = batch_size
        self.key_index_factory = key_index_factory
        self.row_source_factory = row_source_factory
        self.state = PipelineState.START
        self.counters = RunCounters()

    def run(
        self,
        source_path: Path,
        duplicates_path: Path,
        cancel_event: CancelSignal | None = None,
    ) -> RunCounters:
        # Every run starts from empty state; nothing carries over between runs.
        self.state = PipelineState.START
        self.counters = RunCounters()
        key_index = self.key_index_factory()
        accumulator = BatchAccumulator(self.batch_size)

        with ExitStack() as stack:
            try:
                source = stack.enter_context(self.row_source_factory(source_path))
                self.sink.ensure_destination()
                duplicate_sink = stack.enter_context(DuplicateSink(duplicates_path))

                self.state = PipelineState.HEADER_READ
                header = source.read_header()
            except Exception:
                self.state = PipelineState.FAILED
                logger.exception("ingestion setup failed", extra={"source": str(source_path)})
                raise

            if header is None:
                logger.info("no data found, nothing to process", extra={"source": str(source_path)})
                self.state = PipelineState.DONE
                return self.counters

            try:
                self.state = PipelineState.ROW_LOOP
                self._row_loop(iter(source), key_index, accumulator, duplicate_sink, cancel_event)

                self.state = PipelineState.DRAINING
                self._flush(accumulator)
            except Exception:
                self.state = PipelineState.FAILED
                logger.exception(
                    "ingestion aborted",
                    extra={
                        "source": str(source_path),
                        "inserted": self.counters.inserted,
                        "duplicates": self.counters.duplicates,
                        "errors": self.counters.errors,
                    },
                )
                raise

        self.state = PipelineState.DONE
        logger.info(
            "ingestion completed",
            extra={
                "source": str(source_path),
                "inserted": self.counters.inserted,
                "duplicates": self.counters.duplicates,
                "errors": self.counters.errors,
                "defaulted_rows": self.counters.defaulted_rows,
                "cancelled": self.counters.cancelled,
            },
        )
        return self.counters

    def _row_loop(
        self,
        rows: Iterator[RawRow],
        key_index: KeyIndex,
        accumulator: BatchAccumulator,
        duplicate_sink: DuplicateSink,
        cancel_event: CancelSignal | None,
    ) -> None:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                self.counters.cancelled = True
                logger.warning("cancellation requested, draining buffered records")
                return

            row = next(rows, None)
            if row is None:
                return

            try:
                flush_due = self._route(row, key_index, accumulator, duplicate_sink)
            except Exception:
                self.counters.errors += 1
                logger.warning(
                    "skipping malformed row",
                    exc_info=True,
                    extra={"line": row.line_number, "row": "|".join(row.fields) or "(empty)"},
                )
                continue

            # Sink faults are outside the row boundary and abort the run.
            if flush_due:
                self._flush(accumulator)

    def _route(
        self,
        row: RawRow,
        key_index: KeyIndex,
        accumulator: BatchAccumulator,
        duplicate_sink: DuplicateSink,
    ) -> bool:
        result = self.normalizer.normalize(row)
        if isinstance(result, Rejected):
            self.counters.errors += 1
            self.counters.rejections[result.reason.value] += 1
            logger.debug(
                "row rejected",
                extra={"line": row.line_number, "reason": result.reason.value, "detail": result.detail},
            )
            return False

        record = result.record
        if result.defaulted_fields:
            self.counters.defaulted_rows += 1
        if key_index.observe(record.dedup_key()):
            accumulator.add(record)
            return accumulator.should_flush()

        duplicate_sink.write(record)
        self.counters.duplicates += 1
        return False

    def _flush(self, accumulator: BatchAccumulator) -> None:
        if not len(accumulator):
            return
        batch = accumulator.drain()
        self.sink.write(batch)
        self.counters.inserted += len(batch)


def build_pipeline(settings: Settings, *, batch_size: int | None = None) -> IngestionPipeline:
    sink = SqlAlchemyBatchSink(
        build_engine(settings.database_url),
        RetryPolicy(
            max_retries=settings.max_write_retries,
            backoff_seconds=settings.retry_backoff_seconds,
        ),
    )
    return IngestionPipeline(
        sink,
        normalizer=RecordNormalizer(settings.source_timezone),
        batch_size=batch_size or settings.batch_size,
    )
