from tripload.schemas import TripRecord


class BatchAccumulator:
    def __init__(self, batch_size: int) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.batch_size = batch_size
        self._buffer: list[TripRecord] = []

    def add(self, record: TripRecord) -> None:
        self._buffer.append(record)

    def should_flush(self) -> bool:
        return len(self._buffer) >= self.batch_size

    def drain(self) -> list[TripRecord]:
        # Swap, not clear: the returned list is handed to the sink.
        batch, self._buffer = self._buffer, []
        return batch

    def __len__(self) -> int:
        return len(self._buffer)
