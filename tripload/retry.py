from collections.abc import Callable
from dataclasses import dataclass
import time
from typing import TypeVar


T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    backoff_seconds: float = 1.0
    sleep: Callable[[float], None] = time.sleep

    def call(
        self,
        fn: Callable[[], T],
        *,
        should_retry: Callable[[Exception], bool],
        on_failure: Callable[[int, Exception], None] | None = None,
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn()
            except Exception as exc:
                if on_failure:
                    on_failure(attempt, exc)
                if attempt > self.max_retries or not should_retry(exc):
                    raise RetryExhaustedError(str(exc), attempt) from exc
            # Linear backoff: 1x, 2x, 3x ...
            self.sleep(self.backoff_seconds * attempt)
