from collections.abc import Callable
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine

from tripload.config import Settings
from tripload.database import build_engine
from tripload.retry import RetryPolicy
from tripload.sink import SqlAlchemyBatchSink

from tests.fakes import RecordingSink


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir(parents=True, exist_ok=True)
    (tmp_path / "outputs").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="tripload",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        log_file="",
        duplicates_path=str(temp_workspace / "outputs" / "duplicates.csv"),
        batch_size=2,
        source_timezone="America/New_York",
        max_write_retries=1,
        retry_backoff_seconds=0,
    )


@pytest.fixture()
def engine(test_settings: Settings) -> Engine:
    return build_engine(test_settings.database_url)


@pytest.fixture()
def sql_sink(engine: Engine) -> SqlAlchemyBatchSink:
    return SqlAlchemyBatchSink(engine, RetryPolicy(max_retries=1, backoff_seconds=0))


@pytest.fixture()
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def write_csv(temp_workspace: Path) -> Callable[..., Path]:
    def _write(lines: list[str], name: str = "trips.csv", encoding: str = "utf-8") -> Path:
        path = temp_workspace / "data" / name
        path.write_text("\n".join(lines) + "\n", encoding=encoding)
        return path

    return _write
