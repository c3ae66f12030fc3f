from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    log_file: str
    duplicates_path: str
    batch_size: int
    source_timezone: str
    max_write_retries: int
    retry_backoff_seconds: float


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "tripload"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./trips.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE", ""),
        duplicates_path=os.getenv("DUPLICATES_PATH", "./outputs/duplicates.csv"),
        batch_size=int(os.getenv("BATCH_SIZE", "10000")),
        source_timezone=os.getenv("SOURCE_TIMEZONE", "America/New_York"),
        max_write_retries=int(os.getenv("MAX_WRITE_RETRIES", "2")),
        retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
    )
