import argparse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import signal
import threading

from tripload.config import Settings, get_settings
from tripload.pipeline import build_pipeline


logger = logging.getLogger(__name__)

LOG_FILE_MAX_BYTES = 100_000_000
LOG_FILE_BACKUPS = 31


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load a trip record CSV into the database")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="ingest one CSV file")
    run_parser.add_argument("csv_path", help="Path to the source CSV file")
    run_parser.add_argument("--duplicates", required=False, help="Where to write the duplicate audit CSV")
    run_parser.add_argument("--batch-size", type=int, required=False, help="Rows per database write")

    return parser.parse_args(argv)


def configure_logging(settings: Settings) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


def install_cancel_handlers(cancel_event: threading.Event) -> None:
    def request_cancel(signum: int, _frame: object) -> None:
        logger.warning("signal received, finishing current row", extra={"signal": signum})
        cancel_event.set()

    signal.signal(signal.SIGINT, request_cancel)
    signal.signal(signal.SIGTERM, request_cancel)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    cancel_event = threading.Event()
    install_cancel_handlers(cancel_event)

    pipeline = build_pipeline(settings, batch_size=args.batch_size)
    duplicates_path = Path(args.duplicates or settings.duplicates_path)

    try:
        counters = pipeline.run(Path(args.csv_path), duplicates_path, cancel_event)
    except Exception as exc:
        print(f"status=failed state={pipeline.state.value} error={exc}")
        raise SystemExit(1) from exc

    print(
        "status={status} inserted={inserted} duplicates={duplicates} errors={errors} total={total} cancelled={cancelled} duplicates_file={duplicates_file}".format(
            status="cancelled" if counters.cancelled else "succeeded",
            inserted=counters.inserted,
            duplicates=counters.duplicates,
            errors=counters.errors,
            total=counters.total,
            cancelled=counters.cancelled,
            duplicates_file=duplicates_path,
        )
    )
    if counters.cancelled:
        raise SystemExit(130)


if __name__ == "__main__":
    main()
