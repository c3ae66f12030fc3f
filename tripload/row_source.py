import csv
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType
from typing import Any, Protocol, TextIO

from tripload.schemas import HeaderMap, RawRow


class RowSource(Protocol):
    def __enter__(self) -> "RowSource": ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None: ...

    def read_header(self) -> HeaderMap | None: ...

    def __iter__(self) -> Iterator[RawRow]: ...


class CsvRowSource:
    def __init__(self, path: Path, delimiter: str = ",") -> None:
        self.path = path
        self.delimiter = delimiter
        self._infile: TextIO | None = None
        self._reader: Any = None
        self._header: HeaderMap | None = None

    def open(self) -> "CsvRowSource":
        if not self.path.is_file():
            raise FileNotFoundError(f"input file not found: {self.path}")
        # utf-8-sig drops a leading byte order mark; undecodable bytes become U+FFFD in their own field.
        self._infile = self.path.open("r", encoding="utf-8-sig", errors="replace", newline="")
        self._reader = csv.reader(self._infile, delimiter=self.delimiter)
        return self

    def close(self) -> None:
        if self._infile is not None:
            self._infile.close()
        self._infile = None
        self._reader = None

    def read_header(self) -> HeaderMap | None:
        fields = self._next_fields()
        if fields is None:
            return None
        self._header = HeaderMap.from_names(fields)
        return self._header

    def __iter__(self) -> Iterator[RawRow]:
        if self._header is None:
            raise RuntimeError("read_header() must be called before iterating rows")
        while True:
            fields = self._next_fields()
            if fields is None:
                return
            yield RawRow(fields=fields, header=self._header, line_number=self._line_number())

    def _next_fields(self) -> list[str] | None:
        if self._reader is None:
            raise RuntimeError(f"row source for {self.path} is not open")
        for fields in self._reader:
            stripped = [field.strip() for field in fields]
            if any(stripped):
                return stripped
        return None

    def _line_number(self) -> int:
        return self._reader.line_num if self._reader is not None else 0

    def __enter__(self) -> "CsvRowSource":
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
