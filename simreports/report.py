"""CSV report files keyed by report type, with configurable naming."""

from __future__ import annotations

import csv
import dataclasses
import errno
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Hashable, Iterable

logger = logging.getLogger(__name__)

_NO_WRITER = "No writer found for the report type"


class ReportError(OSError):
    """Raised when a report file cannot be created."""


@dataclass
class ReportOptions:
    """How report files are named and whether existing files may be replaced.

    ``file_prefix`` precedes the report name in the file name, ``output_dir``
    is where the files are written and ``overwrite`` allows replacing files
    that already exist.
    """

    file_prefix: str = ""
    output_dir: Path = field(default_factory=Path.cwd)
    overwrite: bool = False

    def __post_init__(self) -> None:
        self.output_dir = Path(self.output_dir)


def format_float(value: float, digits: int) -> str:
    """Format ``value`` with exactly ``digits`` digits after the point."""
    return f"{value:.{digits}f}"


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class _ReportFile:
    handle: IO[str]
    writer: Any
    header_written: bool


class Reports:
    """A set of open CSV report files, one per report type or key."""

    def __init__(self, options: ReportOptions | None = None) -> None:
        self.options = options if options is not None else ReportOptions()
        self._files: dict[Hashable, _ReportFile] = {}

    def filename(self, short_name: str) -> Path:
        """Return the path of the CSV file for the report ``short_name``."""
        basename = f"{self.options.file_prefix}{short_name}"
        return (self.options.output_dir / basename).with_suffix(".csv")

    def _open(self, key: Hashable, short_name: str, header_written: bool) -> _ReportFile:
        path = self.filename(short_name)
        logger.debug("adding report %s for %r at %s", short_name, key, path)
        try:
            handle = open(path, "x", newline="", encoding="utf-8")
        except FileExistsError as exc:
            if not self.options.overwrite:
                logger.error(
                    "File already exists: %s. Please set `overwrite` to true "
                    "in the file configuration and rerun.",
                    path,
                )
                raise ReportError(errno.EEXIST, "File already exists", str(path)) from exc
            try:
                handle = open(path, "w", newline="", encoding="utf-8")
            except OSError as inner:
                raise ReportError(inner.errno, inner.strerror, str(path)) from inner
        except OSError as exc:
            raise ReportError(exc.errno, exc.strerror, str(path)) from exc

        previous = self._files.pop(key, None)
        if previous is not None:
            previous.handle.close()
        report_file = _ReportFile(
            handle=handle,
            writer=csv.writer(handle, lineterminator="\n"),
            header_written=header_written,
        )
        self._files[key] = report_file
        return report_file

    def add_report(self, report_type: type, short_name: str) -> Path:
        """Open a report file for dataclass instances of ``report_type``.

        The header row is written with the first report sent.
        """
        self._open(report_type, short_name, header_written=False)
        return self.filename(short_name)

    def add_table_report(
        self, key: Hashable, short_name: str, columns: Iterable[str]
    ) -> Path:
        """Open a tabulation report with header ``t``, ``columns`` and ``count``."""
        report_file = self._open(key, short_name, header_written=True)
        report_file.writer.writerow(["t", *columns, "count"])
        report_file.handle.flush()
        return self.filename(short_name)

    def _get(self, key: Hashable) -> _ReportFile:
        try:
            return self._files[key]
        except KeyError:
            raise LookupError(_NO_WRITER) from None

    def send_report(self, report: Any) -> None:
        """Write ``report``, a dataclass instance, as a row of its report file."""
        report_file = self._get(type(report))
        if not dataclasses.is_dataclass(report):
            raise TypeError(f"report must be a dataclass instance, not {type(report).__name__}")
        fields = dataclasses.fields(report)
        if not report_file.header_written:
            report_file.writer.writerow([f.name for f in fields])
            report_file.header_written = True
        report_file.writer.writerow(
            [_format_value(getattr(report, f.name)) for f in fields]
        )
        report_file.handle.flush()

    def write_row(self, key: Hashable, row: Iterable[Any]) -> None:
        """Write a raw row of values to the report registered under ``key``."""
        report_file = self._get(key)
        report_file.writer.writerow([_format_value(value) for value in row])
        report_file.handle.flush()

    def close(self) -> None:
        """Close every open report file."""
        while self._files:
            _, report_file = self._files.popitem()
            report_file.handle.close()

    def __enter__(self) -> Reports:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()