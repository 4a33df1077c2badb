# dbxl/converters.py
"""
Delimited file to spreadsheet converters.

Two interchangeable strategies produce the same workbook from the same input:

* ``NativeConverter`` runs a prebuilt, statically linked ``csv2xlsx`` binary
  (``csv2xlsx <input> <output>``), which avoids per-row work in Python.
* ``StreamingConverter`` streams rows through openpyxl's write-only workbook.

Both write one worksheet, the header row bold, body rows in 12pt Arial, and
store numeric-looking body cells as numbers.
"""

import logging
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from .defaults import settings
from .delimited import DELIMITED, DelimitedFormat, DelimitedReader, coerce_cell
from .errors import ConversionError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ConversionStyle:
    """Font applied to a row of the output worksheet."""
    font_name: str
    font_size: float
    bold: bool = False

    def font(self) -> Font:
        return Font(name=self.font_name, size=self.font_size, bold=self.bold)


BODY_STYLE = ConversionStyle('Arial', 12)
HEADER_STYLE = ConversionStyle('Arial', 12, bold=True)


class Converter(ABC):
    """
    Turns a file in the shared delimited layout into a spreadsheet.

    Subclasses implement ``convert()`` and raise ConversionError on failure. The
    output file may be missing or partially written after a failure.
    """

    name = 'converter'

    @abstractmethod
    def convert(self, delimited_path: PathLike, spreadsheet_path: PathLike) -> None:
        """Write ``spreadsheet_path`` from ``delimited_path``."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class NativeConverter(Converter):
    """
    Run an external converter executable and wait for it to exit.

    Parameters
    ----------
    executable : str, Path or sequence of str
        Path to the converter, or an argv prefix such as
        ``[sys.executable, 'convert.py']``.
    timeout : float, optional
        Seconds to wait before killing the converter. Defaults to the
        ``native_converter_timeout`` setting (None waits forever).

    Example
    -------
    ::

        converter = NativeConverter('/opt/csv2xlsx/csv2xlsx')
        converter.convert('/tmp/tmp_3fa1c09b2e.csv', '/tmp/tmp_3fa1c09b2e.xlsx')
    """

    name = 'native'

    def __init__(self, executable: Union[PathLike, Sequence[str]], timeout: Optional[float] = None):
        if isinstance(executable, (str, Path)):
            self.command = [str(executable)]
        else:
            self.command = [str(part) for part in executable]
        if not self.command:
            raise ValueError("executable must not be empty")
        self.timeout = timeout if timeout is not None else settings.get('native_converter_timeout')

    @staticmethod
    def locate() -> Optional[str]:
        """The ``native_converter`` setting, else ``csv2xlsx`` on PATH, else None."""
        configured = settings.get('native_converter')
        if configured:
            return str(configured) if Path(configured).is_file() else None
        return shutil.which('csv2xlsx')

    def convert(self, delimited_path: PathLike, spreadsheet_path: PathLike) -> None:
        args = self.command + [str(delimited_path), str(spreadsheet_path)]
        logger.debug(f"Running native converter: {args}")
        try:
            result = subprocess.run(args, stdin=subprocess.DEVNULL, capture_output=True,
                                    timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired as e:
            raise ConversionError(f"Native converter timed out after {self.timeout}s",
                                  path=str(delimited_path)) from e
        except OSError as e:
            raise ConversionError(f"Could not launch native converter {self.command[0]}: {e}",
                                  path=str(delimited_path)) from e

        if result.stderr:
            logger.debug(f"Native converter stderr: {result.stderr.decode('utf-8', 'replace').strip()}")
        if result.returncode != 0:
            raise ConversionError(
                f"Native converter exited with status {result.returncode} for {delimited_path}",
                path=str(delimited_path), returncode=result.returncode)
        if not Path(spreadsheet_path).is_file():
            raise ConversionError(f"Native converter produced no file at {spreadsheet_path}",
                                  path=str(delimited_path), returncode=result.returncode)
        logger.info(f"Converted {delimited_path} -> {spreadsheet_path} (native)")

    def __repr__(self) -> str:
        return f"NativeConverter({self.command!r})"


class StreamingConverter(Converter):
    """
    Convert in-process with openpyxl's write-only workbook.

    Rows are read and written one at a time. The workbook is saved only after
    the last row has been read, so malformed input raises ConversionError
    without leaving a truncated spreadsheet behind.

    Parameters
    ----------
    body_style : ConversionStyle, default BODY_STYLE
        Font for data rows
    header_style : ConversionStyle, default HEADER_STYLE
        Font for the first row
    sheet_title : str, default 'Data'
        Worksheet name
    fmt : DelimitedFormat, default DELIMITED
        Input layout
    """

    name = 'streaming'

    def __init__(self,
                 body_style: ConversionStyle = BODY_STYLE,
                 header_style: ConversionStyle = HEADER_STYLE,
                 sheet_title: str = 'Data',
                 fmt: DelimitedFormat = DELIMITED):
        self.body_style = body_style
        self.header_style = header_style
        self.sheet_title = sheet_title
        self.fmt = fmt
        self.width_sample_size = settings.get('column_width_sample', 15)

    def _cells(self, worksheet, values: List, font: Font) -> List[WriteOnlyCell]:
        cells = []
        for value in values:
            cell = WriteOnlyCell(worksheet, value=value)
            cell.font = font
            cells.append(cell)
        return cells

    def _set_column_widths(self, worksheet, header: List[str], sample: List[List]) -> None:
        """Must run before the first append in write-only mode."""
        column_widths = [len(col) for col in header]
        for row in sample:
            for idx, value in enumerate(row):
                column_widths[idx] = max(column_widths[idx], len(str(value)))
        for col_idx, width in enumerate(column_widths, 1):
            worksheet.column_dimensions[get_column_letter(col_idx)].width = min(max(width + 2, 6), 60)

    def convert(self, delimited_path: PathLike, spreadsheet_path: PathLike) -> None:
        header_font = self.header_style.font()
        body_font = self.body_style.font()
        row_count = 0

        workbook = Workbook(write_only=True)
        with closing(workbook), DelimitedReader.open(delimited_path, self.fmt) as reader:
            worksheet = workbook.create_sheet(self.sheet_title)
            header = reader.headers
            rows = iter(reader)
            try:
                sample = []
                for row in rows:
                    sample.append([coerce_cell(value) for value in row])
                    if len(sample) >= self.width_sample_size:
                        break
                self._set_column_widths(worksheet, header, sample)

                worksheet.append(self._cells(worksheet, header, header_font))
                for values in sample:
                    worksheet.append(self._cells(worksheet, values, body_font))
                    row_count += 1
                for row in rows:
                    worksheet.append(self._cells(worksheet, [coerce_cell(value) for value in row], body_font))
                    row_count += 1
            except IllegalCharacterError as e:
                raise ConversionError(f"Row {row_count + 1} of {delimited_path} contains characters "
                                      f"a spreadsheet cannot store: {e}", path=str(delimited_path)) from e

            try:
                workbook.save(str(spreadsheet_path))
            except OSError as e:
                raise ConversionError(f"Could not save spreadsheet {spreadsheet_path}: {e}",
                                      path=str(delimited_path)) from e

        logger.info(f"Converted {row_count} rows from {delimited_path} -> {spreadsheet_path} (streaming)")


def default_converter(platform: Optional[str] = None) -> Converter:
    """
    Converter for the current platform.

    The native binary is used outside Windows when it can be located; otherwise
    the in-process streaming converter is used. Call once and inject the result.
    """
    platform = platform or sys.platform
    if not platform.startswith('win'):
        executable = NativeConverter.locate()
        if executable:
            logger.debug(f"Selected native converter {executable}")
            return NativeConverter(executable)
    logger.debug(f"Selected streaming converter for platform {platform}")
    return StreamingConverter()
