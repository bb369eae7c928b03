"""
CSV parsing for the bulk import pipeline.

The dialect is deliberately small: comma is the only delimiter, a double
quote toggles quoted state (so commas inside quotes do not split), quote
characters are dropped from the output and every field is trimmed. Blank
lines are ignored before rows are counted; the first remaining line is the
header and data rows are numbered from 2.

Quoted fields spanning several lines are not supported. A data line with
unbalanced quotes fails on its own with an "unterminated quoted field"
error; an unbalanced header makes the whole file unusable.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from app.core.exceptions import EmptyFileError, ImportPreconditionError, RowValidationError, UnreadableFileError

logger = logging.getLogger("cronos.imports.parser")

BOM = "\ufeff"
QUOTE = '"'
DELIMITER = ","
FIRST_DATA_ROW = 2
_LINE_BREAK = re.compile(r"\r?\n")


def split_lines(content: str) -> List[str]:
    """
    Split raw text into lines, dropping lines that are blank after trimming.

    Handles both \\n and \\r\\n line endings.
    """
    return [line for line in _LINE_BREAK.split(content) if line.strip()]


def parse_csv_row(line: str) -> List[str]:
    """
    Split one CSV line into trimmed field values.

    Args:
        line: A single line of text

    Returns:
        List[str]: Field values in column order

    Example:
        >>> parse_csv_row('a,"b,c",d')
        ['a', 'b,c', 'd']
    """
    values: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == QUOTE:
            in_quotes = not in_quotes
        elif char == DELIMITER and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    values.append("".join(current).strip())
    return values


def has_unbalanced_quotes(line: str) -> bool:
    return line.count(QUOTE) % 2 == 1


def build_record(headers: List[str], values: List[str]) -> Dict[str, str]:
    """
    Zip header names with values; columns without a value become "".

    Values beyond the last header are ignored.
    """
    return {header: values[index] if index < len(values) else "" for index, header in enumerate(headers)}


@dataclass
class CsvRow:
    """One data line of the file."""
    row_number: int
    line: str
    values: List[str] = field(default_factory=list)

    @property
    def unterminated(self) -> bool:
        return has_unbalanced_quotes(self.line)

    def check(self) -> None:
        """Raise a row validation error if the line cannot be trusted."""
        if self.unterminated:
            raise RowValidationError(
                "Unterminated quoted field: quoted values cannot span lines",
                details={"row_number": self.row_number},
            )


@dataclass
class ParsedFile:
    """Header plus data rows of an import file."""
    headers: List[str]
    rows: List[CsvRow]

    @property
    def total_records(self) -> int:
        return len(self.rows)

    def records(self) -> Iterator[tuple]:
        """Yield (row, record) pairs in file order."""
        for row in self.rows:
            yield row, build_record(self.headers, row.values)


def parse_csv_content(content: str) -> ParsedFile:
    """
    Parse a whole file into header and data rows.

    Args:
        content: Decoded file text

    Returns:
        ParsedFile: Parsed header and rows

    Raises:
        EmptyFileError: No non-blank line at all
        UnreadableFileError: Content looks binary
        ImportPreconditionError: Header line is malformed
    """
    if "\x00" in content:
        raise UnreadableFileError("The file contains binary data and cannot be read as CSV text")

    lines = split_lines(content)
    if not lines:
        raise EmptyFileError("The file is empty")

    header_line = lines[0].lstrip(BOM)
    if has_unbalanced_quotes(header_line):
        raise ImportPreconditionError(
            "Malformed header: unterminated quoted field",
            details={"header": header_line},
        )

    headers = parse_csv_row(header_line)
    if not any(headers):
        raise ImportPreconditionError("Malformed header: no column names found")

    rows = [
        CsvRow(row_number=index + FIRST_DATA_ROW, line=line, values=parse_csv_row(line))
        for index, line in enumerate(lines[1:])
    ]

    logger.debug(f"Parsed {len(rows)} data rows with columns {headers}")
    return ParsedFile(headers=headers, rows=rows)
