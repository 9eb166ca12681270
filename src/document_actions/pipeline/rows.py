"""Incremental parsing of delimited tabular attachments."""

import codecs
import csv
import io
from typing import AsyncIterable, Iterable, List

from ..utils.errors import ValidationError

Row = List[str]


class RowParser:
    """Parse CSV bytes chunk by chunk.

    Chunks may split multibyte characters, lines, and quoted fields that
    span several lines; complete records are parsed as soon as they are
    known to be complete. A leading byte-order mark is dropped, cells are
    trimmed, blank lines are skipped and rows may have differing lengths.
    """

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter
        self._decoder = codecs.getincrementaldecoder("utf-8-sig")()
        self._partial_line = ""
        self._record: List[str] = []
        self._quote_count = 0

    def feed(self, chunk: bytes) -> List[Row]:
        """Consume one chunk and return the rows it completed."""
        try:
            text = self._decoder.decode(chunk)
        except UnicodeDecodeError as e:
            raise ValidationError(f"Attachment is not valid UTF-8: {e}") from e
        return self._consume(text)

    def close(self) -> List[Row]:
        """Flush the final, possibly unterminated, record."""
        try:
            text = self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise ValidationError(f"Attachment is not valid UTF-8: {e}") from e
        rows = self._consume(text)

        if self._partial_line:
            self._add_line(self._partial_line)
            self._partial_line = ""
        if self._record:
            if self._quote_count % 2:
                raise ValidationError("Malformed CSV: unterminated quoted field")
            rows.extend(self._flush_record())
        return rows

    def _consume(self, text: str) -> List[Row]:
        rows: List[Row] = []
        lines = (self._partial_line + text).split("\n")
        self._partial_line = lines.pop()
        for line in lines:
            self._add_line(line + "\n")
            # An odd number of quotes so far means a quoted field is still open.
            if self._quote_count % 2 == 0:
                rows.extend(self._flush_record())
        return rows

    def _add_line(self, line: str) -> None:
        self._record.append(line)
        self._quote_count += line.count('"')

    def _flush_record(self) -> List[Row]:
        text = "".join(self._record)
        self._record = []
        self._quote_count = 0
        return list(parse_text(text, self.delimiter))


def parse_text(text: str, delimiter: str = ",") -> Iterable[Row]:
    """Parse complete CSV text into trimmed rows, skipping blank lines."""
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    try:
        for record in reader:
            cells = [cell.strip() for cell in record]
            if not cells or cells == [""]:
                continue
            yield cells
    except csv.Error as e:
        raise ValidationError(f"Malformed CSV: {e}") from e


async def parse_rows(chunks: AsyncIterable[bytes], delimiter: str = ",") -> List[Row]:
    """Parse a whole byte stream, buffering every row."""
    parser = RowParser(delimiter)
    rows: List[Row] = []
    async for chunk in chunks:
        rows.extend(parser.feed(chunk))
    rows.extend(parser.close())
    return rows
