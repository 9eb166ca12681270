"""Unit tests for incremental CSV row parsing."""

import pytest

from document_actions.pipeline.rows import RowParser, parse_rows
from document_actions.utils.errors import ValidationError


def _parse_chunks(chunks):
    parser = RowParser()
    rows = []
    for chunk in chunks:
        rows.extend(parser.feed(chunk))
    rows.extend(parser.close())
    return rows


class TestRowParser:
    """Test cases for RowParser."""

    def test_simple_rows(self):
        assert _parse_chunks([b"name,count\nalpha,1\nbeta,2\n"]) == [
            ["name", "count"],
            ["alpha", "1"],
            ["beta", "2"],
        ]

    def test_rows_are_emitted_as_lines_complete(self):
        parser = RowParser()
        assert parser.feed(b"a,b\nc,") == [["a", "b"]]
        assert parser.feed(b"d\n") == [["c", "d"]]
        assert parser.close() == []

    def test_byte_order_mark_is_dropped(self):
        assert _parse_chunks([b"\xef\xbb\xbfname,count\n"]) == [["name", "count"]]

    def test_bom_split_across_chunks(self):
        assert _parse_chunks([b"\xef", b"\xbb\xbfname\n"]) == [["name"]]

    def test_cells_are_trimmed(self):
        assert _parse_chunks([b"  name , count  \n"]) == [["name", "count"]]

    def test_ragged_rows_are_kept(self):
        assert _parse_chunks([b"a,b,c\n1\n1,2,3,4\n"]) == [
            ["a", "b", "c"],
            ["1"],
            ["1", "2", "3", "4"],
        ]

    def test_blank_lines_are_skipped(self):
        assert _parse_chunks([b"a,b\n\n   \n1,2\n"]) == [["a", "b"], ["1", "2"]]

    def test_crlf_line_endings(self):
        assert _parse_chunks([b"a,b\r", b"\n1,2\r\n"]) == [["a", "b"], ["1", "2"]]

    def test_missing_final_newline(self):
        assert _parse_chunks([b"a,b\n1,2"]) == [["a", "b"], ["1", "2"]]

    def test_quoted_field_spanning_lines_and_chunks(self):
        rows = _parse_chunks([b'id,note\n1,"first', b' line\nsecond ""quoted"" line",x\n2,plain\n'])
        assert rows == [
            ["id", "note"],
            ["1", 'first line\nsecond "quoted" line', "x"],
            ["2", "plain"],
        ]

    def test_multibyte_character_split_across_chunks(self):
        data = "name\ncafé\n".encode("utf-8")
        split = data.index(b"\xc3") + 1
        assert _parse_chunks([data[:split], data[split:]]) == [["name"], ["café"]]

    def test_unterminated_quote_is_validation_error(self):
        with pytest.raises(ValidationError, match="unterminated"):
            _parse_chunks([b'a,b\n1,"never closed\n'])

    def test_text_after_closing_quote_is_validation_error(self):
        with pytest.raises(ValidationError, match="Malformed CSV"):
            _parse_chunks([b'a,b\n"x"y,2\n'])

    def test_invalid_utf8_is_validation_error(self):
        with pytest.raises(ValidationError):
            _parse_chunks([b"a,b\n\xff\xfe,1\n"])

    def test_empty_input(self):
        assert _parse_chunks([]) == []
        assert _parse_chunks([b""]) == []


@pytest.mark.asyncio
async def test_parse_rows_consumes_async_stream():
    async def chunks():
        yield b"h1,h2\n"
        yield b"v1,"
        yield b"v2\n"

    assert await parse_rows(chunks()) == [["h1", "h2"], ["v1", "v2"]]
