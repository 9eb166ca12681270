"""Plan the Google Docs requests that build a table from parsed rows.

Addressing works by absolute offsets into the *empty* table that
``insertTable`` creates at index 1. In that table every cell holds one
newline, so with ``C`` columns the cell at ``(r, c)`` starts at::

    5 + r * (2C + 1) + 2c

(index 1 is the paragraph before the table, 2 the table start, 3 the first
row start, 4 the first cell start). Inserting text shifts everything after
it, so cell edits are emitted from the last cell backwards: each insertion
then lands before every offset already used, and no later edit's offset is
disturbed.

:func:`plan_table` is pure; it performs no I/O.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from ..utils.errors import NoDataError

Request = Dict[str, Any]

PT = 72
BLANK_CELL = " "
TABLE_INSERT_INDEX = 1
TABLE_START_INDEX = 2
FIRST_CELL_INDEX = 5


@dataclass(frozen=True)
class PageLayout:
    """Page geometry and finishing styles, in points."""

    width: float = PT * 8.5
    height: float = PT * 11
    margin: float = PT * 0.5
    first_column_width: float = PT * 0.5
    portrait: bool = False
    line_spacing: int = 50
    data_font_size: int = 8
    header_shade: float = 0.95

    @property
    def available_width(self) -> float:
        # Landscape swaps the page axes after the section flip.
        return (self.width if self.portrait else self.height) - self.margin * 2


@dataclass(frozen=True)
class CellEdit:
    """Text insertion for one table cell."""

    row: int
    column: int
    index: int
    text: str
    header: bool = False

    @property
    def length(self) -> int:
        return utf16_length(self.text)

    def requests(self) -> List[Request]:
        """The insert request, followed by a bold style for header cells."""
        requests: List[Request] = [
            {"insertText": {"text": self.text, "location": {"index": self.index}}}
        ]
        if self.header:
            requests.append(
                {
                    "updateTextStyle": {
                        "textStyle": {"bold": True},
                        "range": {
                            "startIndex": self.index,
                            "endIndex": self.index + self.length,
                        },
                        "fields": "bold",
                    }
                }
            )
        return requests


@dataclass(frozen=True)
class TablePlan:
    """Everything needed to fill one document with one table."""

    row_count: int
    column_count: int
    header_column_count: int
    structure: List[Request]
    edits: List[CellEdit]
    finishing: List[Request]
    header_end: int
    end_index: int
    layout: PageLayout = field(default_factory=PageLayout)

    @property
    def edit_groups(self) -> List[List[Request]]:
        """Requests per cell, in application order."""
        return [edit.requests() for edit in self.edits]


def utf16_length(text: str) -> int:
    """Length in UTF-16 code units, the unit of Docs indices."""
    return len(text.encode("utf-16-le")) // 2


def cell_index(row: int, column: int, column_count: int) -> int:
    """Offset of a cell's paragraph in the empty table."""
    return FIRST_CELL_INDEX + row * (2 * column_count + 1) + 2 * column


def plan_table(rows: Sequence[Sequence[str]], layout: PageLayout = PageLayout()) -> TablePlan:
    """Plan the structure, cell and finishing requests for ``rows``.

    Row 0 is the header. The table is as wide as the widest row; missing
    and blank cells are filled with a single space.

    Raises:
        NoDataError: If ``rows`` is empty
    """
    if not rows:
        raise NoDataError()

    row_count = len(rows)
    header_column_count = max(len(rows[0]), 1)
    column_count = max(max(len(row) for row in rows), 1)

    edits: List[CellEdit] = []
    text_length = 0
    header_length = 0
    for r in range(row_count - 1, -1, -1):
        row = rows[r]
        for c in range(column_count - 1, -1, -1):
            text = (row[c] if c < len(row) else "") or BLANK_CELL
            edits.append(
                CellEdit(
                    row=r,
                    column=c,
                    index=cell_index(r, c, column_count),
                    text=text,
                    header=r == 0,
                )
            )
            text_length += utf16_length(text)
            if r == 0:
                header_length += utf16_length(text)

    header_end = cell_index(0, column_count - 1, column_count) + header_length
    end_index = cell_index(row_count - 1, column_count - 1, column_count) + text_length

    return TablePlan(
        row_count=row_count,
        column_count=column_count,
        header_column_count=header_column_count,
        structure=_structure_requests(row_count, column_count, layout),
        edits=edits,
        finishing=_finishing_requests(column_count, header_column_count, header_end, end_index, layout),
        header_end=header_end,
        end_index=end_index,
        layout=layout,
    )


def _points(magnitude: float) -> Dict[str, Any]:
    return {"magnitude": magnitude, "unit": "PT"}


def _structure_requests(row_count: int, column_count: int, layout: PageLayout) -> List[Request]:
    return [
        {
            "updateDocumentStyle": {
                "documentStyle": {
                    "pageSize": {
                        "height": _points(layout.height),
                        "width": _points(layout.width),
                    },
                    "marginLeft": _points(layout.margin),
                    "marginRight": _points(layout.margin),
                    "marginTop": _points(layout.margin),
                    "marginBottom": _points(layout.margin),
                },
                "fields": "pageSize,marginLeft,marginRight,marginTop,marginBottom",
            }
        },
        {
            "insertTable": {
                "rows": row_count,
                "columns": column_count,
                "location": {"index": TABLE_INSERT_INDEX},
            }
        },
    ]


def _column_width(column_indices: List[int], width: float) -> Request:
    return {
        "updateTableColumnProperties": {
            "tableStartLocation": {"index": TABLE_START_INDEX},
            "columnIndices": column_indices,
            "tableColumnProperties": {
                "widthType": "FIXED_WIDTH",
                "width": _points(width),
            },
            "fields": "widthType,width",
        }
    }


def _finishing_requests(
    column_count: int,
    header_column_count: int,
    header_end: int,
    end_index: int,
    layout: PageLayout,
) -> List[Request]:
    shade = layout.header_shade
    requests: List[Request] = [
        {
            "pinTableHeaderRows": {
                "tableStartLocation": {"index": TABLE_START_INDEX},
                "pinnedHeaderRowsCount": 1,
            }
        },
        {
            "updateTableCellStyle": {
                "tableCellStyle": {
                    "backgroundColor": {
                        "color": {"rgbColor": {"red": shade, "green": shade, "blue": shade}}
                    }
                },
                "fields": "backgroundColor",
                "tableRange": {
                    "columnSpan": column_count,
                    "rowSpan": 1,
                    "tableCellLocation": {
                        "tableStartLocation": {"index": TABLE_START_INDEX},
                        "rowIndex": 0,
                        "columnIndex": 0,
                    },
                },
            }
        },
        _column_width([0], layout.first_column_width),
    ]

    # Widths follow the header; wider data rows keep the default width.
    if header_column_count > 1:
        other_width = (layout.available_width - layout.first_column_width) / (header_column_count - 1)
        requests.append(_column_width(list(range(1, header_column_count)), other_width))

    requests.append(
        {
            "updateParagraphStyle": {
                "paragraphStyle": {
                    "namedStyleType": "NORMAL_TEXT",
                    "lineSpacing": layout.line_spacing,
                },
                "fields": "namedStyleType,lineSpacing",
                "range": {"startIndex": 1, "endIndex": end_index},
            }
        }
    )
    # A header-only table has no data text to shrink; empty ranges are rejected.
    if end_index > header_end:
        requests.append(
            {
                "updateTextStyle": {
                    "textStyle": {"fontSize": _points(layout.data_font_size)},
                    "fields": "fontSize",
                    "range": {"startIndex": header_end, "endIndex": end_index},
                }
            }
        )
    requests.append(
        {
            "updateSectionStyle": {
                "sectionStyle": {"flipPageOrientation": not layout.portrait},
                "fields": "flipPageOrientation",
                "range": {"startIndex": 0, "endIndex": 1},
            }
        }
    )
    return requests
