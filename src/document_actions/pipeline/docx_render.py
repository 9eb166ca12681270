"""Render parsed rows as a Word (.docx) table document."""

from io import BytesIO
from typing import Sequence

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.shared import Pt

from ..utils.errors import NoDataError
from .edits import PageLayout


def render_docx(rows: Sequence[Sequence[str]], layout: PageLayout = PageLayout()) -> bytes:
    """Build a .docx package holding one table; row 0 is the bold header.

    Uses the same page geometry as the Google Docs table: landscape letter
    with half-inch margins, data text at the layout's font size.

    Raises:
        NoDataError: If ``rows`` is empty
    """
    if not rows:
        raise NoDataError()

    column_count = max(max(len(row) for row in rows), 1)

    document = Document()
    section = document.sections[0]
    if layout.portrait:
        section.page_width, section.page_height = Pt(layout.width), Pt(layout.height)
    else:
        section.orientation = WD_ORIENT.LANDSCAPE
        section.page_width, section.page_height = Pt(layout.height), Pt(layout.width)
    for side in ("left_margin", "right_margin", "top_margin", "bottom_margin"):
        setattr(section, side, Pt(layout.margin))

    table = document.add_table(rows=len(rows), cols=column_count)
    table.style = "Table Grid"

    for r, row in enumerate(rows):
        cells = table.rows[r].cells
        for c in range(column_count):
            text = row[c] if c < len(row) else ""
            run = cells[c].paragraphs[0].add_run(text)
            if r == 0:
                run.bold = True
            else:
                run.font.size = Pt(layout.data_font_size)

    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()
