"""Row stream to document pipeline."""

from .batching import partition
from .docx_render import render_docx
from .edits import CellEdit, PageLayout, TablePlan, cell_index, plan_table
from .rows import RowParser, parse_rows
from .runner import BatchMutationPipeline, DestinationFolder, DocumentDestination, resolve_folder

__all__ = [
    "partition",
    "render_docx",
    "CellEdit",
    "PageLayout",
    "TablePlan",
    "cell_index",
    "plan_table",
    "RowParser",
    "parse_rows",
    "BatchMutationPipeline",
    "DestinationFolder",
    "DocumentDestination",
    "resolve_folder",
]
