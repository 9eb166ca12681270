"""Batched document build: parse, plan, create, apply.

The pipeline owns no HTTP code. It drives a :class:`DocumentDestination`
(the Google Docs client satisfies it) under a :class:`RetryExecutor`, one
logical retried call per batch, strictly in order.
"""

import re
from dataclasses import dataclass
from typing import Any, AsyncIterable, Dict, List, Optional, Protocol

import structlog

from ..utils.errors import PartialWriteError, TerminalError
from ..utils.retry import RetryExecutor
from .batching import partition
from .edits import PageLayout, plan_table
from .rows import parse_rows

ROOT_FOLDER = "root"
MY_DRIVE = "mydrive"
FOLDER_ID_PATTERN = re.compile(r"/folders/(?P<folder_id>[^/?]+)")


@dataclass(frozen=True)
class DestinationFolder:
    """Where a new document is created.

    Attributes:
        folder_id: Resolved folder id (``"root"`` for the user's root)
        drive_id: Selected shared drive, if any
    """

    folder_id: Optional[str] = None
    drive_id: Optional[str] = None

    @property
    def supports_all_drives(self) -> bool:
        return self.drive_id is not None

    @property
    def parents(self) -> Optional[List[str]]:
        # A shared drive's root is the drive itself.
        if self.drive_id and self.folder_id in (None, ROOT_FOLDER):
            return [self.drive_id]
        return [self.folder_id] if self.folder_id else None


def resolve_folder(
    folderid: Optional[str] = None,
    folder: Optional[str] = None,
    drive: Optional[str] = None,
) -> DestinationFolder:
    """Resolve form input into a destination folder.

    ``folderid`` (a pasted folder URL or id) wins over ``folder``. A URL
    pointing at "My Drive" and anything unrecognizable resolve to the root.
    """
    if folderid:
        if "my-drive" in folderid:
            folder_id = ROOT_FOLDER
        else:
            match = FOLDER_ID_PATTERN.search(folderid)
            if match:
                folder_id = match.group("folder_id")
            elif "/" not in folderid:
                folder_id = folderid.strip()
            else:
                folder_id = ROOT_FOLDER
    else:
        folder_id = folder or None

    drive_id = drive if drive and drive != MY_DRIVE else None
    return DestinationFolder(folder_id=folder_id, drive_id=drive_id)


class DocumentDestination(Protocol):
    """Capabilities the pipeline needs from a document vendor."""

    async def create_document(
        self,
        name: str,
        parents: Optional[List[str]] = None,
        supports_all_drives: bool = False,
    ) -> Optional[str]:
        ...

    async def apply_batch(self, document_id: str, requests: List[Dict[str, Any]]) -> Any:
        ...


class BatchMutationPipeline:
    """Build one table document from a row stream.

    Example:
        ```python
        pipeline = BatchMutationPipeline(client, RetryExecutor(policy), write_batch=100)
        document_id = await pipeline.run("Sales", resolve_folder(folderid=url), chunks)
        ```
    """

    def __init__(
        self,
        destination: DocumentDestination,
        executor: RetryExecutor,
        write_batch: int = 100,
        layout: Optional[PageLayout] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        """Initialize the pipeline.

        Args:
            destination: Vendor client that creates and updates documents
            executor: Retry executor wrapping each batch call
            write_batch: Maximum requests per batch update (at least 2)
            layout: Page geometry and finishing styles
            logger: Structured logger instance
        """
        if write_batch < 2:
            raise ValueError("write_batch must be at least 2 to hold an insert and its style")
        self.destination = destination
        self.executor = executor
        self.write_batch = write_batch
        self.layout = layout or PageLayout()
        self.logger = logger or structlog.get_logger()

    async def run(
        self,
        name: str,
        folder: DestinationFolder,
        chunks: AsyncIterable[bytes],
        webhook_id: Optional[str] = None,
    ) -> str:
        """Create the document and fill it with the streamed table.

        The stream is parsed and planned first; no remote call is made for
        empty or malformed input.

        Returns:
            The id of the created document

        Raises:
            TerminalError: If document creation returned no id
            NoDataError: If the stream held no rows
            ValidationError: If the stream is not valid CSV
            PartialWriteError: If a batch failed after the document was created
        """
        log = self.logger.bind(webhook_id=webhook_id)

        # Input is fully parsed and planned before any remote call.
        rows = await parse_rows(chunks)
        plan = plan_table(rows, self.layout)
        batches = partition(plan.edit_groups, self.write_batch)
        log.info(
            "Planned document table",
            rows=plan.row_count,
            columns=plan.column_count,
            batches=len(batches),
        )

        # Creation is never retried: a retry after a lost response would
        # leave a second empty document behind.
        document_id = await self.destination.create_document(
            name,
            parents=folder.parents,
            supports_all_drives=folder.supports_all_drives,
        )
        if not document_id:
            raise TerminalError("Failed to create document")
        log = log.bind(document_id=document_id)
        log.info("Created destination document")

        try:
            await self._apply(document_id, plan.structure, "document structure", webhook_id)
            for number, batch in enumerate(batches, start=1):
                await self._apply(document_id, batch, f"document update {number}/{len(batches)}", webhook_id)
            await self._apply(document_id, plan.finishing, "document styling", webhook_id)
        except Exception as e:
            log.error("Document build failed after creation", error=str(e))
            raise PartialWriteError(document_id, e) from e

        log.info("Document build complete")
        return document_id

    async def _apply(
        self,
        document_id: str,
        requests: List[Dict[str, Any]],
        label: str,
        webhook_id: Optional[str],
    ) -> Any:
        return await self.executor.execute(
            lambda: self.destination.apply_batch(document_id, requests),
            label=label,
            webhook_id=webhook_id,
        )
