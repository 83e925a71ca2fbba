"""Import pipeline: create containers, route notes, publish pages."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from thinkery_import.db.repository import Repository
from thinkery_import.mapping.models import ImportMapping
from thinkery_import.onenote.client import PublishError
from thinkery_import.routing.aggregation import PendingPage, finalize
from thinkery_import.routing.classifier import DEFAULT_TINY_THRESHOLD, route_notes
from thinkery_import.thinkery.models import Note
from thinkery_import.utils.naming import sanitize_name

logger = logging.getLogger(__name__)

DEFAULT_NOTEBOOK_NAME = "Thinkery Import"
DEFAULT_CONCURRENCY = 4


class NotebookClient(Protocol):
    async def create_notebook(self, name: str) -> str: ...

    async def create_section_group(self, notebook_id: str, name: str) -> str: ...

    async def create_section(self, section_group_id: str, name: str) -> str: ...

    async def create_page(self, section_id: str, html: str) -> None: ...


@dataclass
class ImportReport:
    notes_total: int = 0
    notes_rejected: int = 0
    notes_unresolved: int = 0
    standalone_pages: int = 0
    aggregated_pages: int = 0
    aggregated_notes: int = 0
    promoted_pages: int = 0
    pages_published: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def pages_planned(self) -> int:
        return self.standalone_pages + self.aggregated_pages + self.promoted_pages

    def summary(self) -> str:
        lines = [
            "=" * 50,
            "IMPORT SUMMARY",
            "=" * 50,
            f"  Notes loaded:        {self.notes_total}",
            f"  Notes rejected:      {self.notes_rejected}",
            f"  Notes unresolved:    {self.notes_unresolved}",
            f"  Standalone pages:    {self.standalone_pages}",
            f"  Promoted pages:      {self.promoted_pages}",
            f"  Combined pages:      {self.aggregated_pages} ({self.aggregated_notes} notes)",
            f"  Pages published:     {self.pages_published}/{self.pages_planned}",
        ]
        if self.failures:
            lines.append(f"  Failures ({len(self.failures)}):")
            lines.extend(f"    - {failure}" for failure in self.failures)
        lines.append("=" * 50)
        return "\n".join(lines)


class ImportEngine:
    def __init__(
        self,
        client: NotebookClient,
        *,
        notebook_name: str = DEFAULT_NOTEBOOK_NAME,
        tiny_threshold: int = DEFAULT_TINY_THRESHOLD,
        concurrency: int = DEFAULT_CONCURRENCY,
        continue_on_error: bool = False,
        ledger: Repository | None = None,
        simulated: bool = False,
    ) -> None:
        self._client = client
        self._notebook_name = notebook_name
        self._tiny_threshold = tiny_threshold
        self._concurrency = max(1, concurrency)
        self._continue_on_error = continue_on_error
        self._ledger = ledger
        self._simulated = simulated
        self.run_id = uuid.uuid4().hex
        self.report = ImportReport()
        self._halted = False

    async def run(
        self,
        notes: Sequence[Note],
        mapping: ImportMapping,
        *,
        rejected: int = 0,
    ) -> ImportReport:
        """Import ``notes`` into a new notebook laid out by ``mapping``.

        Raises PublishError if a container fails, or if a page fails while
        ``continue_on_error`` is off. Whatever was created before the failure
        stays in OneNote.
        """
        self.report = ImportReport(notes_total=len(notes), notes_rejected=rejected)
        if self._ledger:
            await self._ledger.start_run(
                self.run_id, self._notebook_name, simulated=self._simulated
            )

        status = "failed"
        try:
            await self.create_containers(mapping)
            pages = self.plan_pages(notes, mapping)
            await self.publish(pages)
            status = "completed" if not self.report.failures else "completed_with_errors"
        except asyncio.CancelledError:
            status = "cancelled"
            logger.warning("Import cancelled; pages created so far are kept")
            raise
        finally:
            if self._ledger:
                await self._ledger.finish_run(self.run_id, status)

        logger.info(
            "Import finished: %d/%d pages published, %d failures",
            self.report.pages_published, self.report.pages_planned, len(self.report.failures),
        )
        return self.report

    async def create_containers(self, mapping: ImportMapping) -> str:
        """Create the notebook, then groups and sections in mapping order."""
        notebook_name = sanitize_name(self._notebook_name)
        notebook_id = await self._client.create_notebook(notebook_name)
        await self._record_container("notebook", notebook_name, notebook_id)

        for group in mapping.groups:
            group_name = sanitize_name(group.name)
            group.assign(await self._client.create_section_group(notebook_id, group_name))
            await self._record_container("section_group", group_name, group.assigned_id)

            for section in group.sections:
                section_name = sanitize_name(section.name)
                section.assign(await self._client.create_section(group.assigned_id, section_name))
                await self._record_container("section", section_name, section.assigned_id)

        return notebook_id

    def plan_pages(self, notes: Sequence[Note], mapping: ImportMapping) -> list[PendingPage]:
        routing = route_notes(notes, mapping, self._tiny_threshold)
        pages = finalize(routing)

        self.report.notes_unresolved = len(routing.unresolved)
        for page in pages:
            if page.aggregated:
                self.report.aggregated_pages += 1
                self.report.aggregated_notes += len(page.notes)
            elif page.promoted:
                self.report.promoted_pages += 1
            else:
                self.report.standalone_pages += 1
        return pages

    async def publish(self, pages: Sequence[PendingPage]) -> None:
        """Create pages with at most ``concurrency`` requests in flight."""
        semaphore = asyncio.Semaphore(self._concurrency)
        self._halted = False

        async def publish_one(page: PendingPage) -> None:
            async with semaphore:
                # pages still queued when the import halts are never sent
                if self._halted:
                    return
                await self._publish_page(page)

        tasks = [asyncio.create_task(publish_one(page)) for page in pages]
        try:
            await asyncio.gather(*tasks)
        except PublishError:
            # in-flight uploads finish and are recorded; queued ones see the halt flag
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _publish_page(self, page: PendingPage) -> None:
        section_id = page.destination.section.assigned_id
        try:
            await self._client.create_page(section_id, page.content)
        except PublishError as e:
            message = f"Page '{page.title}' in {page.destination.describe()}: {e}"
            self.report.failures.append(message)
            if not self._continue_on_error:
                self._halted = True
            await self._record_page(page, error=str(e))
            if not self._continue_on_error:
                logger.error("Halting import: %s", message)
                raise
            logger.error("Failed to publish %s; continuing", message)
            return

        self.report.pages_published += 1
        await self._record_page(page)
        logger.info(
            "Published '%s' to %s (%d note%s)",
            page.title, page.destination.describe(), len(page.notes),
            "" if len(page.notes) == 1 else "s",
        )

    async def _record_container(self, kind: str, name: str, remote_id: str) -> None:
        if self._ledger:
            await self._ledger.record_container(self.run_id, kind, name, remote_id)

    async def _record_page(self, page: PendingPage, error: str | None = None) -> None:
        if self._ledger:
            await self._ledger.record_page(
                self.run_id,
                section_id=page.destination.section.assigned_id,
                title=page.title,
                note_count=len(page.notes),
                aggregated=page.aggregated,
                error=error,
            )
