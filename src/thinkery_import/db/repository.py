from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .models import Base, CreatedContainer, ImportRun, PublishedPage


class Repository:
    """Import ledger: what each run created in OneNote, and what failed."""

    def __init__(self, database_url: str) -> None:
        self._engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    async def init_db(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()

    # -- ImportRun --

    async def start_run(self, run_id: str, notebook_name: str, *, simulated: bool) -> None:
        async with self._session_factory() as session:
            session.add(
                ImportRun(run_id=run_id, notebook_name=notebook_name, simulated=simulated)
            )
            await session.commit()

    async def finish_run(self, run_id: str, status: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(ImportRun)
                .where(ImportRun.run_id == run_id)
                .values(status=status, finished_at=datetime.now(timezone.utc))
            )
            await session.commit()

    async def get_run(self, run_id: str) -> ImportRun | None:
        async with self._session_factory() as session:
            return await session.get(ImportRun, run_id)

    # -- CreatedContainer --

    async def record_container(self, run_id: str, kind: str, name: str, remote_id: str) -> None:
        async with self._session_factory() as session:
            session.add(
                CreatedContainer(run_id=run_id, kind=kind, name=name, remote_id=remote_id)
            )
            await session.commit()

    async def list_containers(self, run_id: str) -> list[CreatedContainer]:
        async with self._session_factory() as session:
            stmt = (
                select(CreatedContainer)
                .where(CreatedContainer.run_id == run_id)
                .order_by(CreatedContainer.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # -- PublishedPage --

    async def record_page(
        self,
        run_id: str,
        section_id: str,
        title: str,
        note_count: int,
        aggregated: bool,
        error: str | None = None,
    ) -> None:
        async with self._session_factory() as session:
            session.add(
                PublishedPage(
                    run_id=run_id,
                    section_id=section_id,
                    title=title,
                    note_count=note_count,
                    aggregated=aggregated,
                    status="failed" if error else "created",
                    error=error,
                )
            )
            await session.commit()

    async def list_pages(self, run_id: str) -> list[PublishedPage]:
        async with self._session_factory() as session:
            stmt = (
                select(PublishedPage)
                .where(PublishedPage.run_id == run_id)
                .order_by(PublishedPage.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())
