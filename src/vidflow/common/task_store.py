"""TaskStore - persistence of task records keyed by deterministic task id.

Every method accepts an optional ``session``. When given, the caller owns the
transaction and nothing is committed here; otherwise the store opens a session,
runs the operation in its own transaction and commits.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .database import SessionFactory
from .errors import DatabaseError
from .models import TaskRow
from .schema_task import TaskDefaults, TaskRecord, TaskStatus


def _to_record(row: TaskRow) -> TaskRecord:
    return TaskRecord(
        task_id=row.task_id,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        type=row.type,
        metadata=row.task_metadata,
        status=TaskStatus(row.status),
        completed=row.completed,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class TaskStore:
    def __init__(self, session_factory: SessionFactory):
        self._sessions: SessionFactory = session_factory

    @asynccontextmanager
    async def _scope(self, session: AsyncSession | None) -> AsyncIterator[AsyncSession]:
        if session is not None:
            yield session
            return
        async with self._sessions() as own_session, own_session.begin():
            yield own_session

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def find_or_create_by_entity(
        self,
        entity_id: str,
        entity_type: str,
        defaults: TaskDefaults,
        session: AsyncSession | None = None,
    ) -> TaskRecord:
        """Return the task of an entity, inserting it from ``defaults`` if absent.

        The insert is a no-op on conflict with the ``(entity_id, entity_type)``
        unique constraint, and the re-select takes a row lock where the dialect
        supports one, so concurrent callers serialize on the row.
        """
        values = {
            "entity_id": entity_id,
            "entity_type": entity_type,
            "task_id": defaults.task_id,
            "type": defaults.type,
            "task_metadata": defaults.metadata,
            "status": defaults.status.value,
            "completed": defaults.completed,
        }
        try:
            async with self._scope(session) as s:
                dialect = s.get_bind().dialect.name
                if dialect in ("postgresql", "sqlite"):
                    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
                    stmt = (
                        insert(TaskRow)
                        .values(**values)
                        .on_conflict_do_nothing(index_elements=["entity_id", "entity_type"])
                    )
                    _ = await s.execute(stmt)
                    row = await self._select_entity(s, entity_id, entity_type, lock=True)
                else:
                    row = await self._select_entity(s, entity_id, entity_type, lock=True)
                    if row is None:
                        row = TaskRow(**values)
                        s.add(row)
                        await s.flush()

                if row is None:
                    raise DatabaseError(
                        "Task row vanished after insert",
                        context={"entity_id": entity_id, "entity_type": entity_type},
                        source="common/task_store.find_or_create_by_entity",
                    )
                return _to_record(row)
        except SQLAlchemyError as exc:
            raise DatabaseError(
                "Failed to find or create task",
                context={"entity_id": entity_id, "entity_type": entity_type},
                source="common/task_store.find_or_create_by_entity",
            ) from exc

    async def set_status(
        self,
        task_id: str,
        status: TaskStatus,
        session: AsyncSession | None = None,
    ) -> int:
        """Set the status of a task.

        Returns:
            Number of rows updated (0 if the task does not exist)
        """
        try:
            async with self._scope(session) as s:
                result = await s.execute(
                    update(TaskRow)
                    .where(TaskRow.task_id == task_id)
                    .values(status=status.value)
                    .execution_options(synchronize_session=False)
                )
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise DatabaseError(
                "Failed to update task status",
                context={"task_id": task_id, "status": status.value},
                source="common/task_store.set_status",
            ) from exc

    async def complete(self, task_id: str, session: AsyncSession | None = None) -> None:
        """Mark a task completed. Calling it again is harmless."""
        try:
            async with self._scope(session) as s:
                result = await s.execute(
                    update(TaskRow)
                    .where(TaskRow.task_id == task_id)
                    .values(status=TaskStatus.completed.value, completed=True)
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as exc:
            raise DatabaseError(
                "Failed to complete task",
                context={"task_id": task_id},
                source="common/task_store.complete",
            ) from exc

        if not result.rowcount:
            logger.bind(task_id=task_id).warning("complete() matched no task row")

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def get_by_entity(
        self,
        entity_id: str,
        entity_type: str,
        session: AsyncSession | None = None,
    ) -> TaskRecord | None:
        async with self._scope(session) as s:
            row = await self._select_entity(s, entity_id, entity_type)
            return _to_record(row) if row is not None else None

    async def get(self, task_id: str, session: AsyncSession | None = None) -> TaskRecord | None:
        async with self._scope(session) as s:
            row = (
                await s.execute(select(TaskRow).where(TaskRow.task_id == task_id))
            ).scalar_one_or_none()
            return _to_record(row) if row is not None else None

    @staticmethod
    async def _select_entity(
        session: AsyncSession,
        entity_id: str,
        entity_type: str,
        *,
        lock: bool = False,
    ) -> TaskRow | None:
        stmt = select(TaskRow).where(
            TaskRow.entity_id == entity_id,
            TaskRow.entity_type == entity_type,
        )
        if lock:
            stmt = stmt.with_for_update()
        # populate_existing: a row cached in this session may be stale after Core updates
        stmt = stmt.execution_options(populate_existing=True)
        return (await session.execute(stmt)).scalar_one_or_none()
