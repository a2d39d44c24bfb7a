"""Persistent task store backed by SQLModel + SQLite."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from alembic.util.exc import CommandError
from sqlalchemy import delete as sa_delete
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from pit.core.errors import DuplicateName, StorageIO, TaskNotFound
from pit.core.models import Task, TaskCreate, TaskStatus
from pit.storage.alembic_runner import upgrade_head
from pit.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from pit.storage.sqlmodel_models import TaskRow

logger = logging.getLogger(__name__)


class TaskRepository:
    """Task persistence facade.

    Each public mutation runs in its own session and commits exactly once.
    Concurrency between a dashboard and one-shot commands is left to SQLite
    WAL mode; status writes that depend on the current state are expressed
    as compare-and-set updates (``expected=``) rather than read-then-write.
    """

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(
            db_path=db_path,
            busy_timeout_ms=sqlite_busy_timeout_ms,
        )

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations; refuse to continue on a partial schema."""

        try:
            revision = upgrade_head(self.db_path)
        except (CommandError, SQLAlchemyError, RuntimeError, OSError) as error:
            raise StorageIO(f"Failed to migrate task store {self.db_path}: {error}") from error
        logger.debug("Task store %s at schema revision %s", self.db_path, revision)

    def create(self, payload: TaskCreate) -> Task:
        """Insert a new idle task."""

        now = to_db_datetime(utc_now())
        row = TaskRow(
            name=payload.name,
            description=payload.description,
            prompt=payload.prompt,
            issue_ref=payload.issue.ref if payload.issue is not None else "",
            issue_title=payload.issue.title if payload.issue is not None else "",
            agent=payload.agent,
            branch=payload.branch,
            worktree=payload.worktree,
            status=TaskStatus.IDLE.value,
            created_at=now,
            updated_at=now,
        )
        try:
            with Session(self.engine) as session:
                session.add(row)
                session.commit()
                session.refresh(row)
                return _to_task(row)
        except IntegrityError as error:
            if "tasks.name" in str(error.orig):
                raise DuplicateName(payload.name) from error
            raise StorageIO(f"Failed to insert task {payload.name!r}: {error.orig}") from error
        except SQLAlchemyError as error:
            raise StorageIO(f"Failed to insert task {payload.name!r}: {error}") from error

    def get(self, name: str) -> Task | None:
        with self._storage_errors(f"read task {name!r}"), Session(self.engine) as session:
            row = session.exec(select(TaskRow).where(TaskRow.name == name)).one_or_none()
            return _to_task(row) if row is not None else None

    def get_by_id(self, task_id: int) -> Task | None:
        with self._storage_errors(f"read task #{task_id}"), Session(self.engine) as session:
            row = session.get(TaskRow, task_id)
            return _to_task(row) if row is not None else None

    def require(self, name: str) -> Task:
        task = self.get(name)
        if task is None:
            raise TaskNotFound(name)
        return task

    def list(self, *, status: TaskStatus | None = None) -> list[Task]:
        """List tasks in creation order, optionally filtered by status."""

        with self._storage_errors("list tasks"), Session(self.engine) as session:
            statement = select(TaskRow).order_by(
                col(TaskRow.created_at).asc(),
                col(TaskRow.id).asc(),
            )
            if status is not None:
                statement = statement.where(TaskRow.status == status.value)
            rows = session.exec(statement).all()
            return [_to_task(row) for row in rows]

    def list_names(self) -> list[str]:
        with self._storage_errors("list task names"), Session(self.engine) as session:
            return list(session.exec(select(TaskRow.name)).all())

    def update_status(
        self,
        task_id: int,
        status: TaskStatus,
        *,
        expected: TaskStatus | None = None,
    ) -> bool:
        """Set status; with ``expected`` only if the row is still in that state.

        Returns ``False`` when the compare-and-set lost. Raises ``TaskNotFound``
        when the row does not exist at all.
        """

        return self._update(task_id, expected=expected, status=status.value)

    def update_session(
        self,
        task_id: int,
        *,
        session_name: str | None,
        resume_token: str | None,
    ) -> bool:
        return self._update(
            task_id,
            expected=None,
            session_name=session_name,
            resume_token=resume_token,
        )

    def bind_session(
        self,
        task_id: int,
        *,
        session_name: str,
        resume_token: str | None,
        expected: TaskStatus | None,
    ) -> bool:
        """Mark the task running under ``session_name`` in one transaction."""

        return self.set_session_state(
            task_id,
            status=TaskStatus.RUNNING,
            session_name=session_name,
            resume_token=resume_token,
            expected=expected,
        )

    def set_session_state(
        self,
        task_id: int,
        *,
        status: TaskStatus,
        session_name: str | None,
        resume_token: str | None,
        expected: TaskStatus | None = None,
    ) -> bool:
        """Write status and session binding together in one transaction."""

        return self._update(
            task_id,
            expected=expected,
            status=status.value,
            session_name=session_name,
            resume_token=resume_token,
        )

    def delete(self, task_id: int) -> bool:
        with self._storage_errors(f"delete task #{task_id}"), Session(self.engine) as session:
            result = session.exec(sa_delete(TaskRow).where(col(TaskRow.id) == task_id))
            session.commit()
            return result.rowcount == 1

    def _update(
        self,
        task_id: int,
        *,
        expected: TaskStatus | None,
        **values: object,
    ) -> bool:
        with self._storage_errors(f"update task #{task_id}"), Session(self.engine) as session:
            statement = sa_update(TaskRow).where(col(TaskRow.id) == task_id)
            if expected is not None:
                statement = statement.where(col(TaskRow.status) == expected.value)
            result = session.exec(
                statement.values(updated_at=to_db_datetime(utc_now()), **values),
            )
            if result.rowcount == 1:
                session.commit()
                return True
            session.rollback()
            exists = session.get(TaskRow, task_id) is not None
        if not exists:
            raise TaskNotFound(f"#{task_id}")
        return False

    @contextmanager
    def _storage_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as error:
            raise StorageIO(f"Failed to {action} in {self.db_path}: {error}") from error


def _to_task(row: TaskRow) -> Task:
    return Task(
        id=row.id or 0,
        name=row.name,
        description=row.description,
        prompt=row.prompt,
        issue_ref=row.issue_ref,
        issue_title=row.issue_title,
        agent=row.agent,
        branch=row.branch,
        worktree=row.worktree,
        status=TaskStatus(row.status),
        resume_token=row.resume_token,
        session_name=row.session_name,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
