"""Reconcile persisted task status with live tmux sessions."""

from __future__ import annotations

import logging
from typing import Protocol

from pit.core.errors import TaskNotFound
from pit.core.models import ReapResult, TaskStatus
from pit.core.repository import TaskRepository

logger = logging.getLogger(__name__)


class LiveSessionSource(Protocol):
    def list_live(self) -> set[str]:
        """Names of sessions alive right now."""


def reap(repository: TaskRepository, sessions: LiveSessionSource) -> ReapResult:
    """Flip running tasks whose session is gone back to idle.

    One pass, no loop: the live set is read once and every flip is a
    compare-and-set on ``status = 'running'``, so a task stopped or
    relaunched concurrently is left alone and a repeated pass writes nothing.
    Session name and resume token are kept so the next launch can resume.
    """

    running = repository.list(status=TaskStatus.RUNNING)
    if not running:
        return ReapResult(checked=0)

    live = sessions.list_live()
    result = ReapResult(checked=len(running))
    for task in running:
        if task.session_name is not None and task.session_name in live:
            continue
        try:
            flipped = repository.update_status(
                task.id,
                TaskStatus.IDLE,
                expected=TaskStatus.RUNNING,
            )
        except TaskNotFound:
            # Deleted by another process since the listing.
            continue
        if flipped:
            logger.info("Reaped task %s: session %s is gone", task.name, task.session_name)
            result.reaped.append(task.name)
    return result
