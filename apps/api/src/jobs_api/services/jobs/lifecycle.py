"""Job status transitions.

The edge set is ``pending -> running``, ``running -> completed`` and
``running -> failed``; ``completed`` and ``failed`` are terminal.

Run requests additionally accept ``failed -> running`` through
``RERUN_TRANSITIONS``: a failed job may be run again while a completed one
may not. Only the dispatcher passes that map, so every other caller still
treats ``failed`` as terminal. A re-run leaves ``completed_at`` unset until
the job completes.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Mapping

from jobs_api.services.jobs.errors import InvalidTransitionError, JobNotFoundError
from jobs_api.services.jobs.store import JobStore
from jobs_api.services.jobs.types import Job, JobStatus

Transitions = Mapping[JobStatus, frozenset[JobStatus]]

ALLOWED_TRANSITIONS: Transitions = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

RERUN_TRANSITIONS: Transitions = {
    **ALLOWED_TRANSITIONS,
    JobStatus.FAILED: frozenset({JobStatus.RUNNING}),
}


def is_terminal(status: JobStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def validate_transition(
    current: JobStatus,
    requested: JobStatus,
    *,
    job_id: int | None = None,
    allowed: Transitions = ALLOWED_TRANSITIONS,
) -> None:
    if requested not in allowed[current]:
        raise InvalidTransitionError(current, requested, job_id=job_id)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStateMachine:
    """Applies validated status transitions to stored jobs.

    This is the only writer of ``status``, ``updated_at`` and ``completed_at``.
    Writes are conditional on the status read just before, so two callers
    racing on the same edge cannot both succeed.
    """

    def __init__(self, store: JobStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._clock = clock

    def transition(
        self,
        job_id: int,
        requested: JobStatus,
        *,
        allowed: Transitions = ALLOWED_TRANSITIONS,
    ) -> Job:
        job = self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        validate_transition(job.status, requested, job_id=job_id, allowed=allowed)

        now = self._clock()
        completed_at = now if requested is JobStatus.COMPLETED else None
        applied = self._store.set_status(
            job_id,
            requested,
            updated_at=now,
            completed_at=completed_at,
            expected=job.status,
        )
        if not applied:
            latest = self._store.get_job(job_id)
            if latest is None:
                raise JobNotFoundError(job_id)
            raise InvalidTransitionError(latest.status, requested, job_id=job_id)

        return replace(job, status=requested, updated_at=now, completed_at=completed_at)
