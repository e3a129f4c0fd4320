from __future__ import annotations

import logging
from threading import Thread
from time import sleep
from typing import Callable

from jobs_api.services.jobs.errors import (
    InvalidTransitionError,
    JobAlreadyCompletedError,
    JobAlreadyRunningError,
    JobNotFoundError,
)
from jobs_api.services.jobs.lifecycle import RERUN_TRANSITIONS, JobStateMachine
from jobs_api.services.jobs.notifier import CompletionNotifier
from jobs_api.services.jobs.store import JobStore
from jobs_api.services.jobs.types import Job, JobStatus, RunAcknowledgement

logger = logging.getLogger(__name__)

Work = Callable[[Job], None]
Spawn = Callable[[Callable[[], None]], None]


def spawn_thread(target: Callable[[], None]) -> None:
    Thread(target=target, daemon=True).start()


def simulated_work(processing_seconds: float) -> Work:
    def _work(job: Job) -> None:
        del job
        sleep(processing_seconds)

    return _work


class JobDispatcher:
    def __init__(
        self,
        *,
        store: JobStore,
        notifier: CompletionNotifier,
        processing_seconds: float = 3.0,
        work: Work | None = None,
        spawn: Spawn = spawn_thread,
        state_machine: JobStateMachine | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._work = work if work is not None else simulated_work(processing_seconds)
        self._spawn = spawn
        self._state_machine = state_machine or JobStateMachine(store)

    def request_run(self, job_id: int) -> RunAcknowledgement:
        job = self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        _check_admission(job.id, job.status)

        try:
            running = self._state_machine.transition(
                job_id,
                JobStatus.RUNNING,
                allowed=RERUN_TRANSITIONS,
            )
        except InvalidTransitionError as exc:
            # Lost the conditional write to a concurrent run request.
            _check_admission(job_id, exc.current)
            raise

        try:
            self._spawn(lambda: self._execute(running))
        except Exception:
            logger.exception("could not start job job_id=%s", job_id)
            self._mark_failed(job_id)
            raise

        logger.info("job run accepted job_id=%s", job_id)
        return RunAcknowledgement(id=job_id, status=JobStatus.RUNNING)

    def _execute(self, job: Job) -> None:
        logger.info("job started job_id=%s task_name=%s", job.id, job.task_name)
        try:
            self._work(job)
            completed = self._state_machine.transition(job.id, JobStatus.COMPLETED)
        except Exception:
            logger.exception("job failed job_id=%s", job.id)
            self._mark_failed(job.id)
            return

        logger.info("job completed job_id=%s", job.id)
        self._notifier.notify(completed, completed.completed_at)

    def _mark_failed(self, job_id: int) -> None:
        try:
            self._state_machine.transition(job_id, JobStatus.FAILED)
        except Exception:
            logger.exception("could not mark job failed job_id=%s", job_id)


def _check_admission(job_id: int, status: JobStatus) -> None:
    if status is JobStatus.RUNNING:
        raise JobAlreadyRunningError(job_id)
    if status is JobStatus.COMPLETED:
        raise JobAlreadyCompletedError(job_id)
