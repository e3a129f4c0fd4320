from __future__ import annotations

from jobs_api.services.jobs.types import JobStatus


class JobError(RuntimeError):
    pass


class JobNotFoundError(JobError):
    def __init__(self, job_id: int) -> None:
        super().__init__(f"job {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(JobError):
    def __init__(
        self,
        current: JobStatus,
        requested: JobStatus,
        *,
        job_id: int | None = None,
    ) -> None:
        subject = "job" if job_id is None else f"job {job_id}"
        super().__init__(
            f"{subject} cannot move from {current.value} to {requested.value}"
        )
        self.job_id = job_id
        self.current = current
        self.requested = requested


class JobAlreadyRunningError(JobError):
    def __init__(self, job_id: int) -> None:
        super().__init__(f"job {job_id} is already running")
        self.job_id = job_id


class JobAlreadyCompletedError(JobError):
    def __init__(self, job_id: int) -> None:
        super().__init__(f"job {job_id} is already completed")
        self.job_id = job_id


class NotificationError(JobError):
    pass
