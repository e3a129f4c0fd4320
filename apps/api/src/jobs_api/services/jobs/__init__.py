from jobs_api.services.jobs.dispatcher import JobDispatcher
from jobs_api.services.jobs.errors import (
    InvalidTransitionError,
    JobAlreadyCompletedError,
    JobAlreadyRunningError,
    JobError,
    JobNotFoundError,
    NotificationError,
)
from jobs_api.services.jobs.lifecycle import JobStateMachine, validate_transition
from jobs_api.services.jobs.notifier import CompletionNotifier, WebhookNotifier
from jobs_api.services.jobs.store import JobStore, SqlJobStore
from jobs_api.services.jobs.types import Job, JobPriority, JobStatus, RunAcknowledgement

__all__ = [
    "CompletionNotifier",
    "InvalidTransitionError",
    "Job",
    "JobAlreadyCompletedError",
    "JobAlreadyRunningError",
    "JobDispatcher",
    "JobError",
    "JobNotFoundError",
    "JobPriority",
    "JobStateMachine",
    "JobStatus",
    "JobStore",
    "NotificationError",
    "RunAcknowledgement",
    "SqlJobStore",
    "WebhookNotifier",
    "validate_transition",
]
