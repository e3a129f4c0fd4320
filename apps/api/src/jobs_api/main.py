from datetime import datetime
import json
import logging
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, HTTPException, Path, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobs_api.config import get_settings
from jobs_api.db import get_engine
from jobs_api.logging_config import configure_logging
from jobs_api.services.jobs import (
    CompletionNotifier,
    InvalidTransitionError,
    Job,
    JobAlreadyCompletedError,
    JobAlreadyRunningError,
    JobDispatcher,
    JobNotFoundError,
    JobPriority,
    JobStatus,
    JobStore,
    SqlJobStore,
    WebhookNotifier,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Job Lifecycle API", version="0.1.0")

JobId = Annotated[int, Path(gt=0, description="Positive integer job id")]


class CreateJobRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    task_name: str = Field(alias="taskName", min_length=1, max_length=255)
    payload: dict[str, Any] | list[Any]
    priority: JobPriority

    @field_validator("task_name")
    @classmethod
    def _task_name_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("taskName must not be empty")
        return stripped


@app.on_event("startup")
def startup() -> None:
    configure_logging(get_settings().log_level)
    get_engine()


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    del request
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def get_job_store() -> JobStore:
    return SqlJobStore(get_engine())


def get_notifier() -> CompletionNotifier:
    settings = get_settings()
    return WebhookNotifier(
        url=settings.webhook_url,
        timeout_seconds=settings.webhook_timeout_seconds,
    )


def get_dispatcher(
    store: Annotated[JobStore, Depends(get_job_store)],
    notifier: Annotated[CompletionNotifier, Depends(get_notifier)],
) -> JobDispatcher:
    settings = get_settings()
    return JobDispatcher(
        store=store,
        notifier=notifier,
        processing_seconds=settings.job_processing_seconds,
    )


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _job_detail(job: Job) -> dict[str, Any]:
    return {
        "id": job.id,
        "taskName": job.task_name,
        "payload": job.payload,
        "priority": job.priority.value,
        "status": job.status.value,
        "createdAt": _to_iso(job.created_at),
        "updatedAt": _to_iso(job.updated_at),
        "completedAt": _to_iso(job.completed_at),
    }


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/jobs", status_code=201)
def create_job(
    request: CreateJobRequest,
    store: Annotated[JobStore, Depends(get_job_store)],
) -> dict[str, Any]:
    job_id = store.insert_job(
        task_name=request.task_name,
        payload=request.payload,
        priority=request.priority,
    )
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=500, detail="failed to load created job")

    logger.info("job created job_id=%s task_name=%s priority=%s", job.id, job.task_name, job.priority.value)
    return _job_detail(job)


@app.get("/jobs")
def list_jobs(
    store: Annotated[JobStore, Depends(get_job_store)],
    status: JobStatus | None = Query(default=None),
    priority: JobPriority | None = Query(default=None),
) -> list[dict[str, Any]]:
    jobs = store.list_jobs(status=status, priority=priority)
    return [_job_detail(job) for job in jobs]


@app.get("/jobs/{job_id}")
def get_job(
    job_id: JobId,
    store: Annotated[JobStore, Depends(get_job_store)],
) -> dict[str, Any]:
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")
    return _job_detail(job)


@app.post("/run-job/{job_id}", status_code=202)
def run_job(
    job_id: JobId,
    dispatcher: Annotated[JobDispatcher, Depends(get_dispatcher)],
) -> dict[str, Any]:
    try:
        acknowledgement = dispatcher.request_run(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="job not found") from exc
    except (JobAlreadyRunningError, JobAlreadyCompletedError, InvalidTransitionError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return {
        "id": acknowledgement.id,
        "status": acknowledgement.status.value,
        "message": "job started",
    }


@app.post("/webhook-test")
def webhook_test(body: Annotated[dict[str, Any], Body()]) -> dict[str, Any]:
    logger.info("webhook received: %s", json.dumps(body, default=str))
    return {"message": "webhook received", "data": body}


def run() -> None:
    import uvicorn

    uvicorn.run("jobs_api.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
