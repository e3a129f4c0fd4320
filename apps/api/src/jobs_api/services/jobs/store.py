from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any, Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from jobs_api.models import JobRecord
from jobs_api.services.jobs.types import Job, JobPriority, JobStatus

# Upper bound of the INTEGER primary key column.
MAX_JOB_ID = 2**31 - 1


class JobStore(Protocol):
    def insert_job(self, *, task_name: str, payload: Any, priority: JobPriority) -> int: ...

    def get_job(self, job_id: int) -> Job | None: ...

    def list_jobs(
        self,
        *,
        status: JobStatus | None = None,
        priority: JobPriority | None = None,
    ) -> Sequence[Job]: ...

    def set_status(
        self,
        job_id: int,
        status: JobStatus,
        *,
        updated_at: datetime,
        completed_at: datetime | None = None,
        expected: JobStatus | None = None,
    ) -> bool: ...


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset on DateTime(timezone=True) columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _load_payload(payload_json: Any) -> Any:
    if isinstance(payload_json, str):
        try:
            return json.loads(payload_json)
        except json.JSONDecodeError:
            return payload_json
    return payload_json


def _to_job(record: JobRecord) -> Job:
    completed_at = record.completed_at
    return Job(
        id=record.id,
        task_name=record.task_name,
        payload=_load_payload(record.payload_json),
        priority=JobPriority(record.priority),
        status=JobStatus(record.status),
        created_at=_as_utc(record.created_at),
        updated_at=_as_utc(record.updated_at),
        completed_at=_as_utc(completed_at) if completed_at is not None else None,
    )


class SqlJobStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def insert_job(self, *, task_name: str, payload: Any, priority: JobPriority) -> int:
        now = datetime.now(timezone.utc)
        with Session(self._engine) as session:
            record = JobRecord(
                task_name=task_name,
                payload_json=payload,
                priority=JobPriority(priority).value,
                status=JobStatus.PENDING.value,
                created_at=now,
                updated_at=now,
                completed_at=None,
            )
            session.add(record)
            session.commit()
            return record.id

    def get_job(self, job_id: int) -> Job | None:
        if not 0 < job_id <= MAX_JOB_ID:
            return None
        with Session(self._engine) as session:
            record = session.get(JobRecord, job_id)
            if record is None:
                return None
            return _to_job(record)

    def list_jobs(
        self,
        *,
        status: JobStatus | None = None,
        priority: JobPriority | None = None,
    ) -> list[Job]:
        stmt = select(JobRecord)
        if status is not None:
            stmt = stmt.where(JobRecord.status == JobStatus(status).value)
        if priority is not None:
            stmt = stmt.where(JobRecord.priority == JobPriority(priority).value)

        with Session(self._engine) as session:
            records = session.scalars(
                stmt.order_by(JobRecord.created_at.desc(), JobRecord.id.desc())
            ).all()
            return [_to_job(record) for record in records]

    def set_status(
        self,
        job_id: int,
        status: JobStatus,
        *,
        updated_at: datetime,
        completed_at: datetime | None = None,
        expected: JobStatus | None = None,
    ) -> bool:
        if not 0 < job_id <= MAX_JOB_ID:
            return False
        stmt = update(JobRecord).where(JobRecord.id == job_id)
        if expected is not None:
            stmt = stmt.where(JobRecord.status == JobStatus(expected).value)
        stmt = stmt.values(
            status=JobStatus(status).value,
            updated_at=updated_at,
            completed_at=completed_at,
        )

        with self._engine.begin() as connection:
            result = connection.execute(stmt)
        return result.rowcount == 1
