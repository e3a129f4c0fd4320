from datetime import datetime, timedelta, timezone

from sqlalchemy import text
from sqlalchemy.engine import Engine

from jobs_api.services.jobs import JobPriority, JobStatus, SqlJobStore


def test_insert_job_starts_pending_without_completed_at(store: SqlJobStore) -> None:
    job_id = store.insert_job(
        task_name="send-email",
        payload={"to": "a@b.com"},
        priority=JobPriority.HIGH,
    )

    job = store.get_job(job_id)

    assert job is not None
    assert job.id == job_id
    assert job.task_name == "send-email"
    assert job.payload == {"to": "a@b.com"}
    assert job.priority is JobPriority.HIGH
    assert job.status is JobStatus.PENDING
    assert job.completed_at is None
    assert job.created_at.tzinfo is not None


def test_insert_job_assigns_distinct_ids(store: SqlJobStore) -> None:
    first = store.insert_job(task_name="a", payload={}, priority=JobPriority.LOW)
    second = store.insert_job(task_name="b", payload={}, priority=JobPriority.LOW)

    assert first != second


def test_get_job_returns_none_for_missing_id(store: SqlJobStore) -> None:
    assert store.get_job(999) is None


def test_payload_round_trips_as_structured_document(store: SqlJobStore) -> None:
    payload = {"recipients": ["a@b.com", "c@d.com"], "retry": False, "meta": {"n": 2}}
    job_id = store.insert_job(task_name="fan-out", payload=payload, priority=JobPriority.MEDIUM)

    job = store.get_job(job_id)

    assert job is not None
    assert job.payload == payload


def test_payload_stored_as_json_text_is_parsed_back(engine: Engine, store: SqlJobStore) -> None:
    with engine.begin() as connection:
        connection.execute(
            text(
                """
                INSERT INTO jobs (id, task_name, payload_json, priority, status)
                VALUES (41, 'legacy', '"{\\"to\\": \\"x@y.com\\"}"', 'Low', 'pending')
                """
            )
        )

    job = store.get_job(41)

    assert job is not None
    assert job.payload == {"to": "x@y.com"}


def test_list_jobs_returns_newest_first(store: SqlJobStore) -> None:
    first = store.insert_job(task_name="first", payload={}, priority=JobPriority.LOW)
    second = store.insert_job(task_name="second", payload={}, priority=JobPriority.LOW)
    third = store.insert_job(task_name="third", payload={}, priority=JobPriority.LOW)

    jobs = store.list_jobs()

    assert [job.id for job in jobs] == [third, second, first]


def test_list_jobs_applies_status_and_priority_filters(store: SqlJobStore) -> None:
    low = store.insert_job(task_name="low", payload={}, priority=JobPriority.LOW)
    high = store.insert_job(task_name="high", payload={}, priority=JobPriority.HIGH)
    store.insert_job(task_name="high-done", payload={}, priority=JobPriority.HIGH)
    store.set_status(
        high,
        JobStatus.RUNNING,
        updated_at=datetime.now(timezone.utc),
    )

    assert [job.id for job in store.list_jobs(priority=JobPriority.LOW)] == [low]
    assert [job.id for job in store.list_jobs(status=JobStatus.RUNNING)] == [high]
    assert [
        job.id for job in store.list_jobs(status=JobStatus.RUNNING, priority=JobPriority.HIGH)
    ] == [high]
    assert store.list_jobs(status=JobStatus.RUNNING, priority=JobPriority.LOW) == []


def test_set_status_with_expected_status_is_conditional(store: SqlJobStore) -> None:
    job_id = store.insert_job(task_name="guarded", payload={}, priority=JobPriority.LOW)
    now = datetime.now(timezone.utc)

    assert store.set_status(job_id, JobStatus.RUNNING, updated_at=now, expected=JobStatus.PENDING)
    assert not store.set_status(
        job_id,
        JobStatus.RUNNING,
        updated_at=now,
        expected=JobStatus.PENDING,
    )

    job = store.get_job(job_id)
    assert job is not None
    assert job.status is JobStatus.RUNNING


def test_set_status_stamps_timestamps(store: SqlJobStore) -> None:
    job_id = store.insert_job(task_name="stamped", payload={}, priority=JobPriority.LOW)
    later = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(minutes=5)

    store.set_status(job_id, JobStatus.COMPLETED, updated_at=later, completed_at=later)

    job = store.get_job(job_id)
    assert job is not None
    assert job.updated_at == later
    assert job.completed_at == later


def test_set_status_returns_false_for_missing_job(store: SqlJobStore) -> None:
    assert not store.set_status(
        404,
        JobStatus.RUNNING,
        updated_at=datetime.now(timezone.utc),
    )


def test_out_of_range_ids_are_treated_as_missing(store: SqlJobStore) -> None:
    huge = 99999999999999999999

    assert store.get_job(huge) is None
    assert not store.set_status(huge, JobStatus.RUNNING, updated_at=datetime.now(timezone.utc))
