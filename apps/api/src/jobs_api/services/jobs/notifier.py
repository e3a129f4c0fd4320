from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Protocol

import httpx

from jobs_api.services.jobs.errors import NotificationError
from jobs_api.services.jobs.types import Job

logger = logging.getLogger(__name__)


class CompletionNotifier(Protocol):
    def notify(self, job: Job, completed_at: datetime) -> bool: ...


def to_iso_instant(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_notification(job: Job, completed_at: datetime) -> dict[str, Any]:
    return {
        "jobId": job.id,
        "taskName": job.task_name,
        "priority": job.priority.value,
        "payload": job.payload,
        "completedAt": to_iso_instant(completed_at),
    }


class WebhookNotifier:
    """Best-effort completion webhook.

    ``notify`` never raises and never retries. Returns ``True`` only when the
    endpoint answered with a 2xx status.
    """

    def __init__(self, *, url: str | None, timeout_seconds: float = 5.0) -> None:
        self._url = url.strip() if url else None
        self._timeout_seconds = timeout_seconds

    def notify(self, job: Job, completed_at: datetime) -> bool:
        if self._url is None:
            logger.warning("webhook url not configured; skipping notification job_id=%s", job.id)
            return False

        try:
            document = build_notification(job, completed_at)
            status_code = self._post(self._url, document)
        except NotificationError as exc:
            logger.error("webhook failed job_id=%s error=%s", job.id, exc)
            return False
        except Exception:
            logger.exception("webhook failed unexpectedly job_id=%s", job.id)
            return False

        logger.info("webhook delivered job_id=%s status_code=%s", job.id, status_code)
        return True

    def _post(self, url: str, document: dict[str, Any]) -> int:
        try:
            response = httpx.post(
                url,
                json=document,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NotificationError(str(exc)) from exc

        return response.status_code
