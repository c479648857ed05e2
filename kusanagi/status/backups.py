"""Scheduled-job (CronJob/Job) outcomes, used to track backup runs."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from kusanagi.models.snapshots import BackupsStatus, CronJobInfo, JobInfo
from kusanagi.observability.logging import get_logger
from kusanagi.status.durations import elapsed_seconds, format_job_duration
from kusanagi.status.fields import (
    UNKNOWN,
    format_timestamp,
    get_bool,
    get_dicts,
    get_int,
    get_list,
    get_str,
    get_str_or,
    parse_timestamp,
)

_logger = get_logger("status.backups")

MAX_RECENT_JOBS = 5


def job_outcome(job: dict[str, Any]) -> str:
    """Running beats Succeeded beats Failed; no counters at all is Unknown."""
    if get_int(job, "status.active") > 0:
        return "Running"
    if get_int(job, "status.succeeded") > 0:
        return "Succeeded"
    if get_int(job, "status.failed") > 0:
        return "Failed"
    return UNKNOWN


def _owned_by(job: dict[str, Any], cronjob_name: str, namespace: str) -> bool:
    if get_str_or(job, "metadata.namespace", "default") != namespace:
        return False
    return any(
        ref.get("kind") == "CronJob" and ref.get("name") == cronjob_name
        for ref in get_dicts(job, "metadata.ownerReferences")
    )


def build_job_info(job: dict[str, Any], now: datetime) -> JobInfo:
    started = parse_timestamp(get_str(job, "status.startTime"))
    completed = parse_timestamp(get_str(job, "status.completionTime"))
    duration = None
    if started is not None:
        duration = format_job_duration(elapsed_seconds(started, completed or now))
    return JobInfo(
        name=get_str_or(job, "metadata.name", ""),
        status=job_outcome(job),
        started_at=format_timestamp(started),
        completed_at=format_timestamp(completed),
        duration=duration,
    )


def build_cronjob_info(cronjob: dict[str, Any], jobs: list[dict[str, Any]], now: datetime) -> CronJobInfo:
    name = get_str_or(cronjob, "metadata.name", "")
    namespace = get_str_or(cronjob, "metadata.namespace", "default")

    last_raw = get_str(cronjob, "status.lastScheduleTime")
    last_schedule = parse_timestamp(last_raw)
    last_schedule_age = None
    if last_raw is not None:
        last_schedule_age = format_job_duration(elapsed_seconds(last_schedule, now)) if last_schedule else UNKNOWN

    recent = [build_job_info(j, now) for j in jobs if _owned_by(j, name, namespace)]
    recent.sort(key=lambda j: j.started_at or "", reverse=True)

    return CronJobInfo(
        name=name,
        namespace=namespace,
        schedule=get_str_or(cronjob, "spec.schedule", UNKNOWN),
        last_schedule=format_timestamp(last_schedule) or last_raw,
        last_schedule_age=last_schedule_age,
        active_jobs=len(get_list(cronjob, "status.active")),
        suspend=get_bool(cronjob, "spec.suspend"),
        recent_jobs=recent[:MAX_RECENT_JOBS],
    )


def build_backups_status(
    cronjobs: list[dict[str, Any]],
    jobs: list[dict[str, Any]],
    now: datetime,
) -> BackupsStatus:
    infos = sorted(
        (build_cronjob_info(cj, jobs, now) for cj in cronjobs),
        key=lambda c: (c.namespace, c.name),
    )
    outcomes = [job_outcome(j) for j in jobs]

    status = BackupsStatus(
        total_cronjobs=len(infos),
        active_jobs=outcomes.count("Running"),
        succeeded_jobs=outcomes.count("Succeeded"),
        failed_jobs=outcomes.count("Failed"),
        cronjobs=infos,
    )
    _logger.debug(
        "backups_status_built",
        cronjobs=status.total_cronjobs,
        jobs=len(jobs),
        failed=status.failed_jobs,
    )
    return status
