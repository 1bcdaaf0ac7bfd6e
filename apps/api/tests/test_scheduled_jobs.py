from __future__ import annotations

from datetime import datetime, timezone

import pytest

from coachflow.db.enums import JobKey, JobRunStatus
from coachflow.jobs.registry import (
    JOB_HANDLERS,
    UnknownJobError,
    resolve_job_handler,
    run_job_by_name,
)
from coachflow.services import scheduled_job_service
from coachflow.services.scheduled_job_service import should_run_cron

# Monday 2026-03-02 09:00 UTC
MONDAY_9AM = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def test_every_job_key_has_a_handler():
    assert set(JOB_HANDLERS) == {k.value for k in JobKey}


def test_resolve_unknown_job_key():
    with pytest.raises(UnknownJobError):
        resolve_job_handler("send_fax")


def test_seed_default_jobs_is_idempotent(db):
    created = scheduled_job_service.seed_default_jobs(db)
    again = scheduled_job_service.seed_default_jobs(db)

    assert {j.job_name for j in created} == {"check-follow-ups", "workflow-automation"}
    assert again == []
    assert len(scheduled_job_service.list_jobs(db)) == 2


def test_run_job_records_success(db):
    scheduled_job_service.seed_default_jobs(db)

    stats = run_job_by_name(db, "check-follow-ups")

    assert stats["clients_checked"] == 0
    job = scheduled_job_service.get_job(db, "check-follow-ups")
    assert job.last_run_status == JobRunStatus.SUCCESS.value
    assert job.last_error is None


def test_run_job_records_failure(db, monkeypatch):
    from coachflow.services import follow_up_evaluator

    scheduled_job_service.seed_default_jobs(db)

    def broken(*_args, **_kwargs):
        raise RuntimeError("evaluator exploded")

    monkeypatch.setattr(follow_up_evaluator, "run_follow_up_check", broken)

    with pytest.raises(RuntimeError):
        run_job_by_name(db, "check-follow-ups")

    job = scheduled_job_service.get_job(db, "check-follow-ups")
    assert job.last_run_status == JobRunStatus.FAILED.value
    assert job.last_error == "evaluator exploded"


def test_run_unknown_job_name(db):
    with pytest.raises(UnknownJobError):
        run_job_by_name(db, "nightly-backup")


def test_record_run_by_name_ignores_unregistered(db):
    assert scheduled_job_service.record_run_by_name(db, "nightly-backup", JobRunStatus.SUCCESS) is None


@pytest.mark.parametrize(
    "cron,expected",
    [
        ("0 9 * * *", True),
        ("0 10 * * *", False),
        ("30 9 * * *", False),
        ("*/15 * * * *", True),
        ("*/7 * * * *", True),  # minute 0
        ("0 9 * * 1", True),  # Monday
        ("0 9 * * 0", False),  # Sunday
        ("0 9 * * 1-5", True),
        ("0 9 * * 2-5", False),
        ("0 9 * *", False),
        ("every day", False),
    ],
)
def test_should_run_cron(cron, expected):
    assert should_run_cron(cron, MONDAY_9AM) is expected


def test_should_run_cron_in_timezone():
    # 09:00 UTC is 04:00 in New York (EST)
    assert should_run_cron("0 4 * * *", MONDAY_9AM, "America/New_York")
    assert not should_run_cron("0 9 * * *", MONDAY_9AM, "America/New_York")


def test_due_jobs_skips_inactive_and_already_run(db):
    scheduled_job_service.seed_default_jobs(db)
    automation = scheduled_job_service.get_job(db, "workflow-automation")

    assert {j.job_name for j in scheduled_job_service.due_jobs(db, MONDAY_9AM)} == {
        "check-follow-ups",
        "workflow-automation",
    }

    scheduled_job_service.record_run(db, automation, JobRunStatus.SUCCESS, now=MONDAY_9AM)
    follow_ups = scheduled_job_service.get_job(db, "check-follow-ups")
    follow_ups.is_active = False
    db.commit()

    assert scheduled_job_service.due_jobs(db, MONDAY_9AM) == []


def test_worker_runs_due_jobs(db, session_factory, monkeypatch):
    from coachflow import worker

    scheduled_job_service.seed_default_jobs(db)
    monkeypatch.setattr(worker, "SessionLocal", session_factory)

    ran = worker.run_due_jobs(MONDAY_9AM)

    assert sorted(ran) == ["check-follow-ups", "workflow-automation"]
    db.expire_all()
    assert {j.last_run_status for j in scheduled_job_service.list_jobs(db)} == {"success"}
    assert worker.run_due_jobs(MONDAY_9AM) == []


async def test_list_scheduled_jobs_endpoint(client, db):
    scheduled_job_service.seed_default_jobs(db)

    response = await client.get("/jobs/scheduled")

    assert response.status_code == 200
    names = [j["job_name"] for j in response.json()]
    assert names == ["check-follow-ups", "workflow-automation"]
    assert response.json()[0]["last_run_status"] is None


async def test_run_now_endpoint(client, db):
    scheduled_job_service.seed_default_jobs(db)

    response = await client.post("/jobs/scheduled/workflow-automation/run")

    assert response.status_code == 200
    body = response.json()
    assert body["job"]["last_run_status"] == "success"
    assert body["result"]["processed"] == 0


async def test_run_now_unknown_job(client):
    response = await client.post("/jobs/scheduled/nightly-backup/run")
    assert response.status_code == 404


async def test_run_now_failure_returns_500(client, db, monkeypatch):
    from coachflow.services import follow_up_evaluator

    scheduled_job_service.seed_default_jobs(db)

    def broken(*_args, **_kwargs):
        raise RuntimeError("evaluator exploded")

    monkeypatch.setattr(follow_up_evaluator, "run_follow_up_check", broken)

    response = await client.post("/jobs/scheduled/check-follow-ups/run")

    assert response.status_code == 500
    assert response.json() == {"error": "evaluator exploded"}
