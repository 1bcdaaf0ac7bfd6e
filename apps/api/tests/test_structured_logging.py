import uuid

from coachflow.core.structured_logging import build_log_context


def test_build_log_context_keeps_only_given_identifiers():
    client_id = uuid.uuid4()

    context = build_log_context(client_id=client_id, stage="program_active", actor=None)

    assert context == {"client_id": str(client_id), "stage": "program_active"}


def test_build_log_context_empty():
    assert build_log_context() == {}


def test_build_log_context_all_fields():
    context = build_log_context(
        client_id="c-1", stage="s", milestone="14_day", actor="admin", job_name="check-follow-ups"
    )

    assert set(context) == {"client_id", "stage", "milestone", "actor", "job_name"}
