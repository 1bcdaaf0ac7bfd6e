"""CLI tools for running the lifecycle engine by hand."""

import json
import logging
from uuid import UUID

import click

from coachflow.db.base import Base
from coachflow.db.enums import WorkflowStage
from coachflow.db.session import SessionLocal, engine


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.option("--verbose", is_flag=True, help="Log at DEBUG level")
def cli(verbose: bool):
    """Coachflow CLI tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@cli.command()
def init_db():
    """Create all tables (development and tests; production uses managed migrations)."""
    import coachflow.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("✓ Tables created")


@cli.command()
def seed_jobs():
    """Register the default scheduled jobs."""
    from coachflow.services import scheduled_job_service

    with SessionLocal() as db:
        created = scheduled_job_service.seed_default_jobs(db)
        for job in created:
            click.echo(f"✓ Registered {job.job_name} ({job.schedule})")
        if not created:
            click.echo("All default jobs already registered")


@cli.command()
@click.option("--client-id", required=True, type=click.UUID, help="Client ID")
def start_program(client_id: UUID):
    """Create a client's workflow state at the first stage of its service type."""
    from coachflow.services.workflow_state_service import (
        WorkflowStateExists,
        WorkflowStateStore,
        get_client,
    )

    with SessionLocal() as db:
        client = get_client(db, client_id)
        if not client:
            raise click.ClickException(f"Client {client_id} not found")
        try:
            state = WorkflowStateStore().start_program(db, client)
        except WorkflowStateExists as exc:
            raise click.ClickException(str(exc))
        click.echo(f"✓ Program started at stage {state.current_stage}")


@cli.command()
@click.option("--manual", is_flag=True, help="Mark the run as manually triggered")
def check_follow_ups(manual: bool):
    """
    Run the daily milestone follow-up check now.

    Example:
        python -m coachflow.cli check-follow-ups --manual
    """
    from coachflow.services.follow_up_evaluator import run_follow_up_check

    with SessionLocal() as db:
        result = run_follow_up_check(db, manual_trigger=manual)
    _echo_json(result.to_dict())


@cli.command()
def run_automation():
    """Fire every stage action whose due time has passed."""
    from coachflow.services.follow_up_evaluator import run_workflow_automation
    from coachflow.services.stage_dispatcher import get_stage_dispatcher

    with SessionLocal() as db:
        stats = run_workflow_automation(db, get_stage_dispatcher())
    _echo_json(stats)


@cli.command()
@click.option("--client-id", required=True, type=click.UUID, help="Client ID")
@click.option(
    "--stage",
    required=True,
    type=click.Choice([s.value for s in WorkflowStage]),
    help="Stage the client is expected to be in",
)
@click.option("--admin-id", default="admin", show_default=True, help="Recorded as triggered_by")
def trigger_stage(client_id: UUID, stage: str, admin_id: str):
    """Run a client's current stage action now and advance."""
    from coachflow.services.stage_dispatcher import get_stage_dispatcher
    from coachflow.services.workflow_state_service import WorkflowStateNotFound

    with SessionLocal() as db:
        try:
            result = get_stage_dispatcher().trigger(db, client_id, stage, admin_id)
        except WorkflowStateNotFound as exc:
            raise click.ClickException(str(exc))
    click.echo(f"{result.status.value}: {result.stage} -> {result.new_stage or result.current_stage}")
    for step in result.steps:
        line = f"  {step.name}: {step.status.value}"
        if step.error:
            line += f" ({step.error})"
        click.echo(line)


@cli.command()
@click.argument("job_name")
def run_job(job_name: str):
    """Run a scheduled job by name and record its last-run status."""
    from coachflow.jobs.registry import UnknownJobError, run_job_by_name

    with SessionLocal() as db:
        try:
            stats = run_job_by_name(db, job_name)
        except UnknownJobError as exc:
            raise click.ClickException(str(exc))
    _echo_json(stats)


if __name__ == "__main__":
    cli()
