"""
OpsBeat CLI

Click-based command-line interface for OpsBeat.
Runs heartbeats and inspects gates and proposals without going through HTTP.
"""

import json
import sys

import click
from rich.console import Console
from rich.table import Table

from opsbeat import __version__
from opsbeat.config import load_config
from opsbeat.errors import ConfigError, OpsBeatError
from opsbeat.logging import EXIT_CONFIG_ERROR, EXIT_RUNTIME_ERROR, get_logger, setup_logging

logger = get_logger(__name__)
console = Console()


def get_service_context():
    """Create a ServiceContext for CLI operations."""
    from opsbeat.services.base import ServiceContext

    return ServiceContext(config=load_config())


def get_store(context):
    """Open the store selected by configuration."""
    from opsbeat.db.database import get_store as open_store

    return open_store(context.config)


def _fail(exc: Exception) -> None:
    logger.debug("cli_command_failed", exc_info=True)
    click.echo(f"✗ Error: {exc}", err=True)
    sys.exit(EXIT_CONFIG_ERROR if isinstance(exc, ConfigError) else EXIT_RUNTIME_ERROR)


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(ctx, verbose, json_output):
    """OpsBeat - heartbeat for agent operations."""
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose
    ctx.obj["JSON"] = json_output
    try:
        config = load_config()
    except ConfigError as e:
        _fail(e)
        return
    setup_logging(level="DEBUG" if verbose else config.log_level, json_output=config.log_json)


@cli.command()
def version():
    """Show version information."""
    click.echo(f"OpsBeat v{__version__}")


@cli.command("init-db")
def init_db():
    """Create the ops tables in the configured store."""
    try:
        context = get_service_context()
        store = get_store(context)
        try:
            store.init_schema()
        finally:
            store.close()
        click.echo("✓ Ops tables ready")
    except OpsBeatError as e:
        _fail(e)


@cli.command()
@click.option("--seed", type=int, default=None, help="Seed the trigger draws (reproducible runs)")
@click.pass_context
def heartbeat(ctx, seed):
    """Run one heartbeat in-process and print the result."""
    import random

    from opsbeat.services.heartbeat import HeartbeatService

    try:
        context = get_service_context()
        store = get_store(context)
        try:
            result = HeartbeatService(context, store, rng=random.Random(seed)).run()
        finally:
            store.close()
    except OpsBeatError as e:
        _fail(e)
        return

    payload = result.asdict()
    if ctx.obj.get("JSON"):
        click.echo(json.dumps(payload))
        return

    table = Table(title=f"Heartbeat {result.timestamp}")
    table.add_column("Stage", style="cyan")
    table.add_column("Count", justify="right", style="magenta")
    table.add_row("triggers fired", str(result.triggers["fired"]))
    table.add_row("reactions processed", str(result.reactions["processed"]))
    table.add_row("insights promoted", str(result.insights["promoted"]))
    table.add_row("stale steps recovered", str(result.stale["recovered"]))
    console.print(table)


@cli.command()
@click.argument("step_kind")
@click.pass_context
def gate(ctx, step_kind):
    """Show the cap gate decision for STEP_KIND right now."""
    from opsbeat.services.cap_gates import CapGateService

    try:
        context = get_service_context()
        store = get_store(context)
        try:
            result = CapGateService(context, store).check(step_kind)
        finally:
            store.close()
    except OpsBeatError as e:
        _fail(e)
        return

    if ctx.obj.get("JSON"):
        click.echo(json.dumps({"step_kind": step_kind, "ok": result.ok, "reason": result.reason}))
    elif result.ok:
        click.echo(f"✓ {step_kind} may proceed")
    else:
        click.echo(f"✗ {step_kind} blocked: {result.reason}")


@cli.command()
@click.argument("step_kind")
@click.argument("description")
@click.option("--source", default="cli", show_default=True, help="Proposal source")
@click.option("--payload", "payload_json", default=None, help="Step payload as a JSON object")
@click.pass_context
def propose(ctx, step_kind, description, source, payload_json):
    """Propose STEP_KIND work; creates a mission when auto-approve allows."""
    from opsbeat.services.proposals import ProposalService

    payload = None
    if payload_json:
        try:
            payload = json.loads(payload_json)
        except ValueError as e:
            raise click.BadParameter(f"invalid JSON: {e}", param_hint="--payload")
        if not isinstance(payload, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--payload")

    try:
        context = get_service_context()
        store = get_store(context)
        try:
            outcome = ProposalService(context, store).create_proposal_and_maybe_auto_approve(
                source=source,
                step_kind=step_kind,
                description=description,
                payload=payload,
            )
        finally:
            store.close()
    except OpsBeatError as e:
        _fail(e)
        return

    proposal = outcome.proposal
    if ctx.obj.get("JSON"):
        click.echo(
            json.dumps(
                {
                    "proposal_id": proposal.id,
                    "status": proposal.status,
                    "reason": proposal.reason,
                    "mission_id": outcome.mission.id if outcome.mission else None,
                    "approved": outcome.approved,
                }
            )
        )
        return

    click.echo(f"Proposal {proposal.id}: {proposal.status}")
    if proposal.reason:
        click.echo(f"  Reason: {proposal.reason}")
    if outcome.mission:
        click.echo(f"  Mission: {outcome.mission.id} (step {outcome.step.id} queued)")


@cli.command("proposals")
@click.option("--limit", default=20, help="Number of proposals to show")
@click.pass_context
def list_proposals(ctx, limit):
    """List recent proposals."""
    try:
        context = get_service_context()
        store = get_store(context)
        try:
            proposals = store.list_proposals(limit=limit)
        finally:
            store.close()
    except OpsBeatError as e:
        _fail(e)
        return

    if ctx.obj.get("JSON"):
        click.echo(
            json.dumps(
                [
                    {
                        "id": p.id,
                        "source": p.source,
                        "step_kind": p.step_kind,
                        "status": p.status,
                        "reason": p.reason,
                        "created_at": p.created_at,
                    }
                    for p in proposals
                ]
            )
        )
        return

    table = Table(title="Proposals")
    table.add_column("Created", style="cyan")
    table.add_column("Step kind", style="magenta")
    table.add_column("Status", style="green")
    table.add_column("Source")
    table.add_column("Reason")
    for p in proposals:
        table.add_row(p.created_at, p.step_kind, p.status, p.source, p.reason or "")
    console.print(table)


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host, port):
    """Serve the heartbeat webhook."""
    import uvicorn

    uvicorn.run("opsbeat.api.app:app", host=host, port=port)


def main():
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
