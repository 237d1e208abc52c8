"""
CLI interface for HL7 store ingestion.

Commands:
    dispatch  — Send every .hl7 file under a directory to the store
    get       — Show a stored message
    list      — List the messages in the store
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

import click

from hl7_ingest import __version__
from hl7_ingest.errors import HL7IngestError


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__, prog_name="hl7-ingest")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="JSON config file with client (and dispatch) settings.")
@click.option("--credential", default=None,
              help="Service-account JSON file (default: ambient credentials).")
@click.option("--project", default=None, help="Cloud project ID.")
@click.option("--location", default=None, help="Cloud location of the dataset.")
@click.option("--dataset", default=None, help="Healthcare dataset ID.")
@click.option("--store", default=None, help="HL7v2 store ID.")
@click.option("--rate-limit", default=None, type=int,
              help="Max requests per second (0 or less: unlimited).")
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[str],
    credential: Optional[str],
    project: Optional[str],
    location: Optional[str],
    dataset: Optional[str],
    store: Optional[str],
    rate_limit: Optional[int],
    log_level: str,
) -> None:
    """Ingest HL7 v2 messages into a Cloud Healthcare HL7v2 store."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = {
        "credential": credential,
        "project": project,
        "location": location,
        "dataset": dataset,
        "store": store,
        "rate_limit": rate_limit,
    }


def _build_client(ctx: click.Context):
    from hl7_ingest.client.config import ClientConfig, load_client_config
    from hl7_ingest.client.store import MessageStoreClient

    overrides = ctx.obj["overrides"]
    if ctx.obj["config_path"]:
        try:
            config = load_client_config(ctx.obj["config_path"], **overrides)
        except (FileNotFoundError, ValueError) as e:
            raise click.ClickException(f"unable to load config: {e}")
    else:
        config = ClientConfig(
            project=overrides["project"] or "",
            location=overrides["location"] or "",
            dataset=overrides["dataset"] or "",
            store=overrides["store"] or "",
            credential=overrides["credential"] or "",
            rate_limit=overrides["rate_limit"] or 0,
        )

    try:
        return MessageStoreClient(config)
    except HL7IngestError as e:
        raise click.ClickException(f"unable to create hl7 store client: {e}")


# ---------------------------------------------------------------------------
# dispatch
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("root", required=False, type=click.Path(file_okay=False))
@click.option("--passes", default=None, type=int, help="Number of passes over the tree.")
@click.option("--trailer/--no-trailer", default=None,
              help="Append a ZAC|<timestamp> segment to each message.")
@click.option("--retain-dir", default=None, type=click.Path(file_okay=False),
              help="Keep a copy of every sent payload in this directory.")
@click.option("--skip-duplicates/--no-skip-duplicates", default=None,
              help="Skip files identical to one already accepted in this run.")
@click.pass_context
def dispatch(
    ctx: click.Context,
    root: Optional[str],
    passes: Optional[int],
    trailer: Optional[bool],
    retain_dir: Optional[str],
    skip_duplicates: Optional[bool],
) -> None:
    """Send every .hl7 file under ROOT to the store."""
    from hl7_ingest.dispatch.config import DispatchConfig, load_dispatch_config
    from hl7_ingest.dispatch.runner import DispatchRunner

    overrides = {
        "root": root,
        "passes": passes,
        "append_trailer": trailer,
        "retain_dir": retain_dir,
        "skip_duplicates": skip_duplicates,
    }
    if ctx.obj["config_path"]:
        try:
            config = load_dispatch_config(ctx.obj["config_path"], **overrides)
        except (FileNotFoundError, ValueError) as e:
            raise click.ClickException(f"unable to load config: {e}")
    elif root is None:
        raise click.UsageError("ROOT is required when no --config is given.")
    else:
        try:
            config = DispatchConfig(**{k: v for k, v in overrides.items() if v is not None})
        except ValueError as e:
            raise click.ClickException(f"invalid dispatch settings: {e}")

    with _build_client(ctx) as client:
        try:
            report = DispatchRunner(client, config).run()
        except OSError as e:
            raise click.ClickException(str(e))

    click.echo(report.summary())
    if not report.ok:
        sys.exit(1)


# ---------------------------------------------------------------------------
# get
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("message")
@click.option("--raw", is_flag=True, help="Print the decoded HL7 payload only.")
@click.pass_context
def get(ctx: click.Context, message: str, raw: bool) -> None:
    """Show a stored message, by ID or by full resource name."""
    with _build_client(ctx) as client:
        try:
            if message.startswith("projects/"):
                msg = client.get(message)
            else:
                msg = client.get_by_id(message)
            payload = msg.payload
        except HL7IngestError as e:
            raise click.ClickException(str(e))

    if raw:
        click.echo(payload.decode("utf-8", errors="replace").replace("\r", "\n"))
        return

    click.echo(f"Message {msg.name}")
    click.echo(f"  Type:          {msg.message_type}")
    click.echo(f"  Send Facility: {msg.send_facility}")
    click.echo(f"  Send Time:     {msg.send_time}")
    click.echo(f"  Created:       {msg.create_time}")
    if msg.labels:
        click.echo(f"  Labels:        {json.dumps(msg.labels)}")
    if msg.patient_ids:
        ids = ", ".join(f"{p.get('value', '')} ({p.get('type', '')})" for p in msg.patient_ids)
        click.echo(f"  Patient IDs:   {ids}")


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------

@cli.command(name="list")
@click.pass_context
def list_messages(ctx: click.Context) -> None:
    """List the messages in the store (first page)."""
    with _build_client(ctx) as client:
        try:
            result = client.list()
        except HL7IngestError as e:
            raise click.ClickException(str(e))

    if not result.messages:
        click.echo("No messages.")
        return

    click.echo(f"Messages ({len(result.messages)}):")
    for msg in result.messages:
        click.echo(f"  {msg.name}")
    if result.next_page_token:
        click.echo(f"More results available (page token: {result.next_page_token})")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
