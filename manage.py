from certclaim.app import create_app, db
import os
from datetime import timedelta

from flask_migrate import Migrate
from flask.cli import FlaskGroup
import click
from flask import current_app
from certclaim.shared.errors import IssuanceError
from certclaim.shared.issuance import issue_certificate
from certclaim.shared.store import RecordStore
from certclaim.shared.time import now_utc, to_naive_utc
from certclaim.shared.whitelist import add_whitelist_entry


migrate = Migrate()


def create_certclaim_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_certclaim_app)


@cli.command("issue_cert")
@click.option("--event", "event_id", required=True, type=int)
@click.option("--name", "name", required=True)
@click.option(
    "--out",
    "out_dir",
    default=".",
    type=click.Path(file_okay=False),
    help="Directory the PDF is written to",
)
def issue_cert(event_id: int, name: str, out_dir: str):
    """Issue a certificate and write the PDF to disk."""
    try:
        issued = issue_certificate(event_id, name)
    except IssuanceError as exc:
        click.echo(f"{exc.reason}: {exc.message}", err=True)
        raise SystemExit(1)
    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, issued.filename)
    with open(path, "wb") as handle:
        handle.write(issued.pdf_bytes)
    click.echo(f"{issued.cert_no} {path}")


@cli.command("add_whitelist")
@click.option("--event", "event_id", required=True, type=int)
@click.option("--name", "name", required=True)
def add_whitelist(event_id: int, name: str):
    """Authorize one participant name for an event."""
    try:
        entry = add_whitelist_entry(RecordStore(), event_id, name)
    except IssuanceError as exc:
        click.echo(exc.message, err=True)
        raise SystemExit(1)
    click.echo(f"added id={entry.id} name={entry.name}")


@cli.command("purge_orphan_certs")
@click.option(
    "--dry-run", is_flag=True, help="List orphaned reservations without deleting"
)
@click.option(
    "--older-than",
    "older_than_minutes",
    default=10,
    show_default=True,
    type=int,
    help="Only reservations older than this many minutes",
)
def purge_orphan_certs(dry_run: bool, older_than_minutes: int):
    """Delete certificate rows that never received a number."""
    store = RecordStore()
    cutoff = to_naive_utc(now_utc() - timedelta(minutes=older_than_minutes))
    orphans = store.list_orphan_certificates(created_before=cutoff)
    for cert in orphans[:5]:
        click.echo(f"id={cert.id} event={cert.event_id} name={cert.name}")
    deleted = 0
    if orphans and not dry_run:
        deleted = store.purge_certificates(orphans)
    summary = f"found={len(orphans)} deleted={deleted}"
    click.echo(summary)
    current_app.logger.info("[CERT-PURGE] %s", summary)


if __name__ == "__main__":
    cli()
