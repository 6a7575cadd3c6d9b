"""Docket CLI - daily task digest and confirmed quick actions."""

import json
import logging
import sys

import click

from .config import load_config, validate_config
from .core.actions import ActionKind
from .core.digest import DigestMode, digest_to_dict, format_minutes
from .core.errors import DocketError
from .workflows import (
    compute_digest,
    get_action_machine,
    get_calendar,
    get_summarizer,
    get_task_repo,
    render_digest,
    run_digest,
)

CLI_USER = "cli"


def _fail(e: Exception) -> None:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(package_name="docket")
@click.option("--debug", is_flag=True, help="Verbose logging")
def main(debug: bool):
    """Docket - daily task digest with confirm-before-change quick actions."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if debug else logging.WARNING,
    )


@main.command()
@click.option(
    "--mode",
    type=click.Choice(["morning", "evening", "both"]),
    default="morning",
    show_default=True,
)
@click.option("--publish/--no-publish", default=True, help="Post to the webhook and write the daily log")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON (implies --no-publish)")
def digest(mode: str, publish: bool, as_json: bool):
    """Build, print and publish the digest."""
    config = load_config()
    try:
        if as_json:
            validate_config(config)
            tasks = get_task_repo(config)
            calendar = get_calendar(config)
            llm = get_summarizer(config)
            modes = [DigestMode(mode)] if mode != "both" else [DigestMode.MORNING, DigestMode.EVENING]
            payload = [digest_to_dict(compute_digest(config, m, tasks, calendar, llm)) for m in modes]
            click.echo(json.dumps(payload if len(payload) > 1 else payload[0], indent=2))
            return

        validate_config(config, digest=publish)
        texts = run_digest(config, mode, publish=publish)
    except DocketError as e:
        _fail(e)

    if not texts:
        click.echo(f"Skipped {mode}: outside the configured local hour.")
        return
    click.echo("\n\n".join(texts))


@main.command()
@click.option("--evening", is_flag=True, help="Only tasks due today or earlier")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tasks(evening: bool, as_json: bool):
    """List ranked digest tasks."""
    config = load_config()
    try:
        validate_config(config)
        mode = DigestMode.EVENING if evening else DigestMode.MORNING
        result = compute_digest(config, mode, get_task_repo(config), None, None)
    except DocketError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(digest_to_dict(result)["ranked"], indent=2))
        return

    if not result.ranked:
        click.echo("No digest tasks.")
        return

    for t in result.ranked:
        click.echo(
            f"{t.score:.2f}  {t.bucket.value:9}  {t.due_date}  [{t.priority.upper() or 'P?'}] {t.title}"
            f"  ({t.project})  {t.id}"
        )


@main.command()
def capacity():
    """Show today's free focus time against the top 3."""
    config = load_config()
    calendar = get_calendar(config)
    if calendar is None:
        click.echo("Calendar not configured (GOOGLE_CALENDAR_ID plus service account or token dir).")
    try:
        validate_config(config)
        result = compute_digest(config, DigestMode.MORNING, get_task_repo(config), calendar, None)
    except DocketError as e:
        _fail(e)

    cap = result.capacity
    click.echo(f"Status:   {cap.status.value}")
    click.echo(f"Free:     {format_minutes(cap.free_minutes)}")
    click.echo(f"Busy:     {format_minutes(cap.busy_minutes)}")
    click.echo(f"Planned:  {format_minutes(cap.required_minutes)}")
    if result.suggested_defer:
        click.echo(f"Defer:    {result.suggested_defer.title} ({result.suggested_defer.id})")


@main.command()
@click.argument("action", type=click.Choice([k.value for k in ActionKind if k.needs_confirmation]))
@click.argument("task_id")
@click.option("--date", "target_date", help="New due date for reschedule (YYYY-MM-DD)")
@click.option("--days", help="Days to defer by")
@click.option("--user", default=CLI_USER, show_default=True, help="Who is proposing")
def propose(action: str, task_id: str, target_date: str | None, days: str | None, user: str):
    """Propose a change; it takes effect only after `docket confirm`."""
    config = load_config()
    details = {}
    if target_date is not None:
        details["target_date"] = target_date
    if days is not None:
        details["days"] = days

    try:
        validate_config(config)
        entry = get_action_machine(config).propose(ActionKind(action), task_id, user, details)
    except DocketError as e:
        _fail(e)

    click.echo(f"Pending {entry.id}: {entry.action.value} {entry.task_id} {json.dumps(entry.details)}")
    click.echo(f"Expires {entry.expires_at.isoformat()}. Run `docket confirm {entry.id}` to apply.")


@main.command()
@click.argument("pending_id")
@click.option("--user", default=CLI_USER, show_default=True)
def confirm(pending_id: str, user: str):
    """Apply a pending change."""
    config = load_config()
    try:
        validate_config(config)
        machine = get_action_machine(config)
        machine.prune_expired()
        summary = machine.confirm(pending_id, user)
    except DocketError as e:
        _fail(e)
    click.echo(summary)


@main.command()
@click.argument("pending_id")
@click.option("--user", default=CLI_USER, show_default=True)
def cancel(pending_id: str, user: str):
    """Discard a pending change."""
    config = load_config()
    try:
        validate_config(config)
        machine = get_action_machine(config)
        machine.prune_expired()
        message = machine.cancel(pending_id, user)
    except DocketError as e:
        _fail(e)
    click.echo(message)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def pending(as_json: bool):
    """List pending changes awaiting confirmation."""
    config = load_config()
    try:
        validate_config(config)
        machine = get_action_machine(config)
        machine.prune_expired()
        entries = machine.list_pending()
    except DocketError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2))
        return

    if not entries:
        click.echo("Nothing pending.")
        return

    for e in entries:
        click.echo(
            f"{e.id}  {e.action.value:10}  {e.task_id}  user={e.user_id}  "
            f"expires {e.expires_at.isoformat()}  {json.dumps(e.details)}"
        )


@main.command()
def bot():
    """Run the Telegram bot with scheduled digests."""
    from .telegram_bot import run_bot

    config = load_config()
    try:
        run_bot(config)
    except DocketError as e:
        _fail(e)


@main.command("cal-auth")
def cal_auth():
    """Authenticate with Google Calendar (OAuth)."""
    config = load_config()

    if not config.google_client_secret_file:
        click.echo("GOOGLE_CLIENT_SECRET_FILE not set in docket.conf", err=True)
        sys.exit(1)
    if not config.google_token_dir:
        click.echo("GOOGLE_TOKEN_DIR not set in docket.conf", err=True)
        sys.exit(1)

    from .adapters.google_calendar import GoogleCalendarAdapter

    adapter = GoogleCalendarAdapter(
        calendar_id=config.google_calendar_id or "primary",
        token_dir=config.google_token_dir,
        client_secret_file=config.google_client_secret_file,
        timezone=config.timezone,
    )
    if adapter.authenticate():
        click.echo(f"Token saved to {adapter._token_path}")
    else:
        click.echo("Authentication failed", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
